"""Entry point for the PDF editor server."""

import argparse

import uvicorn


def main():
    parser = argparse.ArgumentParser(description="PDF editor server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8000, help="Bind port (default: 8000)")
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Log level for the pipeline logger. Overrides LOG_LEVEL env var.",
    )
    args = parser.parse_args()

    from pdf_editor_server.logger import logger
    from pdf_editor_server.server import app

    if args.log_level:
        logger.set_level(args.log_level)

    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
