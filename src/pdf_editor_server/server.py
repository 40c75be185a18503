"""FastAPI REST API for parsing PDFs into block documents and exporting edits."""

import os
import re
from contextlib import asynccontextmanager

from fastapi import FastAPI, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError

from .layout import (
    Document,
    ExportError,
    LayoutConfig,
    PdfParseError,
    PdfParser,
    ReflowEngine,
)
from .layout.backend import FitzBackend, ensure_initialized
from .layout.pdf_parser import PDF_SIGNATURE, InvalidPdfSignatureError
from .logger import logger

# Maximum file size for uploads (default 50MB)
MAX_UPLOAD_SIZE = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50")) * 1024 * 1024

MAX_RENDER_SCALE = 4.0


# --- Response Models ---


class HealthResponse(BaseModel):
    status: str


class ErrorResponse(BaseModel):
    code: str
    message: str


# --- App State ---

_parser: PdfParser | None = None
_engine: ReflowEngine | None = None


def get_parser() -> PdfParser:
    """Lazy initialization of the PDF parser."""
    global _parser
    if _parser is None:
        _parser = PdfParser(config=LayoutConfig.from_env())
    return _parser


def get_engine() -> ReflowEngine:
    """Lazy initialization of the reflow engine."""
    global _engine
    if _engine is None:
        _engine = ReflowEngine(config=LayoutConfig.from_env().reflow)
    return _engine


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    logger.info("starting server", max_upload_size=MAX_UPLOAD_SIZE)
    ensure_initialized()
    yield
    logger.info("server shutdown")


app = FastAPI(
    title="PDF Editor API",
    description="Parse PDFs into editable blocks and write edited blocks back",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Exception Handlers ---


def _error_detail(code: str, message: str) -> dict:
    return ErrorResponse(code=code, message=message).model_dump()


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_error_detail(code, message),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
    return _error_response(exc.status_code, f"HTTP_{exc.status_code}", str(exc.detail))


@app.exception_handler(InvalidPdfSignatureError)
async def invalid_pdf_handler(request, exc: InvalidPdfSignatureError):
    return _error_response(422, "INVALID_PDF", str(exc))


@app.exception_handler(PdfParseError)
async def parse_error_handler(request, exc: PdfParseError):
    return _error_response(422, "PARSE_FAILED", str(exc))


@app.exception_handler(ExportError)
async def export_error_handler(request, exc: ExportError):
    logger.error("export failed", error=str(exc))
    return _error_response(500, "EXPORT_FAILED", str(exc))


# --- Helpers ---


def _read_pdf_upload(file: UploadFile) -> tuple[str, bytes]:
    """Validate an uploaded PDF and return its name and bytes."""
    file_name = file.filename or "unknown.pdf"
    if not file_name.lower().endswith(".pdf"):
        raise HTTPException(
            status_code=400, detail=_error_detail("UNSUPPORTED_FILE", "Only PDF files are supported")
        )

    data = file.file.read(MAX_UPLOAD_SIZE + 1)
    if len(data) > MAX_UPLOAD_SIZE:
        raise HTTPException(
            status_code=413,
            detail=_error_detail(
                "FILE_TOO_LARGE",
                f"File too large. Maximum size is {MAX_UPLOAD_SIZE // (1024 * 1024)}MB",
            ),
        )
    if not data.startswith(PDF_SIGNATURE):
        raise InvalidPdfSignatureError(
            "Invalid PDF file. File does not have valid PDF header."
        )
    return file_name, data


def _export_file_name(title: str | None) -> str:
    stem = re.sub(r"[^\w\-. ]", "_", title or "document").strip() or "document"
    return f"{stem}_edited.pdf"


# --- Health Endpoints ---


@app.get("/health", response_model=HealthResponse)
def health():
    """Liveness check."""
    return HealthResponse(status="healthy")


# --- PDF Endpoints ---


@app.post("/api/v1/pdf/parse")
def parse(file: UploadFile = File(...)):
    """Parse an uploaded PDF into the block document model."""
    file_name, data = _read_pdf_upload(file)
    document = get_parser().parse_bytes(data, file_name=file_name)
    return JSONResponse(content=document.to_json_dict())


@app.post("/api/v1/pdf/export")
def export(file: UploadFile = File(...), document: str = Form(...)):
    """Write the edited blocks of a document onto its original PDF."""
    _, data = _read_pdf_upload(file)
    try:
        edited = Document.model_validate_json(document)
    except ValidationError as e:
        raise HTTPException(
            status_code=422, detail=_error_detail("INVALID_DOCUMENT", str(e))
        ) from e

    output = get_engine().export_modified_pdf(edited, original_bytes=data)
    file_name = _export_file_name(edited.metadata.title)
    return Response(
        content=output,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@app.post("/api/v1/pdf/render/{page_number}")
def render_page(
    page_number: int,
    file: UploadFile = File(...),
    scale: float = Query(default=1.0, gt=0, le=MAX_RENDER_SCALE),
):
    """Render one page of an uploaded PDF to PNG, for the editor preview."""
    _, data = _read_pdf_upload(file)
    try:
        handle = FitzBackend().open(data)
    except Exception as e:
        raise PdfParseError(f"Failed to open PDF: {e}") from e

    with handle:
        try:
            page = handle.get_page(page_number)
        except IndexError as e:
            raise HTTPException(
                status_code=404, detail=_error_detail("PAGE_NOT_FOUND", str(e))
            ) from e
        png = page.render(scale)

    return Response(content=png, media_type="image/png")
