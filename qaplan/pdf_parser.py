"""
PDF Text Extraction
Validation and text extraction for uploaded PDF templates.
"""
import logging
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Union

import PyPDF2

from .models import PDFValidation

logger = logging.getLogger(__name__)

PDF_MAGIC = b'%PDF'
MAX_PDF_SIZE = 5 * 1024 * 1024  # 5 MiB


class PDFParseError(Exception):
    """Raised when a PDF cannot be read"""
    pass


@dataclass
class ParsedPDF:
    text: str
    num_pages: int
    info: Dict[str, Any] = field(default_factory=dict)


def validate_pdf(data: bytes) -> PDFValidation:
    """
    Cheap guard before parsing: magic number and size only.

    Does not check that the rest of the file is a well-formed PDF.
    """
    if data[:4] != PDF_MAGIC:
        return PDFValidation(valid=False, error='Invalid PDF file format')

    if len(data) > MAX_PDF_SIZE:
        return PDFValidation(valid=False, error='PDF file too large (max 5MB)')

    return PDFValidation(valid=True)


def parse_pdf_bytes(data: bytes) -> ParsedPDF:
    """Extract the text of every page"""
    try:
        reader = PyPDF2.PdfReader(BytesIO(data))
        pages = [page.extract_text() or '' for page in reader.pages]
        metadata = reader.metadata or {}
        info = {str(k).lstrip('/'): str(v) for k, v in metadata.items()}
    except Exception as e:
        raise PDFParseError(f"PDF parsing failed: {e}") from e

    logger.info(f"Extracted {sum(len(p) for p in pages)} characters from {len(pages)} PDF pages")
    return ParsedPDF(text='\n'.join(pages), num_pages=len(pages), info=info)


def parse_pdf_file(path: Union[str, Path]) -> ParsedPDF:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    return parse_pdf_bytes(path.read_bytes())
