"""
File utilities - upload checks and PDF page counting.
"""

import math
from typing import List, Optional

import fitz

from examgrader.config import logger, MAX_FILE_SIZE, MAX_FILES, ALLOWED_MIME_PREFIXES, ALLOWED_MIME_TYPES
from examgrader.models.evaluation import DocumentBlob

# Rough bytes-per-page used when a PDF cannot be opened
ESTIMATED_PDF_PAGE_BYTES = 30 * 1024


def is_supported_mime_type(mime_type: Optional[str]) -> bool:
    if not mime_type:
        return False
    mime_type = mime_type.lower()
    return mime_type in ALLOWED_MIME_TYPES or mime_type.startswith(ALLOWED_MIME_PREFIXES)


def check_uploads(documents: List[DocumentBlob], label: str) -> List[str]:
    """Return human-readable problems with a group of uploads (empty list if fine)."""
    errors = []
    if len(documents) > MAX_FILES:
        errors.append(f"Too many {label} files: {len(documents)} (maximum {MAX_FILES})")
    for doc in documents:
        if not is_supported_mime_type(doc.mime_type):
            errors.append(f"{doc.name}: unsupported file type {doc.mime_type or 'unknown'}")
        if len(doc.data) > MAX_FILE_SIZE:
            errors.append(f"{doc.name}: file exceeds {MAX_FILE_SIZE // (1024 * 1024)}MB limit")
        if not doc.data:
            errors.append(f"{doc.name}: file is empty")
    return errors


def estimate_pdf_pages(pdf_bytes: bytes) -> int:
    return max(1, math.ceil(len(pdf_bytes) / ESTIMATED_PDF_PAGE_BYTES))


def count_pdf_pages(pdf_bytes: bytes) -> int:
    """Page count via PyMuPDF, falling back to a size-based estimate."""
    if not pdf_bytes:
        return 1
    try:
        with fitz.open(stream=pdf_bytes, filetype="pdf") as doc:
            if doc.page_count > 0:
                return doc.page_count
    except Exception as e:
        logger.warning(f"Could not open PDF to count pages ({e}), estimating from size")
    return estimate_pdf_pages(pdf_bytes)


def count_document_pages(documents: List[DocumentBlob]) -> int:
    """Pages across a set of uploads: PDFs by page count, each image as one page."""
    total = 0
    for doc in documents:
        if (doc.mime_type or "").lower() == "application/pdf":
            total += count_pdf_pages(doc.data)
        elif is_supported_mime_type(doc.mime_type):
            total += 1
    return total
