"""
Text-layer extraction with PyMuPDF.

Produces per-page TextItems for the layout parser. PyMuPDF reports span boxes
top-down; items are converted to the bottom-up, page-local space the parser
expects: y is the distance from the bottom edge to the bottom of the span box.
"""

from pathlib import Path
from typing import List, Optional, Union

import fitz  # PyMuPDF
import structlog

from .domain import TextItem

logger = structlog.get_logger()


class TextLayerError(Exception):
    """The document has no readable text layer (missing, encrypted, corrupt)."""


def page_text_items(page: "fitz.Page") -> List[TextItem]:
    """Convert the text spans of one PyMuPDF page into bottom-up TextItems."""
    height = page.rect.height
    items = []
    # Spans are runs of uniformly styled text, so multi-word labels stay whole
    for block in page.get_text("dict")["blocks"]:
        for line in block.get("lines", ()):
            for span in line["spans"]:
                text = span["text"]
                if not text.strip():
                    continue
                x0, y0, x1, y1 = span["bbox"]
                items.append(TextItem(
                    text=text,
                    x=float(x0),
                    y=float(height - y1),
                    width=float(x1 - x0),
                    height=float(y1 - y0),
                ))
    return items


def extract_text_items(
    pdf_path: Union[str, Path],
    password: Optional[str] = None,
) -> List[List[TextItem]]:
    """
    Extract the text layer of every page of a PDF.

    Args:
        pdf_path: Path to the PDF file
        password: Password for protected statements

    Returns:
        One list of TextItems per page, in page order
    """
    pdf_path = Path(pdf_path)
    if not pdf_path.exists():
        raise TextLayerError(f"PDF not found: {pdf_path}")

    try:
        doc = fitz.open(pdf_path)
    except (fitz.FileDataError, RuntimeError) as e:
        raise TextLayerError(f"Could not open PDF: {e}") from e

    try:
        if doc.needs_pass:
            if not password or not doc.authenticate(password):
                raise TextLayerError("PDF is password protected")

        pages = [page_text_items(page) for page in doc]
    finally:
        doc.close()

    logger.info(
        "Text layer extracted",
        path=str(pdf_path),
        pages=len(pages),
        items=sum(len(p) for p in pages),
    )
    return pages
