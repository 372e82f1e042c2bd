"""PDF text extraction using pdfplumber."""

import io
import logging
from dataclasses import dataclass, field

import pdfplumber

logger = logging.getLogger(__name__)


@dataclass
class PDFParseResult:
    text: str
    num_pages: int
    tables: list[list[list]] = field(default_factory=list)
    metadata: dict = field(default_factory=dict)


def parse_pdf(content: bytes) -> PDFParseResult:
    """
    Extract text and tables from every page of a PDF.

    Raises ValueError if the document can't be read.
    """
    pages_text = []
    tables = []
    try:
        with pdfplumber.open(io.BytesIO(content)) as pdf:
            num_pages = len(pdf.pages)
            for page_number, page in enumerate(pdf.pages, start=1):
                pages_text.append(page.extract_text() or "")
                for table in page.extract_tables():
                    if table:
                        tables.append(table)
                logger.debug(f"Processed page {page_number}/{num_pages}")
            metadata = dict(pdf.metadata or {})
    except Exception as e:
        raise ValueError(f"PDF parsing failed: {e}") from e

    result = PDFParseResult(
        text="\n".join(pages_text).strip(),
        num_pages=num_pages,
        tables=tables,
        metadata=metadata,
    )
    logger.info(f"PDF parsed: {result.num_pages} pages, {len(tables)} tables")
    return result
