"""
File extraction service.

Dispatches an uploaded file to the right reader (spreadsheet, CSV, JSON,
PDF, image OCR, plain text) and runs the result through the billing parser.
Files are handled one at a time; the parser keeps no state between calls.
"""

import io
import json
import logging
from typing import Optional

import pandas as pd

from billing_pilot.config import get_settings
from billing_pilot.models.billing import ExtractionResult, StructureHint
from billing_pilot.services import billing_parser
from billing_pilot.services.billing_parser import ParserConfig
from billing_pilot.services.ocr import ocr_image, TESSERACT_AVAILABLE
from billing_pilot.services.pdf import parse_pdf

logger = logging.getLogger(__name__)
settings = get_settings()


class UnsupportedFileType(ValueError):
    """The upload isn't a format the importer can read."""


def _decode(content: bytes) -> str:
    for encoding in ("utf-8-sig", "latin-1"):
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue
    return content.decode("utf-8", errors="replace")


class DataExtractionService:
    """Extracts billing line items from uploaded files."""

    def __init__(self, config: Optional[ParserConfig] = None):
        self.config = config or ParserConfig(default_currency=settings.default_currency)

    @property
    def ocr_available(self) -> bool:
        return settings.feature_image_ocr and TESSERACT_AVAILABLE

    def extract_from_file(
        self,
        filename: str,
        content_type: Optional[str],
        content: bytes,
    ) -> ExtractionResult:
        """
        Extract billing items from one file.

        Raises:
            UnsupportedFileType: unknown or disabled format
            ValueError: empty or malformed file
            RuntimeError: OCR unavailable or failed
        """
        name = (filename or "").lower()
        mime = (content_type or "").lower()

        if name.endswith((".xlsx", ".xls")):
            if not settings.feature_excel_extraction:
                raise UnsupportedFileType("Excel import is disabled")
            return self.extract_from_excel(content)

        if name.endswith(".csv") or mime == "text/csv":
            return self.extract_from_csv(content)

        if name.endswith(".json") or mime == "application/json":
            return self.extract_from_json(content)

        if name.endswith(".pdf") or mime == "application/pdf":
            if not settings.feature_pdf_extraction:
                raise UnsupportedFileType("PDF import is disabled")
            return self.extract_from_pdf(content)

        if mime.startswith("image/"):
            return self.extract_from_image(content)

        if name.endswith(".txt") or mime == "text/plain":
            return self.extract_from_text(content)

        raise UnsupportedFileType(f"Unsupported file type: {content_type or filename}")

    def extract_from_excel(self, content: bytes) -> ExtractionResult:
        """
        First sheet only; header row mapped when recognizable.

        pandas reads .xlsx with openpyxl and legacy .xls with xlrd.
        """
        try:
            frame = pd.read_excel(io.BytesIO(content), sheet_name=0, header=None, dtype=object)
        except Exception as e:
            raise ValueError(f"Excel parsing failed: {e}") from e
        if frame.empty:
            raise ValueError("Excel file appears to be empty")

        items = billing_parser.parse_rows(frame.values.tolist(), self._config("excel_extraction"))
        return ExtractionResult(
            items=items,
            confidence=95,
            method="excel_extraction",
            structure=StructureHint.TABULAR,
        )

    def extract_from_csv(self, content: bytes) -> ExtractionResult:
        text = _decode(content)
        if not text.strip():
            raise ValueError("CSV file is empty")

        result = billing_parser.parse_billing_text(text, self._config("csv_extraction"))
        return ExtractionResult(
            items=result.items,
            confidence=98,
            method="csv_extraction",
            structure=result.structure,
        )

    def extract_from_json(self, content: bytes) -> ExtractionResult:
        try:
            payload = json.loads(_decode(content))
        except json.JSONDecodeError:
            raise ValueError("Invalid JSON format")

        if isinstance(payload, list):
            records = payload
        elif isinstance(payload, dict):
            records = next(
                (payload[key] for key in billing_parser.JSON_COLLECTION_KEYS
                 if isinstance(payload.get(key), list)),
                [payload],
            )
        else:
            raise ValueError("JSON must be an object or an array of objects")

        items = billing_parser.parse_records(records, self._config("json_extraction"))
        return ExtractionResult(
            items=items,
            confidence=99,
            method="json_extraction",
            structure=StructureHint.JSON,
        )

    def extract_from_pdf(self, content: bytes) -> ExtractionResult:
        pdf = parse_pdf(content)
        config = self._config("pdf_extraction")

        items = []
        for table in pdf.tables:
            items.extend(billing_parser.parse_rows(table, config))

        if items:
            return ExtractionResult(
                items=items,
                confidence=85,
                method="pdf_table_extraction",
                extracted_text=pdf.text,
                structure=StructureHint.TABULAR,
            )

        result = billing_parser.parse_billing_text(pdf.text, config)
        return ExtractionResult(
            items=result.items,
            confidence=80 if result.items else 40,
            method="pdf_extraction" if result.items else "pdf_text_extraction",
            extracted_text=pdf.text,
            structure=result.structure,
        )

    def extract_from_image(self, content: bytes) -> ExtractionResult:
        if len(content) > settings.max_upload_bytes:
            raise ValueError(f"Image file is too large (max {settings.max_upload_mb}MB)")
        if not self.ocr_available:
            raise RuntimeError("Image OCR is not available")

        ocr = ocr_image(content)
        if ocr is None:
            raise RuntimeError("OCR processing failed")

        result = billing_parser.parse_billing_text(ocr.text, self._config("OCR"))
        return ExtractionResult(
            items=result.items,
            confidence=round(ocr.confidence),
            method="image_ocr" if result.items else "image_ocr_fallback",
            extracted_text=ocr.text,
            structure=result.structure,
        )

    def extract_from_text(self, content: bytes) -> ExtractionResult:
        text = _decode(content)
        result = billing_parser.parse_billing_text(text, self._config("text_parser"))
        return ExtractionResult(
            items=result.items,
            confidence=85,
            method="text_extraction",
            extracted_text=text,
            structure=result.structure,
        )

    def _config(self, source: str) -> ParserConfig:
        return self.config.with_overrides(source=source)


# Singleton
_extraction_service: Optional[DataExtractionService] = None


def get_extraction_service() -> DataExtractionService:
    """Get extraction service singleton."""
    global _extraction_service
    if _extraction_service is None:
        _extraction_service = DataExtractionService()
    return _extraction_service
