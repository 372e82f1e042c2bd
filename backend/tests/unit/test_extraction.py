"""
Unit tests for file extraction.
"""

import json
import pandas as pd
import pytest
from unittest.mock import patch

from billing_pilot.models.billing import BillingType, StructureHint
from billing_pilot.services.extraction import DataExtractionService, UnsupportedFileType
from billing_pilot.services.ocr import OCRResult
from billing_pilot.services.pdf import PDFParseResult

# Compound document signature shared by legacy .xls files
OLE2_HEADER = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"


@pytest.fixture
def service():
    return DataExtractionService()


class TestDispatch:

    @pytest.mark.unit
    def test_unsupported_type(self, service):
        with pytest.raises(UnsupportedFileType):
            service.extract_from_file("archive.zip", "application/zip", b"PK")

    @pytest.mark.unit
    def test_unsupported_is_value_error(self):
        assert issubclass(UnsupportedFileType, ValueError)

    @pytest.mark.unit
    def test_csv_by_mime_type(self, service):
        result = service.extract_from_file("upload", "text/csv", b"API Calls,0.02")
        assert result.method == "csv_extraction"

    @pytest.mark.unit
    def test_txt(self, service):
        result = service.extract_from_file("notes.txt", "text/plain", b"Storage - $5.00")

        assert result.method == "text_extraction"
        assert result.confidence == 85
        assert result.items[0].name == "Storage"


class TestCSV:

    @pytest.mark.unit
    def test_csv(self, service, sample_csv_text):
        result = service.extract_from_file("prices.csv", "text/csv", sample_csv_text.encode())

        assert result.method == "csv_extraction"
        assert result.confidence == 98
        assert [i.name for i in result.items] == ["API Calls", "Storage", "Support"]
        assert all(i.source == "csv_extraction" for i in result.items)

    @pytest.mark.unit
    def test_utf8_bom(self, service):
        result = service.extract_from_csv("\ufeffService,Price\nAPI Calls,0.02".encode("utf-8"))
        assert [i.name for i in result.items] == ["API Calls"]

    @pytest.mark.unit
    def test_latin1(self, service):
        result = service.extract_from_csv("Caf\xe9 Hosting,12".encode("latin-1"))
        assert result.items[0].name == "Caf\xe9 Hosting"

    @pytest.mark.unit
    def test_empty_csv(self, service):
        with pytest.raises(ValueError, match="empty"):
            service.extract_from_csv(b"   \n")


class TestJSON:

    @pytest.mark.unit
    def test_array(self, service):
        payload = json.dumps([{"name": "API Calls", "price": 0.02}]).encode()
        result = service.extract_from_file("items.json", "application/json", payload)

        assert result.confidence == 99
        assert result.structure == StructureHint.JSON
        assert result.items[0].price == 0.02

    @pytest.mark.unit
    def test_single_object(self, service):
        result = service.extract_from_json(b'{"name": "Seat", "price": 12}')
        assert result.items[0].name == "Seat"

    @pytest.mark.unit
    def test_products_key(self, service):
        result = service.extract_from_json(b'{"products": [{"name": "Seat", "unit_amount": 1200}]}')
        assert result.items[0].price == 12.0

    @pytest.mark.unit
    def test_invalid_json(self, service):
        with pytest.raises(ValueError, match="Invalid JSON"):
            service.extract_from_json(b"{nope")

    @pytest.mark.unit
    def test_scalar_json(self, service):
        with pytest.raises(ValueError):
            service.extract_from_json(b"42")


class TestExcel:

    @pytest.mark.unit
    def test_xlsx(self, service, excel_bytes):
        result = service.extract_from_file(
            "prices.xlsx",
            "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            excel_bytes,
        )

        assert result.method == "excel_extraction"
        assert result.confidence == 95
        assert [i.name for i in result.items] == ["API Calls", "Storage", "Support"]
        assert result.items[0].type == BillingType.METERED
        assert result.items[0].event_name == "api_calls"
        assert result.items[2].price == 99
        assert result.items[2].type == BillingType.ONE_TIME

    @pytest.mark.unit
    def test_excel_disabled(self, service, excel_bytes):
        with patch("billing_pilot.services.extraction.settings") as mock_settings:
            mock_settings.feature_excel_extraction = False
            with pytest.raises(UnsupportedFileType):
                service.extract_from_file("prices.xlsx", None, excel_bytes)

    @pytest.mark.unit
    def test_legacy_xls(self, service):
        frame = pd.DataFrame([["Product", "Price"], ["Support", 99]], dtype=object)
        with patch("billing_pilot.services.extraction.pd.read_excel", return_value=frame) as read_excel:
            result = service.extract_from_file("prices.xls", "application/vnd.ms-excel", OLE2_HEADER)

        assert read_excel.called
        assert result.method == "excel_extraction"
        assert [(i.name, i.price) for i in result.items] == [("Support", 99)]

    @pytest.mark.unit
    @pytest.mark.parametrize("filename", ["prices.xls", "prices.xlsx"])
    def test_corrupt_workbook(self, service, filename):
        with pytest.raises(ValueError, match="Excel parsing failed"):
            service.extract_from_file(filename, None, OLE2_HEADER + b"\x00" * 64)


class TestPDF:

    @pytest.mark.unit
    def test_tables_preferred(self, service):
        pdf = PDFParseResult(
            text="Price sheet",
            num_pages=1,
            tables=[[["Service", "Price"], ["API Calls", "$0.02"], ["Storage", "$5"]]],
        )
        with patch("billing_pilot.services.extraction.parse_pdf", return_value=pdf):
            result = service.extract_from_file("sheet.pdf", "application/pdf", b"%PDF")

        assert result.method == "pdf_table_extraction"
        assert [i.name for i in result.items] == ["API Calls", "Storage"]

    @pytest.mark.unit
    def test_text_fallback(self, service):
        pdf = PDFParseResult(text="Storage - $5.00\nSupport - $99", num_pages=1)
        with patch("billing_pilot.services.extraction.parse_pdf", return_value=pdf):
            result = service.extract_from_file("sheet.pdf", "application/pdf", b"%PDF")

        assert result.method == "pdf_extraction"
        assert result.confidence == 80
        assert len(result.items) == 2

    @pytest.mark.unit
    def test_no_items(self, service):
        pdf = PDFParseResult(text="Terms and conditions", num_pages=2)
        with patch("billing_pilot.services.extraction.parse_pdf", return_value=pdf):
            result = service.extract_from_pdf(b"%PDF")

        assert result.items == []
        assert result.method == "pdf_text_extraction"
        assert result.extracted_text == "Terms and conditions"

    @pytest.mark.unit
    def test_unreadable_pdf(self, service):
        with pytest.raises(ValueError, match="PDF parsing failed"):
            service.extract_from_pdf(b"not a pdf")


class TestImage:

    @pytest.mark.unit
    def test_ocr(self, service, image_bytes):
        ocr = OCRResult(text="API Calls - $0.02\nStorage - $5.00", confidence=91.4)
        with patch("billing_pilot.services.extraction.ocr_image", return_value=ocr), \
             patch.object(DataExtractionService, "ocr_available", True):
            result = service.extract_from_file("shot.png", "image/png", image_bytes)

        assert result.method == "image_ocr"
        assert result.confidence == 91
        assert [i.name for i in result.items] == ["API Calls", "Storage"]
        assert all(i.source == "OCR" for i in result.items)

    @pytest.mark.unit
    def test_ocr_failure(self, service, image_bytes):
        with patch("billing_pilot.services.extraction.ocr_image", return_value=None), \
             patch.object(DataExtractionService, "ocr_available", True):
            with pytest.raises(RuntimeError):
                service.extract_from_image(image_bytes)

    @pytest.mark.unit
    def test_ocr_unavailable(self, service, image_bytes):
        with patch.object(DataExtractionService, "ocr_available", False):
            with pytest.raises(RuntimeError, match="not available"):
                service.extract_from_image(image_bytes)

    @pytest.mark.unit
    def test_too_large(self, service):
        with patch("billing_pilot.services.extraction.settings") as mock_settings:
            mock_settings.max_upload_bytes = 10
            mock_settings.max_upload_mb = 0
            with pytest.raises(ValueError, match="too large"):
                service.extract_from_image(b"x" * 11)
