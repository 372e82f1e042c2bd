"""Billing data import endpoints."""

import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from billing_pilot.api.deps import get_current_user_id
from billing_pilot.config import get_settings
from billing_pilot.models.billing import (
    AnalyzeRequest,
    ModelRecommendation,
    ParseResponse,
    ParseTextRequest,
)
from billing_pilot.services.analysis import recommend_billing_model
from billing_pilot.services.billing_parser import ParserConfig, parse_billing_text
from billing_pilot.services.extraction import UnsupportedFileType, get_extraction_service

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(prefix="/api/parse", tags=["parse"])


def items_message(count: int) -> str:
    return f"{count} items found" if count else "No services detected"


@router.post("/text", response_model=ParseResponse)
async def parse_text(
    body: ParseTextRequest,
    user_id: str = Depends(get_current_user_id),
):
    """
    Parse pasted billing data.

    Accepts JSON, CSV/TSV/pipe tables (with or without a header row) and
    freeform "Name - $price" lines.
    """
    config = ParserConfig(
        default_currency=(body.default_currency or settings.default_currency).upper(),
        source=body.source,
    )
    result = parse_billing_text(body.text, config)

    return ParseResponse(
        success=True,
        items=result.items,
        count=result.count,
        structure=result.structure,
        delimiter=result.delimiter,
        method="text_parser",
        message=items_message(result.count),
    )


@router.post("/file", response_model=ParseResponse)
async def parse_file(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user_id),
):
    """
    Extract billing items from an uploaded file.

    Supports Excel, CSV, JSON, PDF, plain text and images (OCR).
    """
    content = await file.read()
    if not content:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File is too large (max {settings.max_upload_mb}MB)",
        )

    service = get_extraction_service()
    try:
        result = await asyncio.to_thread(
            service.extract_from_file, file.filename or "", file.content_type, content
        )
    except UnsupportedFileType as e:
        raise HTTPException(status_code=415, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    logger.info(f"Extracted {len(result.items)} items from {file.filename} via {result.method}")

    return ParseResponse(
        success=True,
        items=result.items,
        count=len(result.items),
        structure=result.structure,
        method=result.method,
        confidence=result.confidence,
        message=items_message(len(result.items)),
        extracted_text=result.extracted_text,
    )


@router.post("/analyze", response_model=ModelRecommendation)
async def analyze_items(
    body: AnalyzeRequest,
    user_id: str = Depends(get_current_user_id),
):
    """Recommend a billing model for parsed items."""
    return recommend_billing_model(body.items)
