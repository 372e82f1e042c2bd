#!/usr/bin/env python3
"""
Try the extractor on a local file.

Usage:
    python scripts/parse_file.py ~/pricing.xlsx
    python scripts/parse_file.py ~/price_sheet.png --analyze

Prints the extraction method and confidence, the parsed items, and
optionally the billing model recommendation.
"""

import argparse
import mimetypes
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from billing_pilot.services.analysis import recommend_billing_model
from billing_pilot.services.extraction import get_extraction_service


def main():
    parser = argparse.ArgumentParser(description="Parse a pricing file")
    parser.add_argument("path", help="CSV, Excel, JSON, PDF, image or text file")
    parser.add_argument("--analyze", "-a", action="store_true", help="Also recommend a billing model")
    args = parser.parse_args()

    path = Path(args.path).expanduser()
    if not path.exists():
        print(f"File not found: {path}")
        sys.exit(1)

    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    print(f"Processing: {path} ({content_type})")
    print("=" * 60)

    try:
        result = get_extraction_service().extract_from_file(path.name, content_type, path.read_bytes())
    except (ValueError, RuntimeError) as e:
        print(f"Extraction failed: {e}")
        sys.exit(1)

    print(f"Method: {result.method}  Confidence: {result.confidence}%")
    if result.structure:
        print(f"Structure: {result.structure.value}")
    print("-" * 60)

    for item in result.items:
        extra = f"  [{item.event_name}/{item.unit}]" if item.event_name else ""
        print(f"  {item.name:<36} {item.price:>12.4f} {item.currency}  {item.type.value}{extra}")

    print("-" * 60)
    print(f"{len(result.items)} items")

    if args.analyze and result.items:
        recommendation = recommend_billing_model(result.items)
        print("\nRecommendation:")
        print(f"  {recommendation.recommended_model} ({recommendation.confidence}%)")
        print(f"  {recommendation.reasoning}")
        for pattern in recommendation.detected_patterns:
            print(f"  - {pattern}")


if __name__ == "__main__":
    main()
