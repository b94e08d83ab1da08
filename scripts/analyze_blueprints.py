"""
Run a blueprint analysis on local files and print the result as JSON.

Intended for trying prompts and the normalizer locally without the web
layer. Requires OPENAI_API_KEY unless --response-file is given.

Usage:
  python scripts/analyze_blueprints.py plans/floor1.png plans/floor2.jpg --trade electrical --level fullEstimate
  python scripts/analyze_blueprints.py --response-file saved-response.txt --trade electrical --out result.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Dict, List

from config.errors import TakeoffError
from config.settings import settings
from models.analysis import AnalysisLevel, AnalysisRequest, BlueprintImage, Trade
from services.blueprint_analyzer import BlueprintAnalyzer
from services.estimation_engine import EstimationEngine
from services.response_normalizer import normalize_response
from utils.analysis_logger import configure_logging
from validators.takeoff_validator import validate_materials


def _load_images(paths: List[str]) -> List[BlueprintImage]:
    images = []
    for path in paths:
        with open(path, "rb") as f:
            images.append(BlueprintImage(filename=os.path.basename(path), data=f.read()))
    return images


async def _analyze(args: argparse.Namespace) -> Dict[str, Any]:
    request = AnalysisRequest(
        images=tuple(_load_images(args.files)),
        trade=args.trade,
        analysis_level=AnalysisLevel(args.level),
        project_type=args.project_type,
    )
    analyzer = BlueprintAnalyzer()
    result = await analyzer.analyze_safe(request, use_cache=False)
    return result.to_dict()


def _normalize_saved(args: argparse.Namespace) -> Dict[str, Any]:
    with open(args.response_file, "r", encoding="utf-8") as f:
        raw_text = f.read()

    trade = Trade.from_value(args.trade)
    level = AnalysisLevel(args.level)
    result = normalize_response(raw_text, level, trade)
    result = EstimationEngine().enrich(result, level, trade)
    if trade is Trade.ELECTRICAL:
        result = result.model_copy(update={"validation_issues": validate_materials(result.materials)})
    return result.to_dict()


def main() -> int:
    parser = argparse.ArgumentParser(description="Analyze blueprint images and print the takeoff as JSON")
    parser.add_argument("files", nargs="*", help="Blueprint image files (jpg, png, pdf)")
    parser.add_argument("--trade", default="electrical", help="Trade (electrical, plumbing, ..., other)")
    parser.add_argument(
        "--level",
        default=AnalysisLevel.TAKEOFF.value,
        choices=[level.value for level in AnalysisLevel],
        help="Analysis level",
    )
    parser.add_argument("--project-type", required=False, help="Project type (e.g., residential remodel)")
    parser.add_argument(
        "--response-file",
        required=False,
        help="Normalize a saved reasoning-service response instead of calling the service",
    )
    parser.add_argument("--out", required=False, help="Output file path (defaults to stdout)")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")
    args = parser.parse_args()

    configure_logging(settings.log_level, json_output=args.json_logs)

    if args.response_file:
        output = _normalize_saved(args)
    elif args.files:
        try:
            output = asyncio.run(_analyze(args))
        except TakeoffError as e:
            print(json.dumps(e.to_dict(), indent=2))
            return 2
    else:
        parser.error("give at least one blueprint file or --response-file")
        return 2

    rendered = json.dumps(output, indent=2)
    if args.out:
        with open(args.out, "w", encoding="utf-8") as f:
            f.write(rendered)
        print(f"Wrote {args.out}")
    else:
        print(rendered)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
