"""
Artifact Validation
===================
Checks a ``model.json`` before it is deployed.

Usage:
    python -m ml.validate                       # default artifacts/model.json
    python -m ml.validate path/to/model.json
    python -m ml.validate path/to/model.json --json

Exit status is 0 when the artifact loads cleanly, 1 otherwise.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ml.config import MODEL_PATH
from ml.price_model import ModelLoadError, PriceModel, load_price_model

logger = logging.getLogger(__name__)


def summarize(model: PriceModel) -> dict:
    premiums = model.regression.location_premiums
    ranked = sorted(premiums.items(), key=lambda kv: kv[1])
    return {
        "trained_at": model.meta.trained_at,
        "training_rows": model.meta.training_rows,
        "r2": model.meta.r2,
        "approx_rmse_multiplier": model.meta.approx_rmse_multiplier,
        "locations_in_model": model.meta.locations_in_model,
        "location_premiums": len(premiums),
        "location_stats": len(model.location_stats),
        "cheapest_premium": ranked[0][0] if ranked else None,
        "dearest_premium": ranked[-1][0] if ranked else None,
    }


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Validate a price model artifact")
    parser.add_argument("path", nargs="?", default=str(MODEL_PATH), help="model.json to check")
    parser.add_argument("--json", action="store_true", help="print the summary as JSON")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)-8s | %(message)s")

    try:
        model = load_price_model(Path(args.path))
    except ModelLoadError as e:
        logger.error("%s", e)
        print(f"INVALID: {e}")
        return 1

    summary = summarize(model)
    if args.json:
        print(json.dumps(summary, indent=2))
    else:
        print(f"OK: {args.path}")
        for key, value in summary.items():
            print(f"  {key:<24} {value}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
