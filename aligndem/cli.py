from __future__ import annotations

"""
aligndem: estimate the affine map between two DEMs' orthoimages.

Examples:
  aligndem ortho1.tif dem1.tif ortho2.tif dem2.tif out/run1
  python -m aligndem ortho1.tif dem1.tif ortho2.tif dem2.tif out/run1 \
      --config config/aligndem.yaml --cache-dir cache --seed 7 --debug-matches
"""

import argparse
import dataclasses
import sys
from pathlib import Path
from typing import List, Optional

from aligndem.debug import write_match_image
from aligndem.pipeline import align_orthoimages, format_transform
from common.config import load_config
from common.errors import AlignError, SourceUnreadable
from common.logging_setup import get_logger, setup_logging


log = get_logger("aligndem")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="aligndem",
        description="Align two DEMs by matching features in their orthoimages",
    )
    ap.add_argument("ortho1", help="First orthoimage")
    ap.add_argument("dem1", help="First DEM")
    ap.add_argument("ortho2", help="Second orthoimage")
    ap.add_argument("dem2", help="Second DEM")
    ap.add_argument("output_prefix", help="Prefix for files written by this run")
    ap.add_argument("--config", default=None, help="YAML config (default: config/aligndem.yaml if present)")
    ap.add_argument("--cache-dir", default=None, help="Keep interest point/match artifacts here")
    ap.add_argument("--threshold", type=float, default=None, help="RANSAC inlier threshold (degrees)")
    ap.add_argument("--max-iterations", type=int, default=None, help="RANSAC sample cap")
    ap.add_argument("--seed", type=int, default=None, help="RANSAC random seed")
    ap.add_argument("--debug-matches", action="store_true", help="Write <prefix>-matches.png")
    ap.add_argument("--log-level", default=None, help="DEBUG/INFO/WARNING/ERROR")
    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
        overrides = {
            k: v
            for k, v in (("threshold", args.threshold), ("max_iterations", args.max_iterations), ("seed", args.seed))
            if v is not None
        }
        # replace() re-runs RansacConfig validation on the overridden values
        cfg.ransac = dataclasses.replace(cfg.ransac, **overrides)
    except (OSError, ValueError) as e:
        print(f"aligndem: bad config: {e}", file=sys.stderr)
        return 2
    if args.cache_dir is not None:
        cfg.cache_dir = args.cache_dir
    setup_logging(args.log_level or cfg.log_level, force=True)

    try:
        for dem in (args.dem1, args.dem2):
            if not Path(dem).is_file():
                raise SourceUnreadable(dem, "DEM not found")
        log.info("Inputs", extra={"extra": {"ortho1": args.ortho1, "dem1": args.dem1,
                                            "ortho2": args.ortho2, "dem2": args.dem2,
                                            "output_prefix": args.output_prefix}})

        result = align_orthoimages(args.ortho1, args.ortho2, config=cfg)
    except AlignError as e:
        log.error("Alignment failed", extra={"extra": {"error": type(e).__name__, "detail": str(e)}})
        print(f"aligndem: {e}", file=sys.stderr)
        return 1

    print("Ransac Result:")
    print(format_transform(result.transform))
    print(f"# inliers: {result.num_inliers} of {result.num_matches} matches")

    if args.debug_matches:
        try:
            out = write_match_image(f"{args.output_prefix}-matches.png", args.ortho1, args.ortho2,
                                    result.correspondences, result.inliers)
        except (OSError, AlignError) as e:
            log.warning("Could not write debug image", extra={"extra": {"error": str(e)}})
        else:
            if out is not None:
                log.info("Wrote debug image", extra={"extra": {"path": str(out)}})
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
