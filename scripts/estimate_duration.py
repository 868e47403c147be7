#!/usr/bin/env python3
"""Estimate the loop duration of pattern files.

Usage:
    python scripts/estimate_duration.py pattern.js            # one file
    python scripts/estimate_duration.py patterns/*.js --json  # machine readable
    cat pattern.js | python scripts/estimate_duration.py -    # stdin
"""

import argparse
import json
import logging
import os
import sys
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from strudeltap.config import settings
from strudeltap.pattern.duration import estimate_duration

logger = logging.getLogger("estimate_duration")


def main():
    parser = argparse.ArgumentParser(description="Estimate pattern loop durations")
    parser.add_argument("files", nargs="+", help="Pattern source files, or - for stdin")
    parser.add_argument("--json", action="store_true", help="Print one JSON object per file")
    args = parser.parse_args()

    logging.basicConfig(level=settings.log_level, format="%(name)s %(levelname)s: %(message)s")

    failures = 0
    for name in args.files:
        text = sys.stdin.read() if name == "-" else Path(name).read_text(encoding="utf-8")
        try:
            est = estimate_duration(text)
        except ZeroDivisionError:
            logger.error(f"{name}: pattern sets a tempo of zero")
            failures += 1
            continue

        if args.json:
            print(json.dumps({
                "file": name,
                "cpm": est.cycles_per_minute,
                "cycles": est.cycle_count,
                "seconds": est.seconds,
                "formatted": est.formatted,
            }))
        else:
            print(f"{name:<40s} {est.formatted:>6s}  "
                  f"({est.cycle_count:g} cycles @ {est.cycles_per_minute:g} cpm)")

    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
