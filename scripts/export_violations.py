#!/usr/bin/env python3
"""Export a filtered slice of the violations dataset without starting the dashboard.

Usage:
    python scripts/export_violations.py --start 2022-01-01 --end 2022-12-31 \
        --neighborhood Loop --neighborhood "Humboldt Park" [--fines-only] [--out PATH]

Writes: Chicago_bldg_violation_data.csv (or --out)
"""
import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / 'src'
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from utils.config import DashboardConfig
from utils.exceptions import LoadError, ParseError
from utils.logger_config import setup_logger
from view_adapters import EXPORT_FILENAME, to_csv_bytes
from violation_filters import FilterCriteria, filter_violations
from violation_loader import ViolationDatasetLoader

logger = setup_logger('export_violations')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description='Export filtered Chicago vacant building violations to CSV')
    parser.add_argument('--start', required=True, help='First issue date, YYYY-MM-DD (inclusive)')
    parser.add_argument('--end', required=True, help='Last issue date, YYYY-MM-DD (inclusive)')
    parser.add_argument('--neighborhood', action='append', default=[], help='Neighborhood name; repeat for several')
    parser.add_argument('--fines-only', action='store_true', help='Only violations with an amount still due')
    parser.add_argument('--out', default=EXPORT_FILENAME, help='Output CSV path')
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    try:
        dataset = ViolationDatasetLoader(DashboardConfig.from_env()).load()
    except (LoadError, ParseError) as e:
        logger.critical(f'Load failed: {e}')
        return 1

    unknown = sorted(set(args.neighborhood) - set(dataset.neighborhood_names))
    if unknown:
        logger.warning(f'Unknown neighborhoods will match nothing: {unknown}')

    criteria = FilterCriteria.build(args.start, args.end, args.neighborhood, args.fines_only)
    view = filter_violations(dataset.violations, criteria)

    out = Path(args.out)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(to_csv_bytes(view))
    logger.info(f'Wrote {len(view)} violations to {out}')
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
