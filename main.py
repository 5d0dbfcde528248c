"""
main.py — Single entry point.

  python main.py 4006381333931 -c diabetes -c heart_disease
  python main.py 4006381333931 --json
  python main.py --search "peanut butter" --page 2
  python main.py --conditions
  python main.py                  # read barcodes line by line from stdin
                                  # (keyboard-wedge scanners type + Enter)

Exit status: 0 on success, 2 for rejected input (barcode or search query), 1 for catalog failures.
"""
import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict

import config
import style
from barcode import BarcodeError
from catalog.base import CatalogError
from health_conditions import get_rule_table, list_conditions

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    handlers=[logging.StreamHandler(sys.stderr)]
    + ([logging.FileHandler(config.LOG_FILE, encoding="utf-8")] if config.LOG_FILE else []),
)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CATALOG_ERROR = 1
EXIT_BAD_BARCODE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="labelcheck",
        description="Look up a product by barcode and score it against your health conditions.",
    )
    parser.add_argument("barcode", nargs="?", help="EAN-13 / EAN-8 / UPC-A / UPC-E digits")
    parser.add_argument(
        "-c", "--condition", dest="conditions", action="append", default=None,
        help="health condition id (repeatable); see --conditions",
    )
    parser.add_argument("--json", action="store_true", help="print the analysis as JSON")
    parser.add_argument("--search", metavar="QUERY", help="free-text product search")
    parser.add_argument("--page", type=int, default=1, help="search results page")
    parser.add_argument("--conditions", dest="list_conditions", action="store_true",
                        help="list available health conditions")
    return parser


async def scan_one(session, raw: str, as_json: bool) -> int:
    try:
        outcome = await session.scan(raw)
    except BarcodeError as exc:
        print(style.error_message(exc))
        return EXIT_BAD_BARCODE
    except CatalogError as exc:
        logger.error("Lookup failed for %s: %s", raw.strip(), exc)
        print(style.error_message(exc))
        return EXIT_CATALOG_ERROR

    if as_json:
        print(json.dumps({
            "barcode": outcome.barcode.value,
            "symbology": outcome.barcode.symbology.value,
            "product": asdict(outcome.product),
            "analysis": outcome.analysis.to_dict(),
            "additive_score": outcome.additives.score,
        }, ensure_ascii=False, indent=2))
    else:
        print(style.analysis_report(outcome.product, outcome.analysis, outcome.additives))
    return EXIT_OK


async def run(args: argparse.Namespace) -> int:
    from product_lookup import search_products
    from scanner import ScanSession

    if args.list_conditions:
        print(style.conditions_list(list_conditions()))
        return EXIT_OK

    if args.search:
        try:
            page = await search_products(args.search, page=args.page)
        except CatalogError as exc:
            print(style.error_message(exc))
            return EXIT_CATALOG_ERROR
        except ValueError as exc:
            # blank query or page < 1
            print(f"❌ {exc}")
            return EXIT_BAD_BARCODE
        print(style.search_results(page))
        return EXIT_OK

    # Fail fast on a broken rules file before touching the network
    get_rule_table()
    session = ScanSession(conditions=args.conditions or config.DEFAULT_CONDITIONS)

    if args.barcode:
        return await scan_one(session, args.barcode, args.json)

    status = EXIT_OK
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, sys.stdin.readline)
        if not line:
            break
        if line.strip():
            status = await scan_one(session, line, args.json)
    return status


def main() -> None:
    args = build_parser().parse_args()
    try:
        sys.exit(asyncio.run(run(args)))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
