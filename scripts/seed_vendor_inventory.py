#!/usr/bin/env python3
"""Seed or import a vendor's QR inventory pool.

Examples:
    python scripts/seed_vendor_inventory.py 42 --count 500
    python scripts/seed_vendor_inventory.py 42 --series A:300 --series B:200
    python scripts/seed_vendor_inventory.py 42 --import-series DIWALI --hash-file hashes.txt
"""

from __future__ import annotations

import argparse
import logging

from app.core.database import SessionLocal
from app.core.logging import configure_logging
from app.services.errors import LedgerError
from app.services.inventory import SeriesSpec, import_inventory_series, seed_vendor_inventory


def fail(message: str) -> None:
    print(f"ERROR: {message}")
    raise SystemExit(1)


def parse_series(value: str) -> SeriesSpec:
    code, sep, count = value.partition(":")
    if not sep or not code.strip():
        raise argparse.ArgumentTypeError("series must look like CODE:COUNT")
    try:
        return SeriesSpec(code.strip(), int(count))
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid count in {value!r}")


def read_hashes(path: str) -> list[str]:
    with open(path, encoding="utf-8") as handle:
        return [line.strip() for line in handle if line.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("vendor_id", type=int)
    parser.add_argument("--count", type=int, default=None, help="codes to seed into the AUTO series")
    parser.add_argument("--series", type=parse_series, action="append", default=None, help="CODE:COUNT, repeatable")
    parser.add_argument("--import-series", default=None, help="import externally generated hashes into this series")
    parser.add_argument("--hash-file", default=None, help="one hash per line, used with --import-series")
    parser.add_argument("--source-batch", default=None)
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging()
    logger = logging.getLogger("seed_vendor_inventory")

    db = SessionLocal()
    try:
        if args.import_series:
            if not args.hash_file:
                fail("--hash-file is required with --import-series")
            result = import_inventory_series(
                db,
                args.vendor_id,
                args.import_series,
                read_hashes(args.hash_file),
                source_batch=args.source_batch,
            )
            logger.info(
                "Imported %s of %s codes into %s (%s duplicates)",
                result.created,
                result.requested,
                result.series_code,
                result.duplicates,
            )
        else:
            result = seed_vendor_inventory(db, args.vendor_id, target_count=args.count, series=args.series)
            logger.info("Seeded %s codes; vendor now has %s available", result.created, result.total)
    except LedgerError as exc:
        fail(f"{exc.code}: {exc.message}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
