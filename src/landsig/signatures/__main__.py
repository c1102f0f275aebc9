#!/usr/bin/env python3
"""landsig.signatures

Signature CLI for landsig.

This is one of two landsig subsystem CLIs:
- landsig.signatures → turn land-cover grids into tile signatures (this file)
- landsig.compare    → compare two signature tables, cluster tiles

landsig.signatures defines WHAT each tile looks like. landsig.compare only
ever reads the tables written here (or equivalent tables from elsewhere).

Design notes:
- Grids arrive as .npy arrays already cropped to a region. Reading rasters
  and handling CRS happen upstream, not here.
- Config YAML gives the category legend and defaults; flags override.
- All subcommands support --dry-run.

Examples:
  # Composition signatures over 100x100-cell tiles
  python -m landsig.signatures extract \
    --grid data/interim/grids/country_a.npy \
    --out data/interim/signatures/country_a.csv

  # Check a table against the validation policy
  python -m landsig.signatures validate --table data/interim/signatures/country_a.csv
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional

from landsig.config import (
    DEFAULT_CONFIG_YAML,
    SIGNATURE_KINDS,
    format_share,
    load_settings,
    load_yaml,
)


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for landsig.signatures."""
    ap = argparse.ArgumentParser(
        prog="landsig.signatures",
        description="Tile signatures for landsig",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subsystem CLIs:
  python -m landsig.signatures  # Tile signatures (this)
  python -m landsig.compare     # Divergence, unique tiles, clustering
        """,
    )

    # --- Global args ---
    ap.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_YAML,
        help=f"Path to run config YAML (default: {DEFAULT_CONFIG_YAML})",
    )
    ap.add_argument(
        "--dry-run",
        action="store_true",
        help="Print planned actions without writing files",
    )
    ap.add_argument(
        "--overwrite",
        action="store_true",
        help="Overwrite existing output files",
    )

    sub = ap.add_subparsers(dest="command", required=True)

    # --- extract ---
    ext = sub.add_parser(
        "extract",
        help="Compute per-tile signatures from a categorical grid",
        description="""
Cut a categorical land-cover grid (.npy) into square tiles and write one
signature row per tile.

Tiles with too much nodata are written with empty values; the validation
policy decides later whether they are dropped.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ext.add_argument("--grid", required=True, type=Path, help="2-D .npy array of category codes")
    ext.add_argument("--out", required=True, type=Path, help="Output table (.csv or .parquet)")
    ext.add_argument("--window", type=int, default=None, help="Tile edge in cells (default from config)")
    ext.add_argument("--kind", choices=SIGNATURE_KINDS, default=None, help="Signature kind (default from config)")
    ext.add_argument("--nodata", type=int, default=None, help="Nodata code (default from config)")
    ext.add_argument(
        "--max-nodata-share",
        type=float,
        default=None,
        help="Tiles above this nodata share become undefined (default from config)",
    )

    # --- validate ---
    val = sub.add_parser("validate", help="Validate a signature table against the config policies")
    val.add_argument("--table", required=True, type=Path, help="Signature table (.csv or .parquet)")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _handle_extract(args: argparse.Namespace, settings) -> int:
    settings = settings.override(
        window=args.window,
        kind=args.kind,
        nodata=args.nodata,
        max_nodata_share=args.max_nodata_share,
    )

    if not args.grid.exists():
        raise SystemExit(f"Grid not found: {args.grid}")

    if args.dry_run:
        print("[dry-run] Would extract signatures:")
        print(f"  Grid: {args.grid}")
        print(f"  Output: {args.out}")
        print(f"  Window/Kind: {settings.window} / {settings.kind}")
        print(f"  Categories: {settings.category_codes}")
        return 0

    if args.out.exists() and not args.overwrite:
        print(f"[SKIP] {args.out} exists (use --overwrite)")
        return 0

    # Lazy import: keeps CLI startup fast
    import numpy as np

    from landsig.signatures.extract import extract_signatures
    from landsig.signatures.tables import write_table

    grid = np.load(args.grid)
    sigs = extract_signatures(
        grid,
        settings.category_codes,
        window=settings.window,
        kind=settings.kind,
        nodata=settings.nodata,
        max_nodata_share=settings.max_nodata_share,
    )

    n_undefined = int(np.isnan(sigs.vectors).all(axis=1).sum())
    write_table(sigs.to_frame(), args.out, overwrite=True)

    print(f"[SIGNATURES] {len(sigs.ids)} tiles ({settings.kind}, window={settings.window}) -> {args.out}")
    print(f"  - undefined tiles: {n_undefined}")
    print(f"  - mean nodata share: {format_share(float(sigs.index['nodata_share'].mean()))}")
    return 0


def _handle_validate(args: argparse.Namespace, settings) -> int:
    if args.dry_run:
        print(f"[dry-run] Would validate {args.table} (missing={settings.missing_policy}, invalid={settings.invalid_policy})")
        return 0

    from landsig.errors import SignatureError
    from landsig.signatures.tables import collection_from_table, read_table

    df = read_table(args.table)
    try:
        coll = collection_from_table(
            df,
            categories=settings.signature_columns,
            name=args.table.stem,
            missing_policy=settings.missing_policy,
            invalid_policy=settings.invalid_policy,
            sum_tolerance=settings.sum_tolerance,
        )
    except SignatureError as e:
        print(f"[INVALID] {args.table}: {e}")
        return 2

    print(f"[OK] {args.table}: {coll.size} usable tiles of {len(df)}")
    print(f"  - excluded undefined: {coll.excluded_count('undefined')}")
    print(f"  - excluded invalid: {coll.excluded_count('invalid')}")
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for landsig.signatures CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "extract": _handle_extract,
        "validate": _handle_validate,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    # Load YAML only once, inside main (so import doesn't have side effects).
    # Bad config values or flag overrides surface as ValueError; fail with a message.
    try:
        settings = load_settings(load_yaml(args.config))
        return handler(args, settings)
    except ValueError as e:
        raise SystemExit(f"[ERROR] {e}") from e


if __name__ == "__main__":
    raise SystemExit(main())
