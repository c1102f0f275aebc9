#!/usr/bin/env python3
"""landsig.compare

Comparison CLI for landsig.

This is one of two landsig subsystem CLIs:
- landsig.signatures → turn land-cover grids into tile signatures
- landsig.compare    → compare two signature tables, cluster tiles (this file)

Responsibilities:
- Validate both tables with the config's missing/invalid policies
- Build the A x B Jensen-Shannon divergence matrix
- Report each side's most distinctive tile and a top-N ranking
- Cluster the merged A+B tile pool

Outputs (run):
- <out-dir>/divergence.npy   → dense A x B matrix (rows = A)
- <out-dir>/unique_a.csv     → A tiles ranked by best-match distance
- <out-dir>/unique_b.csv     → same for B
- <out-dir>/summary.json     → counts and the two extremal tiles

Examples:
  python -m landsig.compare run \
    --a data/interim/signatures/country_a.csv \
    --b data/interim/signatures/country_b.csv \
    --name-a austria --name-b switzerland

  python -m landsig.compare cluster --a ... --b ... --k 6 --out data/processed/clusters.csv
"""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List, Optional

from landsig.config import (
    DEFAULT_CONFIG_YAML,
    DEFAULT_OUT_DIR,
    LINKAGE_METHODS,
    load_settings,
    load_yaml,
)


# -----------------------------------------------------------------------------
# CLI structure
# -----------------------------------------------------------------------------

def _add_pair_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--a", required=True, type=Path, help="Signature table for region A")
    p.add_argument("--b", required=True, type=Path, help="Signature table for region B")
    p.add_argument("--name-a", default=None, help="Label for region A (default: file stem)")
    p.add_argument("--name-b", default=None, help="Label for region B (default: file stem)")
    p.add_argument("--workers", type=int, default=None, help="Threads for the divergence matrix (default from config)")
    p.add_argument("--batch-rows", type=int, default=None, help="Rows per batch (default from config)")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for landsig.compare."""
    ap = argparse.ArgumentParser(
        prog="landsig.compare",
        description="Compare land-cover signatures between two regions",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Subsystem CLIs:
  python -m landsig.signatures  # Tile signatures
  python -m landsig.compare     # Divergence, unique tiles, clustering (this)
        """,
    )

    # --- Global args ---
    ap.add_argument(
        "--config",
        type=Path,
        default=DEFAULT_CONFIG_YAML,
        help=f"Path to run config YAML (default: {DEFAULT_CONFIG_YAML})",
    )
    ap.add_argument("--dry-run", action="store_true", help="Print planned actions without writing files")
    ap.add_argument("--overwrite", action="store_true", help="Overwrite existing output files")

    sub = ap.add_subparsers(dest="command", required=True)

    # --- run ---
    run = sub.add_parser(
        "run",
        help="Divergence matrix + most unique tiles for A vs B",
        description="""
Compare every tile of A with every tile of B (Jensen-Shannon divergence),
then report, for each side, the tile whose closest counterpart is furthest away.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    _add_pair_args(run)
    run.add_argument(
        "--out-dir",
        type=Path,
        default=DEFAULT_OUT_DIR,
        help=f"Output directory (default: {DEFAULT_OUT_DIR})",
    )
    run.add_argument("--top", type=int, default=None, help="Tiles listed per side in the printout (default from config)")

    # --- cluster ---
    clu = sub.add_parser("cluster", help="Cluster the merged A+B tile pool")
    _add_pair_args(clu)
    clu.add_argument("--k", type=int, default=None, help="Number of clusters (default from config)")
    clu.add_argument("--method", choices=LINKAGE_METHODS, default=None, help="Linkage method (default from config)")
    clu.add_argument("--out", required=True, type=Path, help="Output table (.csv or .parquet)")

    return ap


# -----------------------------------------------------------------------------
# Command handlers
# -----------------------------------------------------------------------------

def _load_pair(args: argparse.Namespace, settings):
    """Read and validate both tables. Errors propagate as SignatureError."""
    from landsig.signatures.tables import collection_from_table, read_table

    out = []
    for path, name in ((args.a, args.name_a), (args.b, args.name_b)):
        out.append(
            collection_from_table(
                read_table(path),
                categories=settings.signature_columns,
                name=name or path.stem,
                missing_policy=settings.missing_policy,
                invalid_policy=settings.invalid_policy,
                sum_tolerance=settings.sum_tolerance,
            )
        )
    return out[0], out[1]


def _handle_run(args: argparse.Namespace, settings) -> int:
    settings = settings.override(workers=args.workers, batch_rows=args.batch_rows, top=args.top)

    outputs = {
        "matrix": args.out_dir / "divergence.npy",
        "unique_a": args.out_dir / "unique_a.csv",
        "unique_b": args.out_dir / "unique_b.csv",
        "summary": args.out_dir / "summary.json",
    }

    if args.dry_run:
        print("[dry-run] Would compare:")
        print(f"  A: {args.a}")
        print(f"  B: {args.b}")
        for key, path in outputs.items():
            print(f"  {key}: {path}")
        return 0

    existing = [p for p in outputs.values() if p.exists()]
    if existing and not args.overwrite:
        print(f"[SKIP] outputs already exist in {args.out_dir} (use --overwrite)")
        return 0

    import numpy as np

    from landsig.compare.extremes import compare_collections
    from landsig.errors import SignatureError
    from landsig.signatures.tables import write_table

    try:
        a, b = _load_pair(args, settings)
        print(f"[COMPARE] {a.name} ({a.size} tiles) vs {b.name} ({b.size} tiles)")
        result = compare_collections(a, b, workers=settings.workers, batch_rows=settings.batch_rows)
    except SignatureError as e:
        print(f"[INVALID] {e}")
        return 2

    fa, fb = result.to_frames(settings.category_labels)

    args.out_dir.mkdir(parents=True, exist_ok=True)
    np.save(outputs["matrix"], result.matrix)
    write_table(fa, outputs["unique_a"], overwrite=True)
    write_table(fb, outputs["unique_b"], overwrite=True)
    with outputs["summary"].open("w", encoding="utf-8") as f:
        json.dump(result.summary(), f, indent=2)

    # --- Human-friendly summary ---
    for label, frame in ((a.name, fa), (b.name, fb)):
        print(f"Most unique tiles in {label}:")
        for _, row in frame.head(settings.top).iterrows():
            print(
                f"  {row['rank']:>3}. {row['tile_id']} | min_jsd={row['min_divergence']:.4f} "
                f"| nearest={row['nearest_id']} | {row['dominant']}"
            )
    print(f"Wrote outputs -> {args.out_dir}")
    return 0


def _handle_cluster(args: argparse.Namespace, settings) -> int:
    settings = settings.override(workers=args.workers, batch_rows=args.batch_rows, k=args.k, method=args.method)

    if args.dry_run:
        print(f"[dry-run] Would cluster {args.a} + {args.b} into k={settings.k} ({settings.method}) -> {args.out}")
        return 0

    if args.out.exists() and not args.overwrite:
        print(f"[SKIP] {args.out} exists (use --overwrite)")
        return 0

    from landsig.compare.cluster import cluster_signatures
    from landsig.errors import SignatureError
    from landsig.signatures.collection import merge_collections
    from landsig.signatures.tables import write_table

    try:
        a, b = _load_pair(args, settings)
        if a.name == b.name:
            raise SystemExit(
                f"Both tables resolve to the region name '{a.name}'. "
                "Pass --name-a/--name-b to tell them apart."
            )
        pool = merge_collections(a, b, prefixes=(f"{a.name}:", f"{b.name}:"))
    except SignatureError as e:
        print(f"[INVALID] {e}")
        return 2

    if settings.k > pool.size:
        raise SystemExit(f"k={settings.k} exceeds the {pool.size} usable tiles")

    result = cluster_signatures(
        pool,
        settings.k,
        method=settings.method,
        workers=settings.workers,
        batch_rows=settings.batch_rows,
    )

    frame = result.to_frame()
    frame["region"] = [a.name] * a.size + [b.name] * b.size
    write_table(frame, args.out, overwrite=True)

    print(f"[CLUSTER] {pool.size} tiles -> {result.n_clusters} clusters ({settings.method})")
    for c, m in enumerate(result.medoids):
        members = frame[frame["cluster"] == c]
        share_a = (members["region"] == a.name).mean()
        print(f"  - cluster {c}: {len(members)} tiles, {share_a:.0%} {a.name}, medoid={pool.ids[m]}")
    print(f"Wrote clusters -> {args.out}")
    return 0


# -----------------------------------------------------------------------------
# Main entrypoint
# -----------------------------------------------------------------------------

def main(argv: Optional[List[str]] = None) -> int:
    """Main entrypoint for landsig.compare CLI."""
    ap = build_parser()
    args = ap.parse_args(argv)

    handlers = {
        "run": _handle_run,
        "cluster": _handle_cluster,
    }

    handler = handlers.get(args.command)
    if handler is None:
        raise SystemExit(f"Unknown command: {args.command}")

    # Bad config values or flag overrides surface as ValueError; fail with a message
    try:
        settings = load_settings(load_yaml(args.config))
        return handler(args, settings)
    except ValueError as e:
        raise SystemExit(f"[ERROR] {e}") from e


if __name__ == "__main__":
    raise SystemExit(main())
