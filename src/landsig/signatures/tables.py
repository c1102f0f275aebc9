#!/usr/bin/env python3
"""tables.py

Read and write signature tables (CSV or parquet, chosen by file suffix).

Table layout:
    tile_id, [row, col,] <category columns...>

Category columns are named by code ("10", "20", ...) for composition
signatures or "a|b" for co-occurrence. Column names are normalized before
matching so "010", " 10 " and 10 all line up with legend code 10.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import List, Optional, Sequence

import pandas as pd

from landsig.errors import DimensionMismatch
from landsig.signatures.collection import SignatureCollection, build_collection


META_COLUMNS = ("tile_id", "row", "col")


# -----------------------------------------------------------------------------
# Helper functions
# -----------------------------------------------------------------------------

def _normalize_code(x) -> str:
    """Normalize a category column name to a comparable string.

    Handles ints, '07', ' 7 ', and co-occurrence pairs like '10|020'.
    Returns empty string for invalid inputs.
    """
    if x is None:
        return ""
    s = str(x).strip()
    if "|" in s:
        parts = [_normalize_code(p) for p in s.split("|")]
        return "|".join(parts) if all(parts) else ""
    m = re.search(r"[A-Za-z0-9]+", s)
    if not m:
        return ""
    token = m.group(0)
    # Strip leading zeros for purely numeric codes
    if token.isdigit():
        token = str(int(token))
    return token


def signature_columns(df: pd.DataFrame, categories: Optional[Sequence[str]] = None) -> List[str]:
    """Return the table's category columns, in legend order when given.

    Raises DimensionMismatch if a legend category is absent or the table
    carries extra category columns.
    """
    value_cols = [c for c in df.columns if c not in META_COLUMNS]
    if categories is None:
        return value_cols

    by_code = {_normalize_code(c): c for c in value_cols}
    wanted = [_normalize_code(c) for c in categories]

    missing = [c for c in wanted if c not in by_code]
    extra = sorted(set(by_code) - set(wanted))
    if missing or extra:
        raise DimensionMismatch(
            "Signature table columns don't match the category legend.\n"
            f"  missing: {missing}\n"
            f"  unexpected: {extra}"
        )
    return [by_code[c] for c in wanted]


# -----------------------------------------------------------------------------
# I/O
# -----------------------------------------------------------------------------

def read_table(path: Path) -> pd.DataFrame:
    """Load a signature table. Raises SystemExit if the file is missing."""
    if not path.exists():
        raise SystemExit(f"Signature table not found: {path}")
    if path.suffix.lower() == ".csv":
        # keep ids like "007" intact
        df = pd.read_csv(path, dtype={"tile_id": str})
    else:
        df = pd.read_parquet(path)
    if "tile_id" not in df.columns:
        raise SystemExit(f"{path} has no 'tile_id' column")
    df["tile_id"] = df["tile_id"].astype(str)
    return df


def write_table(df: pd.DataFrame, path: Path, *, overwrite: bool = False) -> bool:
    """Write a table, creating parent dirs. Returns False if skipped."""
    if path.exists() and not overwrite:
        print(f"[SKIP] {path} exists (use --overwrite)")
        return False
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".csv":
        df.to_csv(path, index=False)
    else:
        df.to_parquet(path, index=False)
    return True


def collection_from_table(
    df: pd.DataFrame,
    *,
    categories: Optional[Sequence[str]] = None,
    name: str = "",
    missing_policy: str = "exclude",
    invalid_policy: str = "exclude",
    sum_tolerance: float = 1e-3,
) -> SignatureCollection:
    """Build a validated SignatureCollection from a signature table."""
    cols = signature_columns(df, categories)
    labels = [_normalize_code(c) for c in cols]
    return build_collection(
        df[cols].to_numpy(dtype=float),
        ids=df["tile_id"].tolist(),
        categories=labels,
        name=name,
        missing_policy=missing_policy,
        invalid_policy=invalid_policy,
        sum_tolerance=sum_tolerance,
    )
