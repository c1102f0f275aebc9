#!/usr/bin/env python3
"""landsig.config

Shared configuration utilities for landsig CLI subsystems.

This module provides common helpers used across landsig.signatures and
landsig.compare. Centralizing these avoids duplication and keeps both CLIs
reading the same YAML the same way.

Design notes:
- YAML loading is strict: files must exist and be valid mappings.
- Settings are resolved once from YAML, then CLI flags override them.
- All functions are pure (no side effects on import).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml


MISSING_POLICIES = ("exclude", "partial", "error")
INVALID_POLICIES = ("exclude", "error")
SIGNATURE_KINDS = ("composition", "cove")
LINKAGE_METHODS = ("average", "complete", "single", "weighted")


# -----------------------------------------------------------------------------
# YAML loading
# -----------------------------------------------------------------------------

def load_yaml(path: Path) -> Dict[str, Any]:
    """Load a YAML file and return as dict.

    Raises SystemExit on missing file or invalid format (non-mapping).
    Config errors should fail fast.
    """
    if not path.exists():
        raise SystemExit(f"Config not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if not isinstance(data, dict):
        raise SystemExit(f"Expected YAML mapping at {path}")
    return data


def load_categories(data: Dict[str, Any]) -> List[Tuple[int, str]]:
    """Read the `categories:` legend as an ordered list of (code, label).

    Expects structure like:
        categories:
          - code: 10
            label: "Tree cover"
          ...

    The list order fixes the signature ordering.
    Raises ValueError if structure is invalid or codes repeat.
    """
    raw = data.get("categories")
    if not isinstance(raw, list) or not raw:
        raise ValueError("Config must have a non-empty top-level 'categories:' list.")

    out: List[Tuple[int, str]] = []
    seen = set()
    for entry in raw:
        if not isinstance(entry, dict) or "code" not in entry:
            raise ValueError(f"Category entry needs a 'code': {entry}")
        code = int(entry["code"])
        if code in seen:
            raise ValueError(f"Duplicate category code: {code}")
        seen.add(code)
        out.append((code, str(entry.get("label", code))))
    return out


# -----------------------------------------------------------------------------
# Settings
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class Settings:
    """Resolved run settings. Defaults match config/landsig_v0.yaml."""

    categories: List[Tuple[int, str]] = field(default_factory=list)

    # signatures
    window: int = 100
    kind: str = "composition"
    nodata: Optional[int] = None
    max_nodata_share: float = 0.5

    # validation
    missing_policy: str = "exclude"
    invalid_policy: str = "exclude"
    sum_tolerance: float = 1e-3

    # compare
    workers: int = 1
    batch_rows: int = 256
    top: int = 10

    # cluster
    k: int = 6
    method: str = "average"

    @property
    def category_codes(self) -> List[int]:
        return [c for c, _ in self.categories]

    @property
    def signature_columns(self) -> List[str]:
        """Expected signature column names for the configured kind."""
        codes = [str(c) for c in self.category_codes]
        if self.kind == "cove":
            return [f"{a}|{b}" for a in codes for b in codes]
        return codes

    @property
    def category_labels(self) -> Dict[str, str]:
        """Map signature column name -> human label (informational only)."""
        names = {str(c): label for c, label in self.categories}
        if self.kind == "cove":
            return {f"{a}|{b}": f"{names[a]}|{names[b]}" for a in names for b in names}
        return names

    def override(self, **kwargs: Any) -> "Settings":
        """Return a copy with every non-None kwarg applied (CLI flags win)."""
        updates = {k: v for k, v in kwargs.items() if v is not None}
        return _validate(replace(self, **updates))


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    sec = data.get(name, {})
    if sec is None:
        return {}
    if not isinstance(sec, dict):
        raise ValueError(f"Config section '{name}' must be a mapping")
    return sec


def _choice(value: str, allowed: Tuple[str, ...], what: str) -> str:
    if value not in allowed:
        raise ValueError(f"Unknown {what} '{value}'. Expected one of: {', '.join(allowed)}")
    return value


def _validate(s: Settings) -> Settings:
    _choice(s.kind, SIGNATURE_KINDS, "signature kind")
    _choice(s.missing_policy, MISSING_POLICIES, "missing_policy")
    _choice(s.invalid_policy, INVALID_POLICIES, "invalid_policy")
    _choice(s.method, LINKAGE_METHODS, "linkage method")
    if s.window < 1:
        raise ValueError(f"window must be >= 1 (got {s.window})")
    if not 0.0 <= s.max_nodata_share <= 1.0:
        raise ValueError(f"max_nodata_share must be in [0, 1] (got {s.max_nodata_share})")
    if s.sum_tolerance < 0:
        raise ValueError(f"sum_tolerance must be >= 0 (got {s.sum_tolerance})")
    if s.workers < 1 or s.batch_rows < 1:
        raise ValueError("workers and batch_rows must be >= 1")
    return s


def load_settings(data: Dict[str, Any]) -> Settings:
    """Build Settings from a parsed config dict, filling defaults.

    Sections are optional except `categories`. Unknown keys are ignored so the
    same YAML can carry notes for other tools.
    """
    sig = _section(data, "signatures")
    val = _section(data, "validation")
    cmp_ = _section(data, "compare")
    clu = _section(data, "cluster")

    d = Settings()
    nodata = sig.get("nodata", d.nodata)

    s = Settings(
        categories=load_categories(data),
        window=int(sig.get("window", d.window)),
        kind=str(sig.get("kind", d.kind)),
        nodata=None if nodata is None else int(nodata),
        max_nodata_share=float(sig.get("max_nodata_share", d.max_nodata_share)),
        missing_policy=str(val.get("missing_policy", d.missing_policy)),
        invalid_policy=str(val.get("invalid_policy", d.invalid_policy)),
        sum_tolerance=float(val.get("sum_tolerance", d.sum_tolerance)),
        workers=int(cmp_.get("workers", d.workers)),
        batch_rows=int(cmp_.get("batch_rows", d.batch_rows)),
        top=int(cmp_.get("top", d.top)),
        k=int(clu.get("k", d.k)),
        method=str(clu.get("method", d.method)),
    )
    return _validate(s)


def format_share(x: float, precision: int = 1) -> str:
    """Format a 0..1 share as a percentage string."""
    return f"{100.0 * x:.{precision}f}%"


# -----------------------------------------------------------------------------
# Default paths
# -----------------------------------------------------------------------------
# Centralized so all CLIs use the same defaults.

DEFAULT_CONFIG_YAML = Path("config/landsig_v0.yaml")
DEFAULT_OUT_DIR = Path("data/processed/compare")
