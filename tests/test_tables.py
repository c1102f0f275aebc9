#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from landsig.errors import DimensionMismatch
from landsig.signatures import tables as tb


def test_normalize_code_nums_and_strings():
    assert tb._normalize_code("07") == "7"
    assert tb._normalize_code(" 7 ") == "7"
    assert tb._normalize_code(7) == "7"


def test_normalize_code_emptyish_inputs():
    assert tb._normalize_code(None) == ""
    assert tb._normalize_code("") == ""
    assert tb._normalize_code(" ") == ""


def test_normalize_code_cooccurrence_pairs():
    assert tb._normalize_code("010|020") == "10|20"
    assert tb._normalize_code("10|") == ""


def test_signature_columns_follow_legend_order():
    df = pd.DataFrame({"tile_id": ["a"], "20": [0.4], "010": [0.6]})
    assert tb.signature_columns(df, ["10", "20"]) == ["010", "20"]


def test_signature_columns_reports_missing_and_extra():
    df = pd.DataFrame({"tile_id": ["a"], "10": [0.6], "30": [0.4]})
    with pytest.raises(DimensionMismatch):
        tb.signature_columns(df, ["10", "20"])


def test_collection_from_table_uses_tile_ids():
    df = pd.DataFrame({
        "tile_id": ["r0_c0", "r0_c1", "r1_c0"],
        "row": [0, 0, 1],
        "col": [0, 1, 0],
        "10": [1.0, 0.25, np.nan],
        "20": [0.0, 0.75, np.nan],
    })
    coll = tb.collection_from_table(df, categories=["10", "20"], name="alpha")
    assert coll.ids == ["r0_c0", "r0_c1"]
    assert coll.categories == ["10", "20"]
    assert coll.excluded == {"r1_c0": "undefined"}


def test_write_then_read_csv(tmp_path):
    df = pd.DataFrame({"tile_id": ["r0_c0"], "10": [0.5], "20": [0.5]})
    path = tmp_path / "sig.csv"
    assert tb.write_table(df, path) is True
    back = tb.read_table(path)
    assert back["tile_id"].tolist() == ["r0_c0"]
    assert list(back.columns) == ["tile_id", "10", "20"]


def test_zero_padded_ids_survive_csv(tmp_path):
    df = pd.DataFrame({"tile_id": ["007", "7", "010"], "10": [1.0, 0.5, 0.0], "20": [0.0, 0.5, 1.0]})
    path = tmp_path / "padded.csv"
    tb.write_table(df, path)
    back = tb.read_table(path)
    assert back["tile_id"].tolist() == ["007", "7", "010"]
    coll = tb.collection_from_table(back, categories=["10", "20"])
    assert coll.ids == ["007", "7", "010"]


def test_write_table_skips_existing(tmp_path, capsys):
    path = tmp_path / "sig.csv"
    path.write_text("tile_id\n")
    df = pd.DataFrame({"tile_id": ["x"]})
    assert tb.write_table(df, path) is False
    assert "[SKIP]" in capsys.readouterr().out
    assert path.read_text() == "tile_id\n"


def test_read_table_missing_file(tmp_path):
    with pytest.raises(SystemExit):
        tb.read_table(tmp_path / "nope.csv")
