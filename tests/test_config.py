#!/usr/bin/env python3

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure we can import from src without installing the package
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from landsig import config as cfg


def test_shipped_config_loads():
    settings = cfg.load_settings(cfg.load_yaml(ROOT / "config" / "landsig_v0.yaml"))
    assert settings.category_codes[:3] == [10, 20, 30]
    assert len(settings.categories) == 11
    assert settings.window == 100
    assert settings.nodata == 0
    assert settings.missing_policy == "exclude"
    assert settings.category_labels["50"] == "Built-up"


def test_load_yaml_missing_and_non_mapping(tmp_path):
    with pytest.raises(SystemExit):
        cfg.load_yaml(tmp_path / "missing.yaml")
    bad = tmp_path / "list.yaml"
    bad.write_text("- 1\n- 2\n")
    with pytest.raises(SystemExit):
        cfg.load_yaml(bad)


def test_defaults_fill_missing_sections():
    settings = cfg.load_settings({"categories": [{"code": 1}, {"code": 2, "label": "Water"}]})
    assert settings.categories == [(1, "1"), (2, "Water")]
    assert settings.kind == "composition"
    assert settings.nodata is None
    assert settings.workers == 1
    assert settings.signature_columns == ["1", "2"]


def test_categories_required_and_unique():
    with pytest.raises(ValueError):
        cfg.load_settings({})
    with pytest.raises(ValueError):
        cfg.load_settings({"categories": [{"code": 1}, {"code": 1}]})


def test_bad_enumerations_rejected():
    base = {"categories": [{"code": 1}]}
    with pytest.raises(ValueError):
        cfg.load_settings({**base, "validation": {"missing_policy": "guess"}})
    with pytest.raises(ValueError):
        cfg.load_settings({**base, "signatures": {"kind": "texture"}})
    with pytest.raises(ValueError):
        cfg.load_settings({**base, "signatures": {"max_nodata_share": 1.5}})


def test_override_ignores_none_and_revalidates():
    settings = cfg.load_settings({"categories": [{"code": 1}]})
    assert settings.override(window=None).window == 100
    assert settings.override(window=8).window == 8
    with pytest.raises(ValueError):
        settings.override(workers=0)


def test_cove_columns_and_labels():
    settings = cfg.load_settings({
        "categories": [{"code": 1, "label": "Tree"}, {"code": 2, "label": "Crop"}],
        "signatures": {"kind": "cove"},
    })
    assert settings.signature_columns == ["1|1", "1|2", "2|1", "2|2"]
    assert settings.category_labels["1|2"] == "Tree|Crop"
