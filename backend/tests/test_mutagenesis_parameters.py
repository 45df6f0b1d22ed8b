# File: backend/tests/test_mutagenesis_parameters.py
# Version: v0.1.0
"""
Design parameters: merge/validation rules and the JSON config loader.
"""

import json

import pytest

from backend.app.config.config_mutagenesis import (
    DEFAULT_FILE,
    ensure_current_exists,
    load_current_params,
    load_default_params,
    save_current_params,
)
from backend.app.core.mutagenesis.parameters import MutagenesisParameters, merge_parameters


def test_defaults():
    p = MutagenesisParameters()
    assert (p.minTm, p.maxTm, p.rescueMaxTm) == (55.0, 72.0, 76.0)
    assert p.strategy == "back-to-back"
    assert p.circular
    assert p.weights.offTarget == 0.25


def test_merge_is_deep_and_leaves_base_untouched():
    base = MutagenesisParameters()
    merged = merge_parameters(base, {"minTm": 58, "weights": {"offTarget": 0.5}})
    assert merged.minTm == 58
    assert merged.weights.offTarget == 0.5
    assert merged.weights.terminal3DG == base.weights.terminal3DG
    assert base.minTm == 55.0
    assert base.weights.offTarget == 0.25


def test_merge_without_overrides_returns_base():
    base = MutagenesisParameters(minTm=60)
    assert merge_parameters(base, None) is base
    assert merge_parameters(None, {}) == MutagenesisParameters()


@pytest.mark.parametrize(
    "overrides",
    [
        {"minTm": 70, "maxTm": 60},
        {"minAnnealingLength": 30, "maxAnnealingLength": 20},
        {"maxTm": 80},                     # above rescueMaxTm
        {"minGC": 0.7, "maxGC": 0.5},
        {"strategy": "inverse"},
        {"unknownKey": 1},
        {"weights": {"notAFeature": 1.0}},
    ],
)
def test_merge_rejects_invalid(overrides):
    with pytest.raises(ValueError):
        merge_parameters(None, overrides)


def test_parameters_are_frozen():
    p = MutagenesisParameters()
    with pytest.raises(ValueError):
        p.minTm = 40


def test_default_json_matches_model():
    payload = json.loads(DEFAULT_FILE.read_text(encoding="utf-8"))
    assert load_default_params() == MutagenesisParameters.model_validate(payload)


def test_current_params_roundtrip(tmp_path):
    target = tmp_path / "mutagenesis_param.json"
    created, params = ensure_current_exists(path=target)
    assert created and target.exists()
    assert params == load_default_params()

    save_current_params(merge_parameters(params, {"circular": False, "minTm": 57}), path=target)
    loaded = load_current_params(path=target)
    assert loaded.circular is False
    assert loaded.minTm == 57

    created_again, _ = ensure_current_exists(path=target)
    assert not created_again


def test_partial_current_file_is_merged_over_defaults(tmp_path):
    target = tmp_path / "partial.json"
    target.write_text('{"exhaustiveSearch": true}', encoding="utf-8")
    loaded = load_current_params(path=target)
    assert loaded.exhaustiveSearch
    assert loaded.maxTm == load_default_params().maxTm


def test_missing_current_file_falls_back(tmp_path):
    assert load_current_params(path=tmp_path / "absent.json") == load_default_params()
