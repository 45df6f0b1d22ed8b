# File: backend/app/config/config_mutagenesis.py
# Version: v0.1.0
"""
Mutagenesis parameters configuration loader/saver.

- Reads defaults from: backend/app/config/mutagenesis_param_default.json
- Reads/writes current from: backend/app/config/mutagenesis_param.json
  (overridable with the MUTAGENESIS_PARAMS_PATH setting)
- Validates payloads with MutagenesisParameters (Pydantic) from core/mutagenesis/parameters.py

Usage:
    from backend.app.config.config_mutagenesis import load_current_params, save_current_params

The JSON uses the camelCase keys of MutagenesisParameters; missing keys take the
model defaults and nested `weights` are merged key by key, for example:

  {
    "minTm": 55.0,
    "maxTm": 72.0,
    "strategy": "back-to-back",
    "circular": true,
    "weights": { "offTarget": 0.25, "terminal3DG": 0.2 }
  }

Thread-safety:
- Uses atomic writes (tmp + replace) to avoid partial/dirty writes.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional, Tuple

from backend.app.core.config import settings
from backend.app.core.mutagenesis.parameters import MutagenesisParameters, merge_parameters

logger = logging.getLogger(__name__)

_THIS_DIR = Path(__file__).resolve().parent
CONFIG_DIR = _THIS_DIR
DEFAULT_FILE = CONFIG_DIR / "mutagenesis_param_default.json"
CURRENT_FILE = CONFIG_DIR / "mutagenesis_param.json"


def current_file() -> Path:
    return Path(settings.MUTAGENESIS_PARAMS_PATH) if settings.MUTAGENESIS_PARAMS_PATH else CURRENT_FILE


def _read_json(path: Path) -> dict:
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _atomic_write_json(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
        f.write("\n")
    os.replace(tmp, path)


def load_default_params(path: Optional[Path] = None) -> MutagenesisParameters:
    """Load default parameters from mutagenesis_param_default.json."""
    payload = _read_json(path or DEFAULT_FILE)
    return merge_parameters(None, payload)


def load_current_params(fallback_to_default: bool = True, path: Optional[Path] = None) -> MutagenesisParameters:
    """
    Load current (editable) parameters.
    If the file is missing or empty and fallback is True, return defaults.
    """
    payload = _read_json(path or current_file())
    if not payload and fallback_to_default:
        return load_default_params()
    return merge_parameters(load_default_params(), payload)


def save_current_params(params: MutagenesisParameters, path: Optional[Path] = None) -> None:
    """Persist current parameters (atomic write)."""
    target = path or current_file()
    _atomic_write_json(target, params.model_dump())
    logger.info("Saved mutagenesis parameters to %s", target)


def ensure_current_exists(path: Optional[Path] = None) -> Tuple[bool, MutagenesisParameters]:
    """
    Ensure the current parameters file exists; if not, initialize it from defaults.
    Returns (created, params).
    """
    target = path or current_file()
    if target.exists():
        return False, load_current_params(path=target)
    defaults = load_default_params()
    save_current_params(defaults, path=target)
    return True, defaults
