# common/config.py
from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict

import yaml

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_CONFIG_PATH = REPO_ROOT / "config" / "config.yaml"


def load_config(config_path: str | Path | None = None) -> Dict[str, Any]:
    """
    Load the YAML config. Path resolution order:
      explicit argument > $MEDIA_PIPELINE_CONFIG > config/config.yaml
    A missing or empty file yields {} so every caller falls back to defaults.
    """
    path = Path(config_path or os.getenv("MEDIA_PIPELINE_CONFIG") or DEFAULT_CONFIG_PATH)
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def section(cfg: Dict[str, Any], *names: str) -> Dict[str, Any]:
    """Walk nested sections defensively: section(cfg, "ingest", "runtime")."""
    cur: Any = cfg or {}
    for name in names:
        cur = cur.get(name, {}) if isinstance(cur, dict) else {}
        cur = cur or {}
    return cur if isinstance(cur, dict) else {}
