"""Configuration paths and defaults for nixsize."""

from __future__ import annotations

import os
from pathlib import Path

BASE_DIR = Path(os.environ.get("NIXSIZE_HOME", str(Path.home() / ".nixsize"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

CSV_FILE_NAME = "sizes.csv"
DOT_FILE_NAME = "closure.dot"
NIX_STORE_PREFIX = "/nix/store/"

DEFAULT_CONFIG = {
    "report": {
        "sort_by": "shared_size",
        "order": "descending",
        "precision": 3,
        "top": 20,
    },
    "analysis": {
        "policy": "equal",
        "nix_store": "nix-store",
        "timeout": 300,
    },
}


def ensure_base_dirs() -> None:
    """Create the base directory for local settings if needed."""
    BASE_DIR.mkdir(parents=True, exist_ok=True)
