"""Pytest configuration and fixtures for nixsize tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Generator, List

import pytest

from nixsize_cli.models import PathRecord


def store_path(letter: str, name: str) -> str:
    return f"/nix/store/{letter * 32}-{name}"


HELLO = store_path("a", "hello-2.12")
GLIBC = store_path("b", "glibc-2.39")
LIBIDN = store_path("c", "libidn2-2.3.7")
UNISTRING = store_path("d", "libunistring-1.2")


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path: Path, monkeypatch):
    """Point the config file at a throwaway directory for every test."""
    base = tmp_path / "nixsize-home"
    monkeypatch.setattr("nixsize_cli.config.BASE_DIR", base)
    monkeypatch.setattr("nixsize_cli.config.CONFIG_FILE", base / "config.toml")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def shared_records() -> List[PathRecord]:
    """A and B both depend on C."""
    return [
        PathRecord.of("A", 10, ["C"]),
        PathRecord.of("B", 20, ["C"]),
        PathRecord.of("C", 5),
    ]


@pytest.fixture
def diamond_records() -> List[PathRecord]:
    """top -> left, right; left, right -> bottom."""
    return [
        PathRecord.of("top", 1, ["left", "right"]),
        PathRecord.of("left", 10, ["bottom"]),
        PathRecord.of("right", 100, ["bottom"]),
        PathRecord.of("bottom", 1000),
    ]


@pytest.fixture
def store_records() -> List[PathRecord]:
    """A small closure resembling a real store path."""
    return [
        PathRecord.of(HELLO, 120_000, [HELLO, GLIBC]),
        PathRecord.of(GLIBC, 30_000_000, [GLIBC, LIBIDN]),
        PathRecord.of(LIBIDN, 350_000, [UNISTRING]),
        PathRecord.of(UNISTRING, 1_800_000),
    ]


@pytest.fixture
def sample_tree_output() -> str:
    """Output of ``nix-store --query --tree`` for the store_records closure."""
    return (
        f"{HELLO}\n"
        f"├───{GLIBC}\n"
        f"│   ├───{LIBIDN}\n"
        f"│   │   └───{UNISTRING}\n"
        f"│   └───{GLIBC} [...]\n"
        f"└───{HELLO} [...]\n"
    )


@pytest.fixture
def snapshot_file(temp_dir: Path, store_records: List[PathRecord]) -> Path:
    """JSON snapshot of store_records in the plain list format."""
    path = temp_dir / "closure.json"
    payload = [
        {"path": r.path, "size": r.size, "references": sorted(r.references)}
        for r in store_records
    ]
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path
