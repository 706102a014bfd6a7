"""Store query layer: turns ``nix-store`` output or JSON snapshots into path records.

Two sources are supported:

- **Live**: :class:`NixStoreQuery` runs ``nix-store --query --tree`` for the
  reference structure and a batched ``nix-store --query --size`` for sizes.
- **Offline**: :func:`load_records_json` reads a snapshot file, either a plain
  list of ``{"path", "size", "references"}`` objects or the output of
  ``nix path-info --json --recursive``.

Failures are reported as :class:`~nixsize_cli.errors.StoreQueryError` and are
never retried.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .errors import StoreQueryError
from .models import PathRecord

logger = logging.getLogger(__name__)

BRANCH_MARKERS = ("├───", "└───")
INDENT_UNITS = ("│   ", "    ")
EXPANDED_MARKER = "[...]"
SIZE_BATCH = 500


def _strip_indent(line: str) -> Tuple[int, str]:
    depth = 0
    while line.startswith(INDENT_UNITS):
        line = line[len(INDENT_UNITS[0]):]
        depth += 1
    return depth, line


def parse_tree(text: str) -> Tuple[str, Dict[str, Set[str]]]:
    """Parse ``nix-store --query --tree`` output.

    Args:
        text: Raw command output

    Returns:
        The root path and a mapping of every path in the closure to the set
        of paths it directly references.
    """
    lines = [line.rstrip() for line in text.splitlines() if line.strip()]
    if not lines or not lines[0].startswith("/"):
        raise StoreQueryError("Unexpected output from 'nix-store --query --tree': missing root path")

    root = lines[0]
    references: Dict[str, Set[str]] = {root: set()}
    # stack[d] is the path whose children sit at indentation depth d
    stack = [root]

    for lineno, line in enumerate(lines[1:], start=2):
        depth, entry = _strip_indent(line)
        if not entry.startswith(BRANCH_MARKERS) or depth >= len(stack):
            raise StoreQueryError(f"Unexpected line {lineno} in nix-store tree output: {line!r}")

        path = entry[len(BRANCH_MARKERS[0]):].lstrip("─").strip()
        already_expanded = path.endswith(EXPANDED_MARKER)
        if already_expanded:
            path = path[: -len(EXPANDED_MARKER)].strip()
        if not path.startswith("/"):
            raise StoreQueryError(f"Store path with unexpected format on line {lineno}: {path!r}")

        parent = stack[depth]
        if path != parent:
            references[parent].add(path)
        references.setdefault(path, set())

        del stack[depth + 1:]
        if not already_expanded:
            stack.append(path)

    logger.debug("Parsed tree for %s with %d paths", root, len(references))
    return root, references


def parse_sizes(paths: List[str], text: str) -> Dict[str, int]:
    values = [line.strip() for line in text.splitlines() if line.strip()]
    if len(values) != len(paths):
        raise StoreQueryError(
            f"Expected {len(paths)} sizes from 'nix-store --query --size', got {len(values)}"
        )
    sizes: Dict[str, int] = {}
    for path, value in zip(paths, values):
        try:
            sizes[path] = int(value)
        except ValueError:
            raise StoreQueryError(f"Unparsable size {value!r} for {path}")
    return sizes


class NixStoreQuery:
    """Query a local Nix store through the ``nix-store`` binary."""

    def __init__(self, nix_store: str = "nix-store", timeout: Optional[float] = 300):
        self.nix_store = nix_store
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        command = [self.nix_store, "--query", *args]
        logger.debug("Running %s --query %s with %d argument(s)", self.nix_store, args[0], len(args) - 1)
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            raise StoreQueryError(f"'{self.nix_store}' not found. Is Nix installed?")
        except subprocess.TimeoutExpired:
            raise StoreQueryError(f"'{self.nix_store} --query {args[0]}' timed out after {self.timeout}s")

        if result.returncode != 0:
            message = result.stderr.strip() or f"exit code {result.returncode}"
            raise StoreQueryError(f"'{self.nix_store} --query {args[0]}' failed: {message}")
        return result.stdout

    def query_tree(self, target: str) -> str:
        return self._run("--tree", target)

    def query_sizes(self, paths: Iterable[str]) -> Dict[str, int]:
        paths = list(paths)
        sizes: Dict[str, int] = {}
        for start in range(0, len(paths), SIZE_BATCH):
            batch = paths[start:start + SIZE_BATCH]
            sizes.update(parse_sizes(batch, self._run("--size", *batch)))
        return sizes

    def records(self, target: str) -> List[PathRecord]:
        """Collect a record for every path in the closure of ``target``."""
        root, references = parse_tree(self.query_tree(target))
        sizes = self.query_sizes(references)
        logger.info("Queried %d store paths for %s", len(references), root)
        return [PathRecord.of(path, sizes[path], refs) for path, refs in references.items()]


def _record_from_json(path: str, entry: Dict[str, Any]) -> PathRecord:
    size = entry.get("size", entry.get("narSize"))
    refs = entry.get("references") or []
    if not isinstance(size, int) or isinstance(size, bool) or not isinstance(refs, list):
        raise StoreQueryError(f"Malformed snapshot entry for {path}")
    return PathRecord.of(path, size, refs)


def records_from_json(payload: Any) -> List[PathRecord]:
    """Convert a decoded JSON snapshot into path records."""
    try:
        if isinstance(payload, dict):
            return [_record_from_json(path, entry) for path, entry in payload.items()]
        if isinstance(payload, list):
            return [_record_from_json(entry["path"], entry) for entry in payload]
    except (AttributeError, KeyError, TypeError) as exc:
        raise StoreQueryError(f"Malformed snapshot entry: {exc}")
    except ValueError as exc:
        raise StoreQueryError(str(exc))
    raise StoreQueryError("Snapshot must be a JSON list or object")


def load_records_json(file_path: Path) -> List[PathRecord]:
    """Load path records from a JSON snapshot file."""
    try:
        payload = json.loads(Path(file_path).read_text(encoding="utf-8"))
    except OSError as exc:
        raise StoreQueryError(f"Cannot read snapshot {file_path}: {exc}")
    except json.JSONDecodeError as exc:
        raise StoreQueryError(f"Invalid JSON in snapshot {file_path}: {exc}")
    records = records_from_json(payload)
    logger.info("Loaded %d store paths from %s", len(records), file_path)
    return records
