"""Class-index to display-name lookup table."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pixelrank.errors import ModelLoadError

logger = logging.getLogger(__name__)


def parse_label_table(raw: object) -> dict[int, str]:
    """Normalize a decoded label JSON document into ``{index: name}``.

    Accepts an object keyed by string-encoded integers (``{"0": "tench"}``)
    or a plain list of names.
    """
    if isinstance(raw, list):
        return {i: str(name) for i, name in enumerate(raw)}
    if isinstance(raw, dict):
        table: dict[int, str] = {}
        for key, name in raw.items():
            try:
                index = int(key)
            except (TypeError, ValueError):
                raise ModelLoadError(f"Label table key {key!r} is not an integer") from None
            if index < 0:
                raise ModelLoadError(f"Label table key {key!r} is negative")
            table[index] = str(name)
        return table
    raise ModelLoadError(f"Label table must be a JSON object or list, got {type(raw).__name__}")


def load_label_table(path: str | Path | None) -> dict[int, str]:
    """Load the label table from a JSON file.

    A ``None`` path yields an empty table, so every class falls back to its
    synthetic ``"Class <index>"`` name.

    Raises:
        ModelLoadError: If the file is missing or malformed.
    """
    if path is None:
        logger.info("No label table configured; using synthetic class names")
        return {}

    label_path = Path(path)
    try:
        with label_path.open(encoding="utf-8") as f:
            raw = json.load(f)
    except OSError as exc:
        raise ModelLoadError(f"Failed to read label table {label_path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ModelLoadError(f"Label table {label_path} is not valid JSON: {exc}") from exc

    table = parse_label_table(raw)
    logger.info("Loaded %d class labels from %s", len(table), label_path)
    return table
