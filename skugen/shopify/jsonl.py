"""
JSONL encoding for bulk mutation input.
"""

import json
from typing import Any, Dict, Iterable, Protocol


class SupportsProductSetInput(Protocol):
    def to_input(self) -> Dict[str, Any]: ...


def dump_line(variables: Dict[str, Any]) -> str:
    """One compact, self-contained JSON line."""
    return json.dumps(variables, ensure_ascii=False, separators=(",", ":"))


def dump_bulk_input(descriptors: Iterable[SupportsProductSetInput]) -> str:
    """
    Serialize descriptors as bulk mutation variables, one product per line.

    Each line is the variables object for a single productSet call,
    so it can be executed without reference to any other line.
    """
    return "".join(dump_line({"input": d.to_input()}) + "\n" for d in descriptors)
