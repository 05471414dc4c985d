"""Utility helpers shared across flashbot core modules."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union


def get_logger(name: str = "flashbot") -> logging.Logger:
    """Return a configured logger that prints to stdout."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(name)s | %(message)s")
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
    return logger


def load_json_file(path: Path) -> Dict[str, Any]:
    """Load JSON data from ``path``."""
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def hex_to_bytes(data: str) -> bytes:
    """Convert a hex string (with or without ``0x``) to bytes."""
    data = data[2:] if data.startswith("0x") else data
    return bytes.fromhex(data)


def encode_uint(value: int) -> str:
    """Hex-encode a non-negative integer the way JSON-RPC quantities are written."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"quantity must be non-negative: {value}")
    return hex(value)


def parse_quantity(value: Union[int, str, None], default: int = 0) -> int:
    """Parse a JSON number, decimal string or 0x-prefixed hex string."""
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        raise TypeError("boolean is not a quantity")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        if text.lower().startswith("0x"):
            return int(text, 16)
        return int(text)
    raise TypeError(f"unsupported quantity type: {type(value).__name__}")


def lookup(data: Mapping[str, Any], key: str, default: Any = None) -> Any:
    """Case-insensitive key lookup, matching how relays vary field casing."""
    if key in data:
        return data[key]
    wanted = key.lower()
    for candidate, value in data.items():
        if isinstance(candidate, str) and candidate.lower() == wanted:
            return value
    return default


def truncate(text: str, limit: Optional[int] = 512) -> str:
    """Shorten ``text`` for log lines; error objects keep the full body."""
    if limit is None or len(text) <= limit:
        return text
    return f"{text[:limit]}...({len(text) - limit} more chars)"


__all__ = [
    "encode_uint",
    "get_logger",
    "hex_to_bytes",
    "load_json_file",
    "lookup",
    "parse_quantity",
    "truncate",
]
