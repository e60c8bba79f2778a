"""
Shared record decoding helpers for the Polygon clients.
"""
import logging
from typing import Any, Callable, Dict, List, TypeVar

from common.errors import MalformedRecordError

logger = logging.getLogger(__name__)

R = TypeVar("R")


def decode_records(raw: List[Dict[str, Any]], decode: Callable[[Dict[str, Any]], R],
                   label: str) -> List[R]:
    """
    Decode raw result rows, skipping the ones that are malformed.

    Args:
        raw: ``results`` array from a response
        decode: Row decoder raising MalformedRecordError for unusable rows
        label: Request description for log lines

    Returns:
        Decoded records in source order
    """
    records: List[R] = []
    skipped = 0
    for row in raw:
        try:
            records.append(decode(row))
        except MalformedRecordError as e:
            skipped += 1
            logger.debug(f"{label}: skipping malformed record: {e}")
    if skipped:
        logger.warning(f"{label}: skipped {skipped} of {len(raw)} malformed records")
    return records


def require(row: Dict[str, Any], key: str) -> Any:
    """Return ``row[key]`` or raise MalformedRecordError when missing/null."""
    value = row.get(key)
    if value is None:
        raise MalformedRecordError(f"missing field '{key}' in {row}")
    return value


def as_int(value: Any, name: str) -> int:
    """Coerce a JSON number to int; Polygon sends some integer fields as floats."""
    if isinstance(value, bool):
        raise MalformedRecordError(f"field '{name}' is not numeric: {value!r}")
    if isinstance(value, int):
        return value
    try:
        if isinstance(value, str):
            return int(value)
        return int(round(float(value)))
    except (TypeError, ValueError, OverflowError) as e:
        raise MalformedRecordError(f"field '{name}' is not numeric: {value!r}") from e


def as_float(value: Any, name: str) -> float:
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise MalformedRecordError(f"field '{name}' is not numeric: {value!r}") from e


def is_clean_symbol(symbol: str) -> bool:
    """Printable ASCII without whitespace."""
    return bool(symbol) and all(33 <= ord(ch) <= 126 for ch in symbol)
