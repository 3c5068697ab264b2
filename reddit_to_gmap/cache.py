"""File-backed snapshot cache for pipeline stage outputs.

Each key maps to ``<cache_dir>/<key>.json`` holding a ``{"data": ...}``
envelope. Snapshots are replaced wholesale on write, never merged.
"""
from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Callable, List, Sequence, TypeVar

from .reporting import atomic_writer, ensure_dir

logger = logging.getLogger(__name__)

T = TypeVar("T")

_UNSAFE_KEY_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


class CacheError(RuntimeError):
    pass


class CacheReadError(CacheError):
    pass


class SnapshotNotFoundError(CacheReadError):
    pass


class SnapshotParseError(CacheReadError):
    pass


class CacheWriteError(CacheError):
    pass


def validate_key(key: str) -> str:
    if not key or key in {".", ".."}:
        raise ValueError(f"Invalid cache key: {key!r}")
    if "/" in key or "\\" in key or os.sep in key:
        raise ValueError(f"Cache key must not contain path separators: {key!r}")
    if _UNSAFE_KEY_CHARS.search(key):
        raise ValueError(f"Cache key contains unsupported characters: {key!r}")
    return key


class SnapshotStore:
    def __init__(self, cache_dir: str) -> None:
        self.cache_dir = cache_dir

    def path_for(self, key: str) -> str:
        return os.path.join(self.cache_dir, f"{validate_key(key)}.json")

    def exists(self, key: str) -> bool:
        return os.path.isfile(self.path_for(key))

    def write(self, key: str, payload: Any) -> None:
        path = self.path_for(key)
        try:
            ensure_dir(self.cache_dir)
            with atomic_writer(path, mode="w", encoding="utf-8") as f:
                json.dump({"data": payload}, f, ensure_ascii=False, indent=2)
                f.write("\n")
        except (OSError, TypeError, ValueError) as exc:
            raise CacheWriteError(f"Error writing cache file {path}: {exc}") from exc
        logger.debug("Wrote snapshot %s", path)

    def read(self, key: str) -> Any:
        path = self.path_for(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()
        except FileNotFoundError as exc:
            raise SnapshotNotFoundError(f"No cache snapshot for {key!r} at {path}") from exc
        except OSError as exc:
            raise CacheReadError(f"Error reading cache file {path}: {exc}") from exc
        try:
            envelope = json.loads(text)
        except json.JSONDecodeError as exc:
            raise SnapshotParseError(f"Corrupt cache file {path}: {exc}") from exc
        if not isinstance(envelope, dict) or "data" not in envelope:
            raise SnapshotParseError(f"Cache file {path} is missing the data envelope")
        return envelope["data"]

    def read_models(self, key: str, decode: Callable[[Any], T]) -> List[T]:
        """Read a list snapshot and decode each item with ``decode``.

        Any schema mismatch is reported as SnapshotParseError; the caller must
        re-run without cache for this key.
        """
        payload = self.read(key)
        if not isinstance(payload, list):
            raise SnapshotParseError(
                f"Cache snapshot {key!r} holds {type(payload).__name__}, expected a list"
            )
        items: List[T] = []
        for index, raw in enumerate(payload):
            try:
                items.append(decode(raw))
            except (KeyError, TypeError, ValueError) as exc:
                raise SnapshotParseError(
                    f"Cache snapshot {key!r} item {index} does not match schema: {exc!r}"
                ) from exc
        return items

    def write_models(self, key: str, items: Sequence[Any]) -> None:
        self.write(key, [item.to_dict() for item in items])
