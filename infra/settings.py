# -*- coding: utf-8 -*-
"""Durable key-value storage for user preferences, translation tables and history."""
from __future__ import annotations

import json
import os
import threading
from typing import Any, Dict, List, Optional

from infra.config import STORE_PATH

PREFERRED_LANGUAGE_KEY = "preferred-language"
TRANSLATION_KEY_PREFIX = "translation-"
HISTORY_KEY = "hairstyle-ai-history"

DEFAULT_SETTINGS: Dict[str, Any] = {}


def translation_key(language: str) -> str:
    return f"{TRANSLATION_KEY_PREFIX}{language}"


class LocalStore:
    """JSON-file backed key-value store.

    The whole document is cached in memory after the first read and rewritten
    on every mutation. A missing or unreadable file behaves like an empty store.
    """

    def __init__(self, path: str = STORE_PATH, defaults: Optional[Dict[str, Any]] = None) -> None:
        self.path = path
        self._defaults = dict(DEFAULT_SETTINGS if defaults is None else defaults)
        self._lock = threading.RLock()
        self._cached: Dict[str, Any] | None = None

    def _load_from_disk(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return dict(self._defaults)
        try:
            with open(self.path, "r", encoding="utf-8") as fp:
                data = json.load(fp)
        except (OSError, ValueError, TypeError):
            return dict(self._defaults)
        if not isinstance(data, dict):
            return dict(self._defaults)
        merged = dict(self._defaults)
        merged.update(data)
        return merged

    def _ensure_loaded(self) -> Dict[str, Any]:
        if self._cached is None:
            self._cached = self._load_from_disk()
        return self._cached

    def _write(self, data: Dict[str, Any]) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as fp:
            json.dump(data, fp, ensure_ascii=False, indent=2)
        self._cached = dict(data)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._ensure_loaded().get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            current = dict(self._ensure_loaded())
            current[key] = value
            self._write(current)

    def remove(self, key: str) -> bool:
        with self._lock:
            current = dict(self._ensure_loaded())
            if key not in current:
                return False
            del current[key]
            self._write(current)
            return True

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return [key for key in self._ensure_loaded() if key.startswith(prefix)]

    def size_bytes(self, key: str) -> int:
        """Serialized size of a single entry, as it would be written to disk."""
        with self._lock:
            value = self._ensure_loaded().get(key)
        if value is None:
            return 0
        return len(json.dumps(value, ensure_ascii=False).encode("utf-8"))


__all__ = [
    "DEFAULT_SETTINGS",
    "HISTORY_KEY",
    "PREFERRED_LANGUAGE_KEY",
    "TRANSLATION_KEY_PREFIX",
    "LocalStore",
    "translation_key",
]
