# shoplist/clients/local.py
import json
import os
import threading
from typing import Optional

from ..services.catalog import FIELD_CLEANERS
from ..utils.logger import debug, warn

PRODUCTS = "products"
FAVORITES = "favorites"
CART = "cart"
GUEST_OWNER = "guest-owner-id"

# Keys whose stored value is cleaned on read; a value failing its cleaner reads as absent
CLEANED_KEYS = (PRODUCTS, FAVORITES, CART)


class LocalCache:
    """
    Key/value persistence on disk. Every key holds a JSON-serialized string,
    the same way browser local storage does; writes replace the whole value.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _load_raw(self) -> dict:
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                raw = json.load(fh)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            warn(f"[cache] unreadable cache file {self.path}: {e}")
            return {}
        return raw if isinstance(raw, dict) else {}

    def _save_raw(self, raw: dict):
        tmp = f"{self.path}.tmp"
        try:
            with open(tmp, "w", encoding="utf-8") as fh:
                json.dump(raw, fh)
            os.replace(tmp, self.path)
        except OSError as e:
            warn(f"[cache] write failed for {self.path}: {e}")

    def get(self, key: str) -> list:
        with self._lock:
            text = self._load_raw().get(key)
        if text is None:
            return []
        try:
            value = json.loads(text)
        except (TypeError, ValueError):
            debug(f"[cache] malformed entry for {key}, using default")
            return []
        if key not in CLEANED_KEYS:
            return value
        try:
            return FIELD_CLEANERS[key](value)
        except ValueError as e:
            debug(f"[cache] entry for {key} is invalid ({e}), using default")
            return []

    def set(self, key: str, value):
        with self._lock:
            raw = self._load_raw()
            raw[key] = json.dumps(value)
            self._save_raw(raw)

    def remove(self, key: str):
        with self._lock:
            raw = self._load_raw()
            if raw.pop(key, None) is not None:
                self._save_raw(raw)

    def clear_all(self):
        for key in (PRODUCTS, FAVORITES, CART):
            self.remove(key)


class SessionCache:
    """Session-scoped markers; gone when the process exits."""

    def __init__(self):
        self._data: dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str):
        self._data[key] = value

    def remove(self, key: str):
        self._data.pop(key, None)
