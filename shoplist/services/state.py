# shoplist/services/state.py
import threading
from typing import Callable, Optional

from .catalog import (
    normalize_product, next_id, parse_import, merge_import, export_json,
    filter_products, cart_total,
)

PRODUCTS = "products"
FAVORITES = "favorites"
CART = "cart"
SHARE_CODE = "shareCode"

FIELDS = (PRODUCTS, FAVORITES, CART)

Watcher = Callable[[str, object], None]


class ShoppingState:
    """
    In-memory products/favorites/cart for one session.

    Every mutation runs under one re-entrant lock and then notifies the
    registered watchers with (field, new_value) while still holding it, so
    a watcher always observes a consistent snapshot.
    """

    def __init__(self):
        self.products: list[dict] = []
        self.favorites: list[int] = []
        self.cart: list[dict] = []
        self.share_code: Optional[str] = None
        self.lock = threading.RLock()
        self._watchers: list[Watcher] = []

    def watch(self, fn: Watcher):
        self._watchers.append(fn)

    def _notify(self, *fields: str):
        for field in fields:
            value = self.snapshot(field)
            for fn in self._watchers:
                fn(field, value)

    def snapshot(self, field: str):
        with self.lock:
            if field == PRODUCTS:
                return [dict(p) for p in self.products]
            if field == FAVORITES:
                return list(self.favorites)
            if field == CART:
                return [dict(p) for p in self.cart]
            if field == SHARE_CODE:
                return self.share_code
        raise KeyError(field)

    def replace(self, fields: dict, notify: bool = True):
        """Bulk assignment of whichever of products/favorites/cart are present."""
        with self.lock:
            changed = []
            if PRODUCTS in fields:
                self.products = [dict(p) for p in fields[PRODUCTS] or []]
                changed.append(PRODUCTS)
            if FAVORITES in fields:
                self.favorites = list(dict.fromkeys(fields[FAVORITES] or []))
                changed.append(FAVORITES)
            if CART in fields:
                self.cart = [dict(p) for p in fields[CART] or []]
                changed.append(CART)
            if SHARE_CODE in fields:
                self.share_code = fields[SHARE_CODE]
            if notify:
                self._notify(*changed)

    def reset(self):
        with self.lock:
            self.products, self.favorites, self.cart = [], [], []
            self.share_code = None

    def find(self, pid: int) -> Optional[dict]:
        with self.lock:
            return next((p for p in self.products if p["id"] == pid), None)

    # ---------------- favorites ----------------

    def add_favorite(self, pid: int):
        with self.lock:
            if pid in self.favorites:
                return
            self.favorites = self.favorites + [pid]
            self._notify(FAVORITES)

    def remove_favorite(self, pid: int):
        with self.lock:
            if pid not in self.favorites:
                return
            self.favorites = [f for f in self.favorites if f != pid]
            self._notify(FAVORITES)

    def toggle_favorite(self, pid: int) -> bool:
        """Returns True when pid is a favorite afterwards."""
        with self.lock:
            if pid in self.favorites:
                self.remove_favorite(pid)
                return False
            self.add_favorite(pid)
            return True

    # ---------------- cart ----------------

    def add_to_cart(self, pid: int) -> dict:
        with self.lock:
            product = self.find(pid)
            if product is None:
                raise KeyError(pid)
            item = dict(product)
            self.cart = self.cart + [item]
            self._notify(CART)
            return item

    def remove_from_cart(self, index: int) -> Optional[dict]:
        with self.lock:
            if index < 0 or index >= len(self.cart):
                return None
            removed = self.cart[index]
            self.cart = self.cart[:index] + self.cart[index + 1:]
            self._notify(CART)
            return removed

    def cart_total(self) -> float:
        with self.lock:
            return cart_total(self.cart)

    # ---------------- catalog ----------------

    def add_product(self, data: dict) -> dict:
        with self.lock:
            product = normalize_product(data, pid=next_id(self.products))
            self.products = self.products + [product]
            self._notify(PRODUCTS)
            return product

    def edit_product(self, pid: int, changes: dict) -> dict:
        with self.lock:
            current = self.find(pid)
            if current is None:
                raise KeyError(pid)
            merged = {**current, **{k: v for k, v in changes.items() if k != "id"}}
            product = normalize_product(merged, pid=pid)
            self.products = [product if p["id"] == pid else p for p in self.products]
            self._notify(PRODUCTS)
            return product

    def delete_product(self, pid: int) -> bool:
        """Removes the product and purges it from favorites and cart in one step."""
        with self.lock:
            if self.find(pid) is None:
                return False
            self.products = [p for p in self.products if p["id"] != pid]
            self.favorites = [f for f in self.favorites if f != pid]
            self.cart = [item for item in self.cart if item.get("id") != pid]
            self._notify(PRODUCTS, FAVORITES, CART)
            return True

    def import_products(self, text: str | bytes) -> int:
        incoming = parse_import(text)
        with self.lock:
            merged, added = merge_import(self.products, incoming)
            if added:
                self.products = merged
                self._notify(PRODUCTS)
            return added

    def export_products(self) -> str:
        with self.lock:
            return export_json(self.products)

    def filtered(self, search: str = "", tab: str = "all", category: Optional[str] = None) -> list[dict]:
        with self.lock:
            return filter_products(self.products, self.favorites, search, tab, category)
