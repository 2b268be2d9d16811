# shoplist/services/catalog.py
import json
import math
from typing import Optional

from ..data import CATEGORIES


class InvalidImport(Exception): pass

# =========================================================
# Product normalization
# =========================================================

def normalize_product(raw: dict, pid: Optional[int] = None) -> dict:
    """
    Validate a product payload and return a clean copy.
    Raises ValueError on missing name, negative/non-numeric price or unknown category.
    """
    if not isinstance(raw, dict):
        raise ValueError("product must be an object")
    name = raw.get("name")
    name = name.strip() if isinstance(name, str) else ""
    if not name:
        raise ValueError("product name is required")
    price = raw.get("price")
    if isinstance(price, bool):
        raise ValueError(f"invalid price for {name!r}")
    try:
        price = float(price)
    except (TypeError, ValueError):
        raise ValueError(f"invalid price for {name!r}")
    if not math.isfinite(price) or price < 0:
        raise ValueError(f"price must be >= 0 for {name!r}")
    category = raw.get("category")
    if category not in CATEGORIES:
        raise ValueError(f"unknown category {category!r}")

    out = {"id": pid if pid is not None else raw.get("id"), "name": name,
           "price": round(price, 2), "category": category}
    if isinstance(out["id"], bool) or not isinstance(out["id"], int):
        raise ValueError(f"invalid id for {name!r}")
    image = raw.get("imageUrl")
    if image:
        out["imageUrl"] = str(image)
    return out

def clean_products(value, unique_ids: bool = True) -> list[dict]:
    """Normalized copy of a stored product list; ValueError if any item is bad."""
    if not isinstance(value, list):
        raise ValueError("expected a list of products")
    out = [normalize_product(p) for p in value]
    if unique_ids and len({p["id"] for p in out}) != len(out):
        raise ValueError("duplicate product ids")
    return out

def clean_cart(value) -> list[dict]:
    # the same product may sit in the cart more than once
    return clean_products(value, unique_ids=False)

def clean_ids(value) -> list[int]:
    if not isinstance(value, list) or not all(isinstance(v, int) and not isinstance(v, bool) for v in value):
        raise ValueError("expected a list of product ids")
    return list(dict.fromkeys(value))

# Cleaner per persisted field (products, favorites, cart)
FIELD_CLEANERS = {
    "products": clean_products,
    "favorites": clean_ids,
    "cart": clean_cart,
}

def next_id(products: list[dict]) -> int:
    return max((p["id"] for p in products), default=0) + 1

# =========================================================
# Import / export
# =========================================================

def parse_import(text: str | bytes) -> list[dict]:
    try:
        data = json.loads(text)
    except (TypeError, ValueError) as e:
        raise InvalidImport(f"not valid JSON: {e}")
    if not isinstance(data, list):
        raise InvalidImport("expected a JSON array of products")
    out = []
    for idx, raw in enumerate(data):
        try:
            out.append(normalize_product(raw, pid=0))
        except ValueError as e:
            raise InvalidImport(f"item {idx}: {e}")
    return out

def merge_import(products: list[dict], incoming: list[dict]) -> tuple[list[dict], int]:
    """Merge by case-insensitive name; only genuinely new names get fresh ids."""
    merged = list(products)
    seen = {p["name"].lower() for p in merged}
    nid = next_id(merged)
    added = 0
    for p in incoming:
        key = p["name"].lower()
        if key in seen:
            continue
        seen.add(key)
        merged.append({**p, "id": nid})
        nid += 1
        added += 1
    return merged, added

def export_json(products: list[dict]) -> str:
    return json.dumps(products, indent=2)

# =========================================================
# Display helpers
# =========================================================

def filter_products(products: list[dict], favorites: list[int], search: str = "",
                    tab: str = "all", category: Optional[str] = None) -> list[dict]:
    out = products
    if search:
        q = search.lower()
        out = [p for p in out if q in p["name"].lower()]
    if tab == "favorites":
        out = [p for p in out if p["id"] in favorites]
    if category and category.lower() not in ("all", ""):
        out = [p for p in out if p["category"].lower() == category.lower()]
    return out

def cart_total(cart: list[dict]) -> float:
    return round(sum(item.get("price", 0) for item in cart), 2)
