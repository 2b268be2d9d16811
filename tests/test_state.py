import json
import random

import pytest

from shoplist.data import sample_catalog
from shoplist.services.catalog import InvalidImport
from shoplist.services.state import ShoppingState


@pytest.fixture
def seeded():
    s = ShoppingState()
    s.replace({"products": sample_catalog(), "favorites": [], "cart": []}, notify=False)
    return s


def test_favorites_never_hold_duplicates(seeded):
    rng = random.Random(7)
    expected = set()
    for _ in range(200):
        pid = rng.randint(1, 5)
        op = rng.choice(("add", "remove", "toggle"))
        if op == "add":
            seeded.add_favorite(pid)
            expected.add(pid)
        elif op == "remove":
            seeded.remove_favorite(pid)
            expected.discard(pid)
        else:
            seeded.toggle_favorite(pid)
            expected ^= {pid}
        favs = seeded.snapshot("favorites")
        assert len(favs) == len(set(favs))
        assert set(favs) == expected


def test_toggle_reports_new_membership(seeded):
    assert seeded.toggle_favorite(3) is True
    assert seeded.toggle_favorite(3) is False
    assert seeded.favorites == []


def test_cart_keeps_duplicates_and_removes_by_index(seeded):
    seeded.add_to_cart(1)
    seeded.add_to_cart(2)
    seeded.add_to_cart(1)
    seeded.add_to_cart(3)
    removed = seeded.remove_from_cart(0)
    assert removed["id"] == 1
    assert [i["id"] for i in seeded.cart] == [2, 1, 3]
    seeded.remove_from_cart(0)
    assert [i["id"] for i in seeded.cart] == [1, 3]


def test_remove_out_of_range_is_noop(seeded):
    seeded.add_to_cart(1)
    assert seeded.remove_from_cart(1) is None
    seeded.remove_from_cart(0)
    assert seeded.remove_from_cart(0) is None
    assert seeded.cart == []


def test_add_unknown_product_to_cart(seeded):
    with pytest.raises(KeyError):
        seeded.add_to_cart(999)


def test_cart_total(seeded):
    assert seeded.cart_total() == 0
    seeded.add_to_cart(5)
    seeded.add_to_cart(8)
    assert seeded.cart_total() == pytest.approx(4.48)


def test_delete_product_cascades_in_one_step(seeded):
    seeded.add_favorite(4)
    seeded.add_favorite(6)
    seeded.add_to_cart(4)
    seeded.add_to_cart(6)
    seeded.add_to_cart(4)

    seen = []
    def watcher(field, value):
        # every notification sees the fully purged state
        seen.append(field)
        assert all(p["id"] != 4 for p in seeded.products)
        assert 4 not in seeded.favorites
        assert all(i["id"] != 4 for i in seeded.cart)
    seeded.watch(watcher)

    assert seeded.delete_product(4) is True
    assert seen == ["products", "favorites", "cart"]
    assert seeded.favorites == [6]
    assert [i["id"] for i in seeded.cart] == [6]
    assert seeded.delete_product(4) is False


def test_add_and_edit_product(seeded):
    p = seeded.add_product({"name": "Oat Milk", "price": "3.29", "category": "Dairy"})
    assert p["id"] == 13
    assert p["price"] == 3.29
    edited = seeded.edit_product(13, {"price": 2.99, "id": 99})
    assert edited == {"id": 13, "name": "Oat Milk", "price": 2.99, "category": "Dairy"}
    with pytest.raises(ValueError):
        seeded.edit_product(13, {"category": "Beverages"})
    with pytest.raises(KeyError):
        seeded.edit_product(404, {"price": 1})


@pytest.mark.parametrize("bad", [
    {"name": "", "price": 1, "category": "Dairy"},
    {"name": "X", "price": -0.5, "category": "Dairy"},
    {"name": "X", "price": "abc", "category": "Dairy"},
    {"name": "X", "price": 1, "category": "Beverages"},
])
def test_add_product_rejects_bad_data(seeded, bad):
    with pytest.raises(ValueError):
        seeded.add_product(bad)
    assert len(seeded.products) == 12


def test_export_then_import_into_empty_catalog(seeded):
    exported = seeded.export_products()
    assert exported.startswith("[\n  {")
    empty = ShoppingState()
    assert empty.import_products(exported) == 12
    key = lambda p: (p["name"], p["price"], p["category"])
    assert sorted(map(key, empty.products)) == sorted(map(key, seeded.products))


def test_import_dedupes_case_insensitively(seeded):
    payload = json.dumps([
        {"name": "greek YOGURT", "price": 1.0, "category": "Dairy"},
        {"name": "Dill Pickle Chips", "price": 2.49, "category": "Snacks"},
    ])
    assert seeded.import_products(payload) == 1
    assert len(seeded.products) == 13
    yogurt = [p for p in seeded.products if p["name"].lower() == "greek yogurt"]
    assert yogurt == [{"id": 11, "name": "Greek Yogurt", "price": 4.99, "category": "Dairy"}]
    assert seeded.products[-1]["id"] == 13


def test_import_all_duplicates_reports_zero_and_notifies_nothing(seeded):
    seen = []
    seeded.watch(lambda f, v: seen.append(f))
    assert seeded.import_products(json.dumps([{"name": "organic carrots", "price": 1, "category": "Produce"}])) == 0
    assert seen == []


@pytest.mark.parametrize("text", ["{not json", '{"name": "x"}', '[{"name": "x", "price": 1, "category": "Nope"}]'])
def test_malformed_import_changes_nothing(seeded, text):
    before = seeded.snapshot("products")
    with pytest.raises(InvalidImport):
        seeded.import_products(text)
    assert seeded.snapshot("products") == before


def test_filtered(seeded):
    seeded.add_favorite(1)
    seeded.add_favorite(5)
    assert [p["id"] for p in seeded.filtered(search="orange")] == [1, 9]
    assert [p["id"] for p in seeded.filtered(tab="favorites")] == [1, 5]
    assert [p["id"] for p in seeded.filtered(category="produce")] == [5, 8]
    assert [p["id"] for p in seeded.filtered(search="chicken", tab="favorites")] == [1]
