# shoplist/routes/shopping.py
from flask import Blueprint, Response, abort, current_app, request

from ..services.catalog import InvalidImport
from ..utils.logger import info, warn

bp = Blueprint("shopping", __name__)

def _state():
    shop = current_app.extensions["shoplist"]
    if shop["auth"].identity.effective_id is None:
        abort(401)
    return shop["state"]

def _catalog_state():
    """State for product mutations; guests only get to read the catalog."""
    state = _state()
    if current_app.extensions["shoplist"]["auth"].identity.is_guest:
        abort(403)
    return state

# =========================================================
# Products
# =========================================================

@bp.get("/products")
def list_products():
    state = _state()
    return {
        "products": state.filtered(
            search=request.args.get("q", ""),
            tab=request.args.get("tab", "all"),
            category=request.args.get("category"),
        ),
        "favorites": state.snapshot("favorites"),
    }, 200

@bp.post("/products")
def add_product():
    state = _catalog_state()
    try:
        product = state.add_product(request.get_json(silent=True) or {})
    except ValueError as e:
        return {"error": str(e)}, 400
    return product, 201

@bp.put("/products/<int:pid>")
def edit_product(pid: int):
    state = _catalog_state()
    try:
        product = state.edit_product(pid, request.get_json(silent=True) or {})
    except KeyError:
        abort(404)
    except ValueError as e:
        return {"error": str(e)}, 400
    return product, 200

@bp.delete("/products/<int:pid>")
def delete_product(pid: int):
    state = _catalog_state()
    if not state.delete_product(pid):
        abort(404)
    return {"ok": True}, 200

@bp.post("/products/import")
def import_products():
    state = _catalog_state()
    upload = request.files.get("file")
    raw = upload.read() if upload else request.get_data()
    try:
        added = state.import_products(raw)
    except InvalidImport as e:
        warn(f"[import] rejected: {e}")
        return {"error": f"invalid import file: {e}"}, 400
    info(f"[import] {added} new products")
    return {"imported": added}, 200

@bp.get("/products/export")
def export_products():
    state = _state()
    return Response(
        state.export_products(),
        mimetype="application/json",
        headers={"Content-Disposition": "attachment; filename=products.json"},
    )

# =========================================================
# Favorites
# =========================================================

@bp.get("/favorites")
def list_favorites():
    return {"favorites": _state().snapshot("favorites")}, 200

@bp.post("/favorites/<int:pid>")
def toggle_favorite(pid: int):
    state = _state()
    if state.find(pid) is None:
        abort(404)
    now = state.toggle_favorite(pid)
    return {"favorite": now, "favorites": state.snapshot("favorites")}, 200

# =========================================================
# Cart
# =========================================================

def _cart_body(state) -> dict:
    return {"items": state.snapshot("cart"), "total": state.cart_total()}

@bp.get("/cart")
def get_cart():
    return _cart_body(_state()), 200

@bp.post("/cart")
def add_to_cart():
    state = _state()
    body = request.get_json(silent=True) or {}
    try:
        state.add_to_cart(int(body.get("id")))
    except (TypeError, ValueError):
        return {"error": "missing or invalid product id"}, 400
    except KeyError:
        abort(404)
    return _cart_body(state), 201

@bp.delete("/cart/<int:index>")
def remove_from_cart(index: int):
    state = _state()
    if state.remove_from_cart(index) is None:
        abort(404)
    return _cart_body(state), 200

@bp.post("/cart/checkout")
def checkout():
    state = _state()
    body = _cart_body(state)
    if not body["items"]:
        return {"error": "cart is empty"}, 400
    # Summary only; the list stays as it is
    body["lines"] = [f"{item['name']} - ${item['price']:.2f}" for item in body["items"]]
    info(f"[cart] checkout {len(body['items'])} items, total {body['total']:.2f}")
    return body, 200
