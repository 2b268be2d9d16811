# shoplist/routes/session.py
from flask import Blueprint, abort, current_app, request

bp = Blueprint("session", __name__)

def _shop() -> dict:
    return current_app.extensions["shoplist"]

def _describe() -> dict:
    shop = _shop()
    identity = shop["auth"].identity
    out = {**identity.to_dict(), "status": shop["controller"].status}
    if identity.is_owner:
        out["shareCode"] = shop["state"].share_code
    return out

@bp.get("")
def get_session():
    return _describe(), 200

@bp.post("/sign-in")
def sign_in():
    profile = request.get_json(silent=True) or {}
    try:
        _shop()["auth"].sign_in(profile)
    except ValueError as e:
        return {"error": str(e)}, 400
    return _describe(), 200

@bp.post("/join")
def join():
    body = request.get_json(silent=True) or {}
    code = (body.get("code") or "").strip()
    if not code:
        return {"error": "missing share code"}, 400
    if not _shop()["auth"].join(code):
        return {"error": "share code not found"}, 404
    return _describe(), 200

@bp.post("/sign-out")
def sign_out():
    _shop()["auth"].sign_out()
    return _describe(), 200

@bp.post("/share-code")
def issue_share_code():
    if not _shop()["auth"].identity.is_owner:
        abort(403)
    code = _shop()["controller"].issue_share_code()
    if not code:
        return {"error": "could not save share code"}, 502
    return {"shareCode": code}, 201

@bp.delete("/share-code")
def revoke_share_code():
    if not _shop()["auth"].identity.is_owner:
        abort(403)
    ok = _shop()["controller"].revoke_share_code()
    return {"ok": ok, "shareCode": None}, 200
