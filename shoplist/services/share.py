# shoplist/services/share.py
import random
import secrets
from typing import Optional

from ..clients.remote import RemoteUnavailable, server_timestamp
from ..config import USERS_COLLECTION, SHARE_CODES_COLLECTION
from ..utils.logger import info, warn, error

# No 0/O, 1/I
ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
CODE_LEN = 8

def generate(rng: Optional[random.Random] = None) -> str:
    """Random XXXX-XXXX code. Not checked against existing codes."""
    pick = rng.choice if rng is not None else secrets.choice
    chars = [pick(ALPHABET) for _ in range(CODE_LEN)]
    return "".join(chars[:4]) + "-" + "".join(chars[4:])

def normalize(code: str) -> str:
    return (code or "").strip().upper()

# =========================================================
# Registry (code -> owner reverse mapping)
# ---------------------------------------------------------
# shareCodes/<code> = {ownerId, createdAt}
# users/<owner>.shareCode = <code>
#
# Rotation deletes the old mapping, then writes the new one. The two
# writes are not atomic: a failure between them leaves the owner with
# no active code until the next issue().
# =========================================================

def issue(store, owner_id: str, previous: Optional[str] = None, rng: Optional[random.Random] = None) -> Optional[str]:
    code = generate(rng)
    if previous:
        store.delete_document(SHARE_CODES_COLLECTION, normalize(previous))
    if not store.set_document(SHARE_CODES_COLLECTION, code, {"ownerId": owner_id, "createdAt": server_timestamp()}):
        error(f"[share] could not save mapping for new code (owner {owner_id})")
        return None
    store.merge_document(USERS_COLLECTION, owner_id, {"shareCode": code, "updatedAt": server_timestamp()})
    info(f"[share] issued code for {owner_id}{' (rotated)' if previous else ''}")
    return code

def revoke(store, owner_id: str, code: Optional[str]) -> bool:
    if code:
        store.delete_document(SHARE_CODES_COLLECTION, normalize(code))
    ok = store.merge_document(USERS_COLLECTION, owner_id, {"shareCode": None, "updatedAt": server_timestamp()})
    info(f"[share] revoked code for {owner_id}")
    return ok

def resolve(store, code: str) -> Optional[str]:
    normalized = normalize(code)
    if not normalized:
        return None
    try:
        doc = store.get_document(SHARE_CODES_COLLECTION, normalized)
    except RemoteUnavailable as e:
        warn(f"[share] lookup failed for {normalized}: {e}")
        return None
    if not doc or not doc.get("ownerId"):
        return None
    return doc["ownerId"]
