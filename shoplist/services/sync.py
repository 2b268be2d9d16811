# shoplist/services/sync.py
import itertools
import secrets
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from ..clients.local import LocalCache
from ..clients.remote import RemoteUnavailable, Subscription
from ..config import SYNC_BACKGROUND_WRITES
from ..data import sample_catalog
from ..utils.logger import debug, info, warn, error
from . import share
from .catalog import FIELD_CLEANERS
from .identity import Identity, NO_IDENTITY
from .state import ShoppingState, PRODUCTS, FAVORITES, CART, SHARE_CODE, FIELDS

IDLE = "idle"
LOADING = "loading"
SYNCED = "synced"

def _fields_from_doc(doc: dict) -> dict:
    out = {}
    for field in FIELDS:
        if field not in doc:
            continue
        try:
            out[field] = FIELD_CLEANERS[field](doc[field])
        except ValueError as e:
            warn(f"[sync] ignoring malformed remote {field}: {e}")
    return out

# =========================================================
# Sync controller
# ---------------------------------------------------------
# idle     no effective identity, no storage traffic
# loading  reading the remote document (falls back to local cache)
# synced   subscribed; local changes are written back
#
# Every identity switch bumps _generation. Loads, subscriptions and
# pushes started under an older generation are dropped.
#
# Echo suppression: remote documents are applied with _applying set, so
# the state watchers don't write them back. Outbound writes carry a
# revision "<session>:<n>" and are counted per field until the store
# acknowledges them; pushed documents never overwrite a field that still
# has one of our writes in flight.
# =========================================================

class SyncController:
    def __init__(self, state: ShoppingState, cache: LocalCache, store,
                 background: bool = SYNC_BACKGROUND_WRITES, session_id: Optional[str] = None):
        self.state = state
        self.cache = cache
        self.store = store
        self.identity: Identity = NO_IDENTITY
        self.status = IDLE
        self.session_id = session_id or secrets.token_hex(4)
        self._seq = itertools.count(1)
        self._pending: dict[tuple[str, str], int] = {}
        self._pending_lock = threading.Lock()
        self._applying = False
        self._generation = 0
        self._closed = False
        self._subscription: Optional[Subscription] = None
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="sync-write") if background else None
        state.watch(self._on_local_change)

    # ---------------- identity lifecycle ----------------

    def set_identity(self, identity: Identity):
        with self.state.lock:
            self._generation += 1
            generation = self._generation
            self.identity = identity
            self.status = IDLE if identity.effective_id is None else LOADING
            self.state.reset()
            sub, self._subscription = self._subscription, None
        # Old feed goes before anything is loaded for the new identity
        if sub is not None:
            sub.cancel()

        if identity.effective_id is None:
            info("[sync] idle (no identity)")
            return

        if not self._load(identity, generation):
            info(f"[sync] load for {identity!r} superseded by a newer identity")
            return

        # Subscribed outside the state lock: a poll delivering into on_change
        # takes the subscription lock first, then the state lock
        sub = self._subscribe(identity, generation)
        with self.state.lock:
            current = generation == self._generation
            if current:
                self._subscription = sub
                self.status = SYNCED
        if not current:
            sub.cancel()
            return
        info(f"[sync] synced {identity!r}")

    def _load(self, identity: Identity, generation: int) -> bool:
        owner_id = identity.effective_id
        try:
            doc = self.store.read_document(owner_id)
        except RemoteUnavailable as e:
            warn(f"[sync] remote read failed for {owner_id}, using local cache: {e}")
            return self._load_from_cache(generation)

        with self.state.lock:
            if generation != self._generation:
                return False

            if doc and PRODUCTS in doc:
                info(f"[sync] loaded remote document for {owner_id}")
                self._apply(doc, identity)
                return True

            if identity.is_guest:
                warn(f"[sync] owner {owner_id} has no catalog yet, guest view starts empty")
                if doc:
                    self._apply(doc, identity)
                return True

            info(f"[sync] no catalog for {owner_id}, seeding sample catalog")
            existing = _fields_from_doc(doc or {})
            seeded = {
                PRODUCTS: sample_catalog(),
                FAVORITES: existing.get(FAVORITES, []),
                CART: existing.get(CART, []),
            }
            if doc and SHARE_CODE in doc:
                seeded[SHARE_CODE] = doc[SHARE_CODE]
            self._replace_quietly(seeded)
            for field in FIELDS:
                value = self.state.snapshot(field)
                self.cache.set(field, value)
                self._write_remote(owner_id, field, value)
            return True

    def _load_from_cache(self, generation: int) -> bool:
        with self.state.lock:
            if generation != self._generation:
                return False
            products = self.cache.get(PRODUCTS)
            if not products:
                # Remote presumed unreachable: seed locally only
                products = sample_catalog()
                self.cache.set(PRODUCTS, products)
            self._replace_quietly({
                PRODUCTS: products,
                FAVORITES: self.cache.get(FAVORITES),
                CART: self.cache.get(CART),
            })
            return True

    def _subscribe(self, identity: Identity, generation: int) -> Subscription:
        def on_change(doc: dict):
            self._on_remote(doc, generation)
        return self.store.subscribe(identity.effective_id, on_change)

    def flush(self):
        """Block until every write queued so far has been sent."""
        if self._executor is not None and not self._closed:
            self._executor.submit(lambda: None).result()

    def close(self):
        if self._closed:
            return
        self._closed = True
        with self.state.lock:
            sub, self._subscription = self._subscription, None
        if sub is not None:
            sub.cancel()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        debug("[sync] controller closed")

    # ---------------- remote -> local ----------------

    def _on_remote(self, doc: dict, generation: int):
        with self.state.lock:
            if generation != self._generation:
                debug("[sync] dropping push from a previous identity")
                return
            if doc.get("writer") == self.session_id:
                debug(f"[sync] push carries our own write rev={doc.get('revision')}")
            self._apply(doc, self.identity)

    def _apply(self, doc: dict, identity: Identity):
        fields = _fields_from_doc(doc)
        with self._pending_lock:
            in_flight = [f for f in fields if self._pending.get((identity.effective_id, f))]
        for field in in_flight:
            # our newer value is still on its way to the store
            debug(f"[sync] keeping local {field}, own write in flight")
            del fields[field]
        if identity.is_owner and SHARE_CODE in doc:
            fields[SHARE_CODE] = doc[SHARE_CODE]
        self._replace_quietly(fields)
        for field in FIELDS:
            if field in fields:
                self.cache.set(field, fields[field])

    def _replace_quietly(self, fields: dict):
        with self.state.lock:
            self._applying = True
            try:
                self.state.replace(fields)
            finally:
                self._applying = False

    # ---------------- local -> remote ----------------

    def _on_local_change(self, field: str, value):
        if self._applying:
            debug(f"[sync] {field} change came from remote, not writing back")
            return
        identity = self.identity
        if identity.effective_id is None:
            return
        # Guests never own the catalog
        if field == PRODUCTS and identity.is_guest:
            return
        self.cache.set(field, value)
        # Guest favorites/cart stay session-local
        if identity.is_owner:
            self._write_remote(identity.effective_id, field, value)

    def _write_remote(self, owner_id: str, field: str, value):
        rev = f"{self.session_id}:{next(self._seq)}"
        with self._pending_lock:
            key = (owner_id, field)
            self._pending[key] = self._pending.get(key, 0) + 1
        if self._executor is None or self._closed:
            self._write(owner_id, field, value, rev)
        else:
            self._executor.submit(self._write, owner_id, field, value, rev)

    def _write(self, owner_id: str, field: str, value, rev: str):
        try:
            self.store.write_field(owner_id, field, value, revision=rev, writer=self.session_id)
        except Exception as e:
            error(f"[sync] write of {field} for {owner_id} failed: {e}")
        finally:
            with self._pending_lock:
                self._pending[(owner_id, field)] -= 1

    # ---------------- share codes ----------------

    def issue_share_code(self) -> Optional[str]:
        identity = self.identity
        if not identity.is_owner:
            raise PermissionError("only a signed-in owner can issue share codes")
        code = share.issue(self.store, identity.effective_id, previous=self.state.share_code)
        if code:
            self._replace_quietly({SHARE_CODE: code})
        return code

    def revoke_share_code(self) -> bool:
        identity = self.identity
        if not identity.is_owner:
            raise PermissionError("only a signed-in owner can revoke share codes")
        ok = share.revoke(self.store, identity.effective_id, self.state.share_code)
        self._replace_quietly({SHARE_CODE: None})
        return ok
