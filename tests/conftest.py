import copy

import pytest

from shoplist.clients.local import LocalCache, SessionCache
from shoplist.clients.remote import RemoteUnavailable, Subscription
from shoplist.config import USERS_COLLECTION
from shoplist.services.state import ShoppingState
from shoplist.services.sync import SyncController


class FakeStore:
    """In-memory document store with the RemoteStore interface; pushes to subscribers on every write."""

    def __init__(self):
        self.docs: dict[tuple[str, str], dict] = {}
        self.writes: list[tuple[str, str, object]] = []
        self.subs: dict[str, list[Subscription]] = {}
        self.fail_reads = False
        self.fail_writes = False

    # reads
    def get_document(self, collection, doc_id):
        if self.fail_reads:
            raise RemoteUnavailable("store offline")
        doc = self.docs.get((collection, doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    def read_document(self, owner_id):
        return self.get_document(USERS_COLLECTION, owner_id)

    # writes
    def _changed(self, collection, doc_id):
        if collection != USERS_COLLECTION:
            return
        for sub in list(self.subs.get(doc_id, [])):
            sub.poll()

    def merge_document(self, collection, doc_id, data):
        if self.fail_writes:
            return False
        self.docs.setdefault((collection, doc_id), {}).update(copy.deepcopy(data))
        self._changed(collection, doc_id)
        return True

    def set_document(self, collection, doc_id, data):
        if self.fail_writes:
            return False
        self.docs[(collection, doc_id)] = copy.deepcopy(data)
        self._changed(collection, doc_id)
        return True

    def delete_document(self, collection, doc_id):
        if self.fail_writes:
            return False
        self.docs.pop((collection, doc_id), None)
        return True

    def write_field(self, owner_id, field, value, revision=None, writer=None):
        if self.fail_writes:
            return False
        self.writes.append((owner_id, field, copy.deepcopy(value)))
        data = {field: value, "updatedAt": "now"}
        if revision:
            data["revision"] = revision
        if writer:
            data["writer"] = writer
        return self.merge_document(USERS_COLLECTION, owner_id, data)

    # feed
    def subscribe(self, owner_id, on_change, start=True):
        sub = Subscription(lambda: self.read_document(owner_id), on_change, name=owner_id)
        self.subs.setdefault(owner_id, []).append(sub)
        sub.poll()
        return sub

    def push(self, owner_id, **fields):
        """Simulate a write from another session."""
        doc = self.docs.setdefault((USERS_COLLECTION, owner_id), {})
        doc.update(copy.deepcopy(fields))
        doc["revision"] = "other-session:1"
        doc["writer"] = "other-session"
        self._changed(USERS_COLLECTION, owner_id)

    def user_doc(self, owner_id):
        return self.docs.get((USERS_COLLECTION, owner_id))

    def active_subs(self, owner_id):
        return [s for s in self.subs.get(owner_id, []) if not s.cancelled]


@pytest.fixture
def store():
    return FakeStore()

@pytest.fixture
def cache(tmp_path):
    return LocalCache(str(tmp_path / "cache.json"))

@pytest.fixture
def session_cache():
    return SessionCache()

@pytest.fixture
def state():
    return ShoppingState()

@pytest.fixture
def controller(state, cache, store):
    return SyncController(state, cache, store, background=False, session_id="me")

@pytest.fixture
def owner_profile():
    return {"id": "owner-1", "displayName": "Olive Owner", "avatarUrl": "https://img/o.png", "email": "o@example.com"}
