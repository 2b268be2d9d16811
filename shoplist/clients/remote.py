# shoplist/clients/remote.py
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from ..config import (
    REMOTE_STORE_URL, REMOTE_STORE_TOKEN, REMOTE_TIMEOUT, POLL_INTERVAL,
    USERS_COLLECTION,
)
from ..utils.hash import document_hash
from ..utils.logger import debug, info, warn, error


class RemoteUnavailable(Exception): pass
class TransientReadError(Exception): pass

TRANSIENT_STATUS = (429, 502, 503, 504)

def rest_headers(token: Optional[str]) -> dict:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers

def server_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()

@retry(
    reraise=True,
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=6),
    retry=retry_if_exception_type(TransientReadError),
)
def _get_with_retry(session: requests.Session, url: str, headers: dict, timeout: float) -> requests.Response:
    try:
        r = session.get(url, headers=headers, timeout=timeout)
    except (requests.ConnectionError, requests.Timeout) as e:
        raise TransientReadError(str(e))
    if r.status_code in TRANSIENT_STATUS:
        raise TransientReadError(f"{r.status_code} {r.text}")
    return r

# =========================================================
# Live subscription (polling)
# =========================================================

class Subscription:
    """
    Polls a document and calls on_change(doc) whenever its content changes.
    cancel() may be called any number of times; once it returns no further
    callbacks are delivered.
    """

    def __init__(self, fetch: Callable[[], Optional[dict]], on_change: Callable[[dict], None],
                 interval: float = POLL_INTERVAL, name: str = "doc"):
        self.name = name
        self.interval = interval
        self._fetch = fetch
        self._on_change = on_change
        self._last_hash: Optional[str] = None
        self._cancelled = False
        self._lock = threading.RLock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> "Subscription":
        self._thread = threading.Thread(target=self._run, daemon=True, name=f"subscription-{self.name}")
        self._thread.start()
        return self

    def _run(self):
        while not self._stop.is_set():
            self.poll()
            self._stop.wait(self.interval)

    def poll(self) -> bool:
        """One fetch; returns True when a change was delivered."""
        if self._cancelled:
            return False
        try:
            doc = self._fetch()
        except RemoteUnavailable as e:
            warn(f"[remote] subscription {self.name} read failed: {e}")
            return False
        except Exception as e:
            error(f"[remote] subscription {self.name} poll error: {e}")
            return False
        if doc is None:
            return False
        h = document_hash(doc)
        if h == self._last_hash:
            return False
        with self._lock:
            if self._cancelled:
                return False
            self._last_hash = h
            try:
                self._on_change(doc)
            except Exception as e:
                error(f"[remote] subscription {self.name} callback error: {e}")
        return True

    def cancel(self) -> bool:
        with self._lock:
            if self._cancelled:
                return False
            self._cancelled = True
        self._stop.set()
        debug(f"[remote] subscription {self.name} cancelled")
        return True

# =========================================================
# Document store client
# =========================================================

class RemoteStore:
    """
    JSON document store over HTTP:
      GET/PATCH/PUT/DELETE {base}/{collection}/{doc_id}
    PATCH merges top-level fields; 404 means the document does not exist.
    """

    def __init__(self, base_url: str = REMOTE_STORE_URL, token: Optional[str] = REMOTE_STORE_TOKEN,
                 timeout: float = REMOTE_TIMEOUT, poll_interval: float = POLL_INTERVAL,
                 session: Optional[requests.Session] = None):
        self.base_url = (base_url or "").rstrip("/")
        self.token = token
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.session = session or requests.Session()

    def doc_url(self, collection: str, doc_id: str) -> str:
        return f"{self.base_url}/{collection}/{doc_id}"

    # ---------------- reads ----------------

    def get_document(self, collection: str, doc_id: str) -> Optional[dict]:
        """Point read. None when missing; RemoteUnavailable when the store can't be reached."""
        if not self.base_url:
            raise RemoteUnavailable("REMOTE_STORE_URL is not configured")
        url = self.doc_url(collection, doc_id)
        try:
            r = _get_with_retry(self.session, url, rest_headers(self.token), self.timeout)
        except TransientReadError as e:
            raise RemoteUnavailable(f"{collection}/{doc_id}: {e}")
        except requests.RequestException as e:
            raise RemoteUnavailable(f"{collection}/{doc_id}: {e}")
        if r.status_code == 404:
            return None
        if r.status_code != 200:
            raise RemoteUnavailable(f"{collection}/{doc_id}: {r.status_code} {r.text}")
        try:
            data = r.json()
        except ValueError as e:
            raise RemoteUnavailable(f"{collection}/{doc_id}: bad JSON ({e})")
        return data if isinstance(data, dict) else None

    def read_document(self, owner_id: str) -> Optional[dict]:
        return self.get_document(USERS_COLLECTION, owner_id)

    # ---------------- writes ----------------

    def _send(self, method: str, collection: str, doc_id: str, payload: Optional[dict] = None) -> bool:
        if not self.base_url:
            warn(f"[remote] {method} {collection}/{doc_id} skipped: REMOTE_STORE_URL is not configured")
            return False
        try:
            r = self.session.request(method, self.doc_url(collection, doc_id),
                                     headers=rest_headers(self.token), json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            error(f"[remote] {method} {collection}/{doc_id} failed: {e}")
            return False
        if method == "DELETE" and r.status_code == 404:
            return True
        if r.status_code not in (200, 201, 204):
            error(f"[remote] {method} {collection}/{doc_id} failed: {r.status_code} {r.text}")
            return False
        return True

    def write_field(self, owner_id: str, field: str, value, revision: Optional[str] = None,
                    writer: Optional[str] = None) -> bool:
        payload = {field: value, "updatedAt": server_timestamp()}
        if revision:
            payload["revision"] = revision
        if writer:
            payload["writer"] = writer
        ok = self._send("PATCH", USERS_COLLECTION, owner_id, payload)
        if ok:
            debug(f"[remote] wrote {field} for {owner_id} rev={revision}")
        return ok

    def merge_document(self, collection: str, doc_id: str, data: dict) -> bool:
        return self._send("PATCH", collection, doc_id, data)

    def set_document(self, collection: str, doc_id: str, data: dict) -> bool:
        return self._send("PUT", collection, doc_id, data)

    def delete_document(self, collection: str, doc_id: str) -> bool:
        return self._send("DELETE", collection, doc_id)

    # ---------------- live feed ----------------

    def subscribe(self, owner_id: str, on_change: Callable[[dict], None], start: bool = True) -> Subscription:
        sub = Subscription(lambda: self.read_document(owner_id), on_change,
                           interval=self.poll_interval, name=owner_id)
        if start:
            sub.start()
            info(f"[remote] subscribed to {USERS_COLLECTION}/{owner_id}")
        return sub
