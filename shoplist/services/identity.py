# shoplist/services/identity.py
from typing import Callable, Optional

from ..clients.local import SessionCache, GUEST_OWNER
from . import share
from ..utils.logger import info, warn

GUEST_CODE = "guest-share-code"


class Identity:
    """Signed-in user profile, or a guest bound to an owner through a share code."""

    def __init__(self, user: Optional[dict] = None, guest_owner_id: Optional[str] = None):
        self.user = user
        self.guest_owner_id = None if user else guest_owner_id

    @property
    def effective_id(self) -> Optional[str]:
        if self.user:
            return self.user.get("id")
        return self.guest_owner_id

    @property
    def is_guest(self) -> bool:
        return self.user is None and bool(self.guest_owner_id)

    @property
    def is_owner(self) -> bool:
        return self.user is not None and bool(self.user.get("id"))

    def key(self) -> tuple:
        return (self.effective_id, self.is_guest)

    def to_dict(self) -> dict:
        return {
            "effectiveId": self.effective_id,
            "isGuest": self.is_guest,
            "user": self.user,
        }

    def __eq__(self, other):
        return isinstance(other, Identity) and self.key() == other.key()

    def __repr__(self):
        kind = "guest" if self.is_guest else ("owner" if self.is_owner else "none")
        return f"Identity({kind}, {self.effective_id!r})"

NO_IDENTITY = Identity()

def profile_from_provider(raw: dict) -> dict:
    """Keep the fields the identity provider hands us: id, displayName, avatarUrl, email."""
    uid = str(raw.get("id") or raw.get("uid") or "").strip()
    if not uid:
        raise ValueError("identity provider profile has no id")
    return {
        "id": uid,
        "displayName": raw.get("displayName"),
        "avatarUrl": raw.get("avatarUrl") or raw.get("photoURL"),
        "email": raw.get("email"),
    }


class AuthSession:
    def __init__(self, store, session_cache: Optional[SessionCache] = None):
        self.store = store
        self.session_cache = session_cache or SessionCache()
        self.identity = NO_IDENTITY
        self._listeners: list[Callable[[Identity], None]] = []

    def on_change(self, fn: Callable[[Identity], None]):
        self._listeners.append(fn)

    def _set(self, identity: Identity):
        if identity == self.identity and identity.user == self.identity.user:
            return
        self.identity = identity
        for fn in self._listeners:
            fn(identity)

    def restore(self) -> Identity:
        """App start: re-resolve a held guest code so revoked codes stop working."""
        code = self.session_cache.get(GUEST_CODE)
        if code and not self.identity.user:
            owner_id = share.resolve(self.store, code)
            if owner_id:
                self.session_cache.set(GUEST_OWNER, owner_id)
                self._set(Identity(guest_owner_id=owner_id))
            else:
                warn("[auth] stored guest code no longer resolves, ending guest session")
                self._clear_guest()
        return self.identity

    def sign_in(self, profile: dict) -> Identity:
        user = profile_from_provider(profile)
        self._clear_guest()
        info(f"[auth] signed in {user['id']}")
        self._set(Identity(user=user))
        return self.identity

    def join(self, code: str) -> Optional[str]:
        owner_id = share.resolve(self.store, code)
        if not owner_id:
            info("[auth] share code not found")
            return None
        self.session_cache.set(GUEST_OWNER, owner_id)
        self.session_cache.set(GUEST_CODE, share.normalize(code))
        info(f"[auth] joined as guest of {owner_id}")
        self._set(Identity(guest_owner_id=owner_id))
        return owner_id

    def sign_out(self) -> Identity:
        if self.identity.is_guest:
            self._clear_guest()
            info("[auth] guest session ended")
        elif self.identity.user:
            info(f"[auth] signed out {self.identity.effective_id}")
        self._set(NO_IDENTITY)
        return self.identity

    def _clear_guest(self):
        self.session_cache.remove(GUEST_OWNER)
        self.session_cache.remove(GUEST_CODE)
