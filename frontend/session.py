from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, MutableMapping

import requests

from frontend.api_client import ApiClient

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
USER_KEY = "auth_user"
RESOLVED_KEY = "auth_resolved"
ERROR_KEY = "auth_error"



# JWT helpers (UI only, no signature check)

def _b64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def jwt_payload(token: str) -> dict:
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    try:
        payload = json.loads(_b64url_decode(parts[1]).decode("utf-8"))
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def jwt_is_expired(token: str, now: datetime | None = None) -> bool:
    exp = jwt_payload(token).get("exp")
    try:
        exp_int = int(exp)
    except (TypeError, ValueError):
        return False

    now = now or datetime.now(tz=timezone.utc)
    return int(now.timestamp()) >= (exp_int - 5)



# Session

@dataclass(frozen=True)
class Session:
    """What the route gate reads: who is logged in, and whether we know yet."""

    user: dict[str, Any] | None = None
    loading: bool = True


class AuthProvider:
    """
    Owns the session, stored in a mapping (st.session_state in the app).

    Lifecycle: a fresh store is Loading until resolve() runs the identity
    check (GET /api/me); it then settles with the user, or without one when
    there is no token, the token is expired or the check fails.
    """

    def __init__(
        self,
        store: MutableMapping[str, Any],
        api_base: str,
        client_factory: Callable[..., ApiClient] = ApiClient,
    ) -> None:
        self.store = store
        self.api_base = api_base
        self.client_factory = client_factory

    @property
    def token(self) -> str | None:
        return self.store.get(TOKEN_KEY)

    @property
    def error(self) -> str | None:
        return self.store.get(ERROR_KEY)

    def client(self) -> ApiClient:
        return self.client_factory(self.api_base, self.token)

    def current(self) -> Session:
        if not self.store.get(RESOLVED_KEY):
            return Session(user=None, loading=True)
        return Session(user=self.store.get(USER_KEY), loading=False)

    def _settle(self, user: dict[str, Any] | None) -> Session:
        self.store[USER_KEY] = user
        self.store[RESOLVED_KEY] = True
        return self.current()

    def resolve(self) -> Session:
        token = self.token
        if not token:
            return self._settle(None)

        if jwt_is_expired(token):
            return self.expire("Session expired, please log in again.")

        try:
            user = self.client().get("/api/me")
        except PermissionError as e:
            return self.expire(str(e))
        except requests.RequestException as e:
            # token kept: the backend may just be restarting
            logger.warning("Identity check failed: %s", e)
            self.store[ERROR_KEY] = f"API not reachable: {e}"
            return self._settle(None)

        self.store.pop(ERROR_KEY, None)
        return self._settle(user)

    def invalidate(self) -> None:
        """Back to Loading: the next render runs the identity check again."""
        self.store[RESOLVED_KEY] = False

    def login(self, email: str, password: str) -> Session:
        """Raises requests.HTTPError on wrong credentials."""
        token = self.client_factory(self.api_base).login(email.strip().lower(), password)
        self.store[TOKEN_KEY] = token
        return self.resolve()

    def expire(self, reason: str) -> Session:
        """The backend rejected the token while in use."""
        self.store.pop(TOKEN_KEY, None)
        self.store[ERROR_KEY] = reason
        return self._settle(None)

    def logout(self) -> Session:
        self.store.pop(TOKEN_KEY, None)
        self.store.pop(ERROR_KEY, None)
        return self._settle(None)
