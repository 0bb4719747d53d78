import threading
from typing import Any, Optional

import requests

from api_client import parse_envelope
from config import API_BASE, REQUEST_TIMEOUT, HeaderProfile
from errors import SessionError

BOOTSTRAP_URL = f"{API_BASE}/app/get-latest-app-pkgs"


class _Attempt:
    """One in-flight bootstrap; followers wait on it instead of starting their own."""

    def __init__(self):
        self.done = threading.Event()
        self.error: Optional[SessionError] = None


class SessionManager:
    """Owns the shared upstream session (cookie jar + app info).

    The first caller of ensure_session() performs the bootstrap call; callers
    arriving while it runs block until it finishes and see the same result.
    A failed bootstrap leaves the manager uninitialized so the next call
    tries again.
    """

    def __init__(self, profile: Optional[HeaderProfile] = None, http: Optional[requests.Session] = None,
                 timeout: float = REQUEST_TIMEOUT):
        self.profile = profile or HeaderProfile()
        self.session = http if http is not None else requests.Session()
        self.timeout = timeout
        self.initialized = False
        self.app_info: Any = None
        self._lock = threading.Lock()
        self._attempt: Optional[_Attempt] = None

    def ensure_session(self) -> bool:
        if self.initialized:
            return True

        with self._lock:
            if self.initialized:
                return True
            attempt = self._attempt
            leader = attempt is None
            if leader:
                attempt = self._attempt = _Attempt()

        if not leader:
            attempt.done.wait()
            if attempt.error is not None:
                raise attempt.error
            if not self.initialized:
                raise SessionError(RuntimeError("bootstrap was interrupted"))
            return True

        try:
            app_info = self._bootstrap()
        except SessionError as e:
            attempt.error = e
            raise
        except Exception as e:
            print(f"❌ Unexpected bootstrap failure: {type(e).__name__}: {e}")
            attempt.error = SessionError(e)
            raise attempt.error from e
        else:
            with self._lock:
                self.app_info = app_info
                self.initialized = True
            return True
        finally:
            # Always release waiters, whatever the outcome
            with self._lock:
                self._attempt = None
            attempt.done.set()

    def _bootstrap(self) -> Any:
        print("🔐 Initializing session cookies…")
        try:
            r = self.session.get(
                BOOTSTRAP_URL,
                params={"app_name": "moviebox"},
                headers=self.profile.to_headers(),
                timeout=self.timeout,
            )
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            print(f"❌ Failed to get app info: {type(e).__name__}: {e}")
            raise SessionError(e) from e
        try:
            body = r.json()
        except ValueError:
            body = r.text
        print("✅ Session cookies initialized")
        return parse_envelope(body).payload
