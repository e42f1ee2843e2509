# storefront/utils/auth.py
import logging
import time
from typing import Callable, Dict, List, Optional

from jose import jwt, JWTError

logger = logging.getLogger(__name__)

AuthListener = Callable[[bool], None]


class AuthSession:
    """
    Adapter over the host application's authentication state.

    The host hands in the bearer token after sign-in and drops it on sign-out;
    issuing and storing credentials is not done here. Listeners are told about
    every authenticated/unauthenticated transition.
    """

    def __init__(self, token: Optional[str] = None, clock: Callable[[], float] = time.time):
        self._token = token
        self._clock = clock
        self._listeners: List[AuthListener] = []

    @property
    def token(self) -> Optional[str]:
        return self._token

    def claims(self) -> Dict:
        # Read the payload without verifying the signature; the backend verifies it
        if not self._token:
            return {}
        try:
            return jwt.get_unverified_claims(self._token)
        except JWTError:
            return {}

    @property
    def is_authenticated(self) -> bool:
        if not self._token:
            return False
        exp = self.claims().get("exp")
        if exp is None:
            # Opaque or non-expiring token: presence is all we can check
            return True
        return float(exp) > self._clock()

    def bearer_headers(self) -> Dict[str, str]:
        if not self._token:
            return {}
        return {"Authorization": f"Bearer {self._token}"}

    def login(self, token: str) -> None:
        was_authenticated = self.is_authenticated
        self._token = token
        logger.info(f"Auth session started (sub={self.claims().get('sub')})")
        if self.is_authenticated != was_authenticated:
            self._notify()

    def logout(self) -> None:
        was_authenticated = self.is_authenticated
        self._token = None
        logger.info("Auth session ended")
        if was_authenticated:
            self._notify()

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        state = self.is_authenticated
        for listener in list(self._listeners):
            listener(state)
