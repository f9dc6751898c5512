# flowforward/plant/auth.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, MutableMapping, Optional, Tuple

from ..utils import log, utc_now
from .engine import PlantEngine
from .state import GovernmentUser, PlantManagerUser, User


# static demo pairs, not a security boundary
DEMO_CREDENTIALS: Dict[str, str] = {
    "gov.officer": "government123",
    "manager.a": "manager123",
    "manager.b": "manager123",
    "manager.c": "manager123",
    "manager.d": "manager123",
    "manager.e": "manager123",
}

SESSION_TIMEOUT = timedelta(hours=8)
EXPIRY_WARNING = timedelta(minutes=30)
MIN_PASSWORD_LENGTH = 8


def validate_password(password: str) -> Tuple[bool, List[str]]:
    errors: List[str] = []
    if len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")
    if not any(c.isupper() for c in password):
        errors.append("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        errors.append("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        errors.append("Password must contain at least one number")
    return not errors, errors


@dataclass
class Session:
    user: User
    login_time: datetime
    expires_at: datetime


@dataclass
class LoginResult:
    success: bool
    user: Optional[User] = None
    error: Optional[str] = None


class AuthService:
    """
    Demo login + session bookkeeping on top of a key-value store
    (st.session_state in the dashboard, a plain dict in tests).
    """

    SESSION_KEY = "flowforward_auth_session"

    def __init__(
        self,
        engine: PlantEngine,
        store: MutableMapping[str, Any],
        credentials: Dict[str, str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.engine = engine
        self.store = store
        self.credentials = DEMO_CREDENTIALS if credentials is None else credentials
        self._clock = clock or utc_now

    # ======================================================
    # LOGIN / LOGOUT
    # ======================================================
    def login(self, username: str, password: str) -> LoginResult:
        expected = self.credentials.get(username)
        if expected is None or expected != password:
            log(f"[AUTH] failed login for {username!r}")
            return LoginResult(False, error="Invalid username or password")

        user = self.engine.get_user_by_username(username)
        if user is None:
            return LoginResult(False, error="User not found")

        now = self._clock()
        self.store[self.SESSION_KEY] = Session(user=user, login_time=now, expires_at=now + SESSION_TIMEOUT)
        log(f"[AUTH] {username} logged in as {user.role}")
        return LoginResult(True, user=user)

    def logout(self) -> None:
        self.store.pop(self.SESSION_KEY, None)

    # ======================================================
    # SESSION
    # ======================================================
    def _session(self) -> Optional[Session]:
        session = self.store.get(self.SESSION_KEY)
        if not isinstance(session, Session):
            if session is not None:
                self.logout()
            return None
        if self._clock() > session.expires_at:
            self.logout()
            return None
        return session

    def current_user(self) -> Optional[User]:
        session = self._session()
        return session.user if session else None

    def is_authenticated(self) -> bool:
        return self.current_user() is not None

    def refresh_session(self) -> bool:
        session = self._session()
        if session is None:
            return False
        session.expires_at = self._clock() + SESSION_TIMEOUT
        return True

    def time_remaining(self) -> timedelta:
        session = self._session()
        if session is None:
            return timedelta(0)
        return max(timedelta(0), session.expires_at - self._clock())

    def is_expiring_soon(self) -> bool:
        remaining = self.time_remaining()
        return timedelta(0) < remaining < EXPIRY_WARNING

    # ======================================================
    # ACCESS CHECKS
    # ======================================================
    def has_permission(self, resource: str, action: str) -> bool:
        user = self.current_user()
        if user is None:
            return False
        return any(p.resource == resource and action in p.actions for p in user.permissions)

    def can_access_plant(self, plant_id: str) -> bool:
        user = self.current_user()
        if isinstance(user, GovernmentUser):
            return True
        if isinstance(user, PlantManagerUser):
            return plant_id in user.assigned_plants
        return False

    def accessible_plants(self) -> List[str]:
        user = self.current_user()
        if isinstance(user, GovernmentUser):
            return [p.id for p in self.engine.get_all()]
        if isinstance(user, PlantManagerUser):
            return list(user.assigned_plants)
        return []
