from __future__ import annotations

import enum
import logging
from typing import MutableMapping, Optional

from models import AuthenticationError, User, UserStore

logger = logging.getLogger("fitblog.auth")

LOGGED_IN_KEY = "logged_in"
USER_ID_KEY = "user_id"


class Decision(enum.Enum):
    PROCEED = "proceed"
    REDIRECT_TO_LOGIN = "redirect_to_login"


class AuthGate:
    """
    Maps a session to an authenticated user.

    The session is any mutable mapping handed in by the caller, so the gate
    works the same with a Flask session or a plain dict. A session is
    Anonymous until ``login`` stores the user id, and goes back to a fresh
    Anonymous state on ``logout``.
    """

    def __init__(self, users: UserStore):
        self.users = users

    def login(self, session: MutableMapping, username: str) -> User:
        user = self.users.find_by_username(username)
        if user is None:
            logger.warning("login rejected, unknown username=%s", username)
            raise AuthenticationError(f"Unknown username {username!r}")

        session[LOGGED_IN_KEY] = True
        session[USER_ID_KEY] = user.id
        logger.info("login username=%s id=%s", user.username, user.id)
        return user

    def logout(self, session: MutableMapping) -> None:
        # descarta el registro completo, no solo las dos claves
        destroy = getattr(session, "destroy", None)
        if callable(destroy):
            destroy()
        else:
            session.clear()
        logger.info("logout")

    def current_user(self, session: MutableMapping) -> Optional[User]:
        if not session.get(LOGGED_IN_KEY):
            return None
        uid = session.get(USER_ID_KEY)
        try:
            uid = int(uid) if uid is not None else None
        except (TypeError, ValueError):
            return None
        return self.users.find_by_id(uid)

    def require_authenticated(self, session: MutableMapping) -> Decision:
        if self.current_user(session) is None:
            return Decision.REDIRECT_TO_LOGIN
        return Decision.PROCEED
