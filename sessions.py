from __future__ import annotations

import logging
import secrets
import threading
import time
from datetime import timedelta
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Flask, Request, Response
from flask.sessions import SessionInterface, SessionMixin
from itsdangerous import BadSignature, Signer
from werkzeug.datastructures import CallbackDict

logger = logging.getLogger("fitblog.sessions")


class MemorySessionStore:
    """
    Server-held session records, keyed by an opaque token.

    A record that has not been read or written for ``lifetime`` is gone: ``get``
    treats it as missing and every ``save`` prunes the expired ones.
    """

    def __init__(self, lifetime: Optional[timedelta] = None, clock: Callable[[], float] = time.monotonic):
        self._records: Dict[str, Tuple[Dict[str, Any], float]] = {}
        self._lock = threading.Lock()
        self.lifetime = lifetime
        self.clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, sid: str) -> bool:
        return sid in self._records

    def _expired(self, last_seen: float, now: float) -> bool:
        if self.lifetime is None:
            return False
        return now - last_seen > self.lifetime.total_seconds()

    def _prune(self, now: float) -> None:
        viejos = [sid for sid, (_, visto) in self._records.items() if self._expired(visto, now)]
        for sid in viejos:
            del self._records[sid]
        if viejos:
            logger.info("pruned %d expired sessions", len(viejos))

    def get(self, sid: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(sid)
            if record is None:
                return None
            data, visto = record
            now = self.clock()
            if self._expired(visto, now):
                del self._records[sid]
                return None
            self._records[sid] = (data, now)
            return dict(data)

    def save(self, sid: str, data: Dict[str, Any]) -> None:
        with self._lock:
            now = self.clock()
            self._prune(now)
            self._records[sid] = (dict(data), now)

    def delete(self, sid: str) -> None:
        with self._lock:
            self._records.pop(sid, None)


class MemorySession(CallbackDict, SessionMixin):
    def __init__(self, store: MemorySessionStore, sid: str, initial: Optional[Dict[str, Any]] = None, new: bool = False):
        def on_update(self):
            self.modified = True
            self.accessed = True

        super().__init__(initial, on_update)
        self.store = store
        self.sid = sid
        self.new = new
        self.modified = False
        self.accessed = False
        self.destroyed = False

    def __getitem__(self, key):
        self.accessed = True
        return super().__getitem__(key)

    def get(self, key, default=None):
        self.accessed = True
        return super().get(key, default)

    def destroy(self) -> None:
        # el registro desaparece ya, no al final de la respuesta
        self.store.delete(self.sid)
        self.clear()
        self.destroyed = True


class MemorySessionInterface(SessionInterface):
    salt = "fitblog-session"

    def __init__(self, store: Optional[MemorySessionStore] = None):
        self.store = store if store is not None else MemorySessionStore()

    def get_signer(self, app: Flask) -> Optional[Signer]:
        if not app.secret_key:
            return None
        return Signer(app.secret_key, salt=self.salt)

    def new_session(self) -> MemorySession:
        return MemorySession(self.store, secrets.token_urlsafe(32), new=True)

    def open_session(self, app: Flask, request: Request) -> Optional[MemorySession]:
        signer = self.get_signer(app)
        if signer is None:
            return None

        cookie = request.cookies.get(self.get_cookie_name(app))
        if not cookie:
            return self.new_session()

        try:
            sid = signer.unsign(cookie).decode("utf-8")
        except BadSignature:
            logger.warning("session cookie with bad signature ignored")
            return self.new_session()

        data = self.store.get(sid)
        if data is None:
            return self.new_session()
        return MemorySession(self.store, sid, data)

    def save_session(self, app: Flask, session: MemorySession, response: Response) -> None:
        name = self.get_cookie_name(app)
        domain = self.get_cookie_domain(app)
        path = self.get_cookie_path(app)

        if session.accessed:
            response.vary.add("Cookie")

        if session.destroyed or (not session and session.modified):
            self.store.delete(session.sid)
            if not session.new:
                response.delete_cookie(name, domain=domain, path=path)
            return

        # no se guardan sesiones vacias
        if not session:
            return

        if not self.should_set_cookie(app, session):
            return

        self.store.save(session.sid, dict(session))
        signer = self.get_signer(app)
        if signer is None:
            return
        response.set_cookie(
            name,
            signer.sign(session.sid).decode("utf-8"),
            expires=self.get_expiration_time(app, session),
            httponly=self.get_cookie_httponly(app),
            domain=domain,
            path=path,
            secure=self.get_cookie_secure(app),
            samesite=self.get_cookie_samesite(app),
        )
