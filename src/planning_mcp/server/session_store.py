"""In-memory session table for the Streamable HTTP transport."""

from __future__ import annotations

import contextlib
import logging
import threading
import time
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import anyio

from planning_mcp.shared.exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TIMEOUT = 30 * 60
DEFAULT_CLEANUP_INTERVAL = 5 * 60


@dataclass
class Session:
    """A client session, keyed by the value of the Mcp-Session-Id header."""

    id: str
    initialized: bool
    client_capabilities: dict[str, Any] | None
    created_at: float
    last_activity_at: float

    def touch(self, now: float) -> None:
        # Never move backwards, even if the wall clock does.
        self.last_activity_at = max(self.last_activity_at, now)


class SessionStore:
    """
    Owns the authoritative table of client sessions.

    Every operation is synchronous and runs under one lock, so none of them can
    interleave with the periodic sweep or with each other. Nothing here awaits
    while holding the lock.

    Args:
        session_timeout: Seconds of inactivity after which a session is evicted
        cleanup_interval: Seconds between two sweeps while run() is active
        clock: Time source returning seconds, ``time.time`` by default
    """

    def __init__(
        self,
        session_timeout: float = DEFAULT_SESSION_TIMEOUT,
        cleanup_interval: float = DEFAULT_CLEANUP_INTERVAL,
        clock: Callable[[], float] = time.time,
    ):
        self.session_timeout = session_timeout
        self.cleanup_interval = cleanup_interval
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()

    def create(self) -> str:
        """Create an uninitialized session and return its id."""
        now = self._clock()
        with self._lock:
            session_id = uuid4().hex
            while session_id in self._sessions:
                session_id = uuid4().hex
            self._sessions[session_id] = Session(
                id=session_id,
                initialized=False,
                client_capabilities=None,
                created_at=now,
                last_activity_at=now,
            )
        logger.info(f"Session created: {session_id}")
        return session_id

    def get(self, session_id: str | None) -> Session | None:
        """Look up a session. A successful lookup counts as activity."""
        if not session_id:
            return None

        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.touch(self._clock())
            return session

    def initialize(self, session_id: str, client_capabilities: dict[str, Any] | None) -> Session:
        """
        Mark a session as initialized and remember the client capabilities.

        Initializing an already initialized session overwrites the stored
        capabilities with the new ones.

        Raises:
            SessionNotFoundError: if the session does not exist
        """
        with self._lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            if session.initialized:
                logger.debug(f"Session {session_id} re-initialized, replacing client capabilities")
            session.initialized = True
            session.client_capabilities = client_capabilities
            session.touch(self._clock())
        logger.info(f"Session initialized: {session_id}")
        return session

    def delete(self, session_id: str) -> bool:
        """Remove a session, returning whether it existed."""
        with self._lock:
            deleted = self._sessions.pop(session_id, None) is not None
        if deleted:
            logger.info(f"Session deleted: {session_id}")
        return deleted

    def sweep(self) -> list[str]:
        """Evict every session idle for longer than the session timeout."""
        now = self._clock()
        expired: list[tuple[str, float]] = []
        with self._lock:
            for session_id, session in list(self._sessions.items()):
                idle = now - session.last_activity_at
                if idle > self.session_timeout:
                    del self._sessions[session_id]
                    expired.append((session_id, idle))

        for session_id, idle in expired:
            logger.info(f"Session expired: {session_id} (inactive for {round(idle)}s)")
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired sessions")
        return [session_id for session_id, _ in expired]

    def stats(self) -> dict[str, Any]:
        """Session counts plus per-session age and idle time, in seconds."""
        now = self._clock()
        with self._lock:
            sessions = list(self._sessions.values())

        initialized = sum(1 for session in sessions if session.initialized)
        return {
            "total": len(sessions),
            "initialized": initialized,
            "uninitialized": len(sessions) - initialized,
            "sessions": [
                {
                    "id": session.id,
                    "initialized": session.initialized,
                    "age": round(now - session.created_at),
                    "idle_time": round(now - session.last_activity_at),
                }
                for session in sessions
            ],
        }

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        with self._lock:
            return session_id in self._sessions

    @contextlib.asynccontextmanager
    async def run(self) -> AsyncIterator[None]:
        """
        Run the periodic sweep for as long as the context is active.

        Use this in the lifespan context manager of the Starlette app. Leaving
        the context cancels the sweeper and drops every remaining session.
        """
        async with anyio.create_task_group() as tg:
            tg.start_soon(self._sweep_periodically)
            logger.debug(f"Session sweeper started (every {self.cleanup_interval}s)")
            try:
                yield
            finally:
                tg.cancel_scope.cancel()
                self.clear()
                logger.info("Session store shut down")

    async def _sweep_periodically(self) -> None:
        while True:
            await anyio.sleep(self.cleanup_interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("Session sweep failed")
