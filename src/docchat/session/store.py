"""
Per-caller session state storage.

This module handles:
- The storage backend abstraction (in-memory with idle expiry, JSON files)
- ``SessionState``, the per-caller capability handed to every orchestrator
  operation instead of ambient request context
"""

import asyncio
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

_UNSAFE_ID_CHARS = re.compile(r"[^\w.-]")


class SessionStore(ABC):
    """Abstract base class for session state backends."""

    @abstractmethod
    async def get(self, session_id: str, key: str) -> Optional[Any]:
        """Return the value stored under ``key`` or None when absent."""
        pass

    @abstractmethod
    async def set(self, session_id: str, key: str, value: Any) -> None:
        """Store a JSON-serializable value under ``key``."""
        pass

    @abstractmethod
    async def delete(self, session_id: str, key: str) -> None:
        pass

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        """Remove every key of a session."""
        pass

    def session(self, session_id: str) -> "SessionState":
        return SessionState(self, session_id)


class InMemorySessionStore(SessionStore):
    """
    Process-local store with idle-timeout expiry.

    A session that has not been read or written for ``idle_timeout_s``
    seconds is discarded and subsequently reads as empty.
    """

    def __init__(self, idle_timeout_s: float = 1800.0, clock=time.monotonic):
        self.idle_timeout_s = idle_timeout_s
        self._clock = clock
        self._sessions: Dict[str, Dict[str, Any]] = {}
        self._last_activity: Dict[str, float] = {}
        self._lock = asyncio.Lock()

    def _touch(self, session_id: str) -> Dict[str, Any]:
        now = self._clock()
        last = self._last_activity.get(session_id)
        if last is not None and self.idle_timeout_s > 0 and now - last > self.idle_timeout_s:
            self._sessions.pop(session_id, None)
            logger.debug(f"Session {session_id} expired after {now - last:.0f}s idle")
        self._last_activity[session_id] = now
        return self._sessions.setdefault(session_id, {})

    async def get(self, session_id: str, key: str) -> Optional[Any]:
        async with self._lock:
            value = self._touch(session_id).get(key)
        # Callers get a copy so list mutation never leaks into the store
        return json.loads(json.dumps(value)) if value is not None else None

    async def set(self, session_id: str, key: str, value: Any) -> None:
        async with self._lock:
            self._touch(session_id)[key] = json.loads(json.dumps(value))

    async def delete(self, session_id: str, key: str) -> None:
        async with self._lock:
            self._touch(session_id).pop(key, None)

    async def clear(self, session_id: str) -> None:
        async with self._lock:
            self._sessions.pop(session_id, None)
            self._last_activity.pop(session_id, None)

    async def cleanup_expired(self) -> int:
        """Drop every expired session; returns how many were removed."""
        async with self._lock:
            now = self._clock()
            cutoff = now - self.idle_timeout_s
            expired = [sid for sid, last in self._last_activity.items() if last < cutoff]
            for sid in expired:
                self._sessions.pop(sid, None)
                del self._last_activity[sid]
                logger.debug(f"Cleaned up session {sid}")
            return len(expired)


class FileSessionStore(SessionStore):
    """File-based store keeping one JSON document per session."""

    def __init__(self, base_path: Path):
        """
        Initialize file session store.

        Args:
            base_path: Directory holding ``<session_id>.json`` files
        """
        self.base_path = Path(base_path).expanduser()
        self.base_path.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    def _path(self, session_id: str) -> Path:
        return self.base_path / f"{_UNSAFE_ID_CHARS.sub('_', session_id)}.json"

    def _read(self, session_id: str) -> Dict[str, Any]:
        file_path = self._path(session_id)
        if not file_path.exists():
            return {}
        try:
            with open(file_path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to load session from {file_path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, session_id: str, data: Dict[str, Any]) -> None:
        file_path = self._path(session_id)
        tmp_path = file_path.with_suffix(".json.tmp")
        try:
            with open(tmp_path, "w") as f:
                json.dump(data, f, indent=2)
            tmp_path.replace(file_path)
            logger.debug(f"Saved session to {file_path}")
        except Exception as e:
            logger.error(f"Failed to save session to {file_path}: {e}")
            raise

    async def get(self, session_id: str, key: str) -> Optional[Any]:
        async with self._lock:
            return self._read(session_id).get(key)

    async def set(self, session_id: str, key: str, value: Any) -> None:
        async with self._lock:
            data = self._read(session_id)
            data[key] = value
            self._write(session_id, data)

    async def delete(self, session_id: str, key: str) -> None:
        async with self._lock:
            data = self._read(session_id)
            if key in data:
                del data[key]
                self._write(session_id, data)

    async def clear(self, session_id: str) -> None:
        async with self._lock:
            file_path = self._path(session_id)
            if file_path.exists():
                file_path.unlink()
                logger.debug(f"Deleted session file {file_path}")


class SessionState:
    """Key/value view of one caller's session."""

    def __init__(self, store: SessionStore, session_id: str):
        if not session_id:
            raise ValueError("session_id must be a non-empty string")
        self.store = store
        self.session_id = session_id

    async def get(self, key: str, default: Any = None) -> Any:
        value = await self.store.get(self.session_id, key)
        return default if value is None else value

    async def set(self, key: str, value: Any) -> None:
        await self.store.set(self.session_id, key, value)

    async def delete(self, key: str) -> None:
        await self.store.delete(self.session_id, key)

    async def clear(self) -> None:
        await self.store.clear(self.session_id)

    @property
    def identity(self) -> Tuple[int, str]:
        """Identifies the session across SessionState instances of the same store."""
        return (id(self.store), self.session_id)

    def __repr__(self) -> str:
        return f"SessionState(session_id={self.session_id!r})"
