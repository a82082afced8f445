"""Durable JSON-file cache of sessions, one file per profile."""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from uuid import UUID

from bacchus.adapters.session_rows import session_from_row, session_to_row
from bacchus.domain.models import Session

logger = logging.getLogger(__name__)


class LocalSessionCache:
    """Stores ``{"active": row | None, "history": [row, ...]}`` per profile.

    Files are rewritten through a temporary file and ``os.replace`` so a
    crash never leaves a half-written cache behind.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def save(self, session: Session, is_active: bool) -> None:
        row = session_to_row(session, is_active)
        with self._lock:
            data = self._read(session.profile_id)
            ended_ids = {r.get("id") for r in data["history"]}
            if is_active and row["id"] in ended_ids:
                logger.warning(
                    "Ignoring active save for an ended session",
                    extra={"session_id": row["id"]},
                )
                return
            history = [r for r in data["history"] if r.get("id") != row["id"]]
            active = data["active"]
            if is_active:
                if active is not None and active.get("id") != row["id"]:
                    history.append({**active, "is_active": False})
                active = row
            else:
                if active is not None and active.get("id") == row["id"]:
                    active = None
                history.append(row)
            self._write(session.profile_id, {"active": active, "history": history})

    def load_active(self, profile_id: UUID) -> Session | None:
        with self._lock:
            row = self._read(profile_id)["active"]
        return session_from_row(row) if row else None

    def load_history(self, profile_id: UUID) -> list[Session]:
        with self._lock:
            rows = self._read(profile_id)["history"]
        sessions = [session_from_row(row) for row in rows]
        history = [session for session in sessions if session is not None]
        return sorted(
            history, key=lambda s: s.ended_at or s.started_at, reverse=True
        )

    def load(self, session_id: UUID) -> Session | None:
        """Find a session by id across every profile file."""
        key = str(session_id)
        with self._lock:
            for path in self._profile_files():
                data = self._read(UUID(path.stem))
                rows = [data["active"], *data["history"]]
                for row in rows:
                    if row is not None and row.get("id") == key:
                        return session_from_row(row)
        return None

    def delete(self, session_id: UUID) -> None:
        """Remove a session from whichever profile file holds it."""
        key = str(session_id)
        with self._lock:
            for path in self._profile_files():
                profile_id = UUID(path.stem)
                data = self._read(profile_id)
                active = data["active"]
                history = [r for r in data["history"] if r.get("id") != key]
                if active is not None and active.get("id") == key:
                    active = None
                elif len(history) == len(data["history"]):
                    continue
                self._write(profile_id, {"active": active, "history": history})
                return

    def _path(self, profile_id: UUID) -> Path:
        return self.directory / f"{profile_id}.json"

    def _profile_files(self) -> list[Path]:
        if not self.directory.exists():
            return []
        files = []
        for path in sorted(self.directory.glob("*.json")):
            try:
                UUID(path.stem)
            except ValueError:
                continue
            files.append(path)
        return files

    def _read(self, profile_id: UUID) -> dict:
        path = self._path(profile_id)
        if not path.exists():
            return {"active": None, "history": []}
        try:
            data = json.loads(path.read_text())
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable session cache", extra={"path": str(path)}
            )
            return {"active": None, "history": []}
        if not isinstance(data, dict):
            return {"active": None, "history": []}
        history = data.get("history")
        return {
            "active": data.get("active") or None,
            "history": history if isinstance(history, list) else [],
        }

    def _write(self, profile_id: UUID, data: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", dir=self.directory, delete=False, suffix=".tmp"
        ) as tmp:
            json.dump(data, tmp, indent=2)
        os.replace(tmp.name, self._path(profile_id))
