"""Profile store backed by a ``profiles.json`` file."""

import json
import logging
from pathlib import Path
from uuid import UUID

from bacchus.adapters.session_rows import profile_from_row
from bacchus.domain.models import Profile

logger = logging.getLogger(__name__)

PROFILES_FILENAME = "profiles.json"


class LocalProfileStore:
    """Reads profiles from a JSON list of rows in the cache directory."""

    def __init__(self, directory: Path | str) -> None:
        self.path = Path(directory) / PROFILES_FILENAME

    def get(self, profile_id: UUID) -> Profile | None:
        for row in self._rows():
            if str(row.get("id")) == str(profile_id):
                return profile_from_row(row)
        return None

    def _rows(self) -> list[dict]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError):
            logger.warning(
                "Ignoring unreadable profiles file", extra={"path": str(self.path)}
            )
            return []
        if not isinstance(data, list):
            return []
        return [row for row in data if isinstance(row, dict)]
