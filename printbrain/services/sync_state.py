"""Persisted change-feed cursor for delta scans."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

logger = logging.getLogger(__name__)


class SyncStateStore:
    """Store the Drive change token as a small JSON document.

    The document shape is ``{"pageToken": str, "savedAt": iso8601}``.
    Only the scanner writes it.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        """Return the saved page token, or None if absent or unreadable."""
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Could not read sync token {self.path}: {e}")
            return None
        return data.get("pageToken") or None

    def save(self, page_token: str) -> None:
        """Persist a new page token atomically."""
        payload = {
            "pageToken": page_token,
            "savedAt": datetime.now(timezone.utc).isoformat(),
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)
        logger.info(f"Saved Drive page token to {self.path}")

    def clear(self) -> None:
        """Forget the token so the next scan is a full enumeration."""
        if self.path.exists():
            self.path.unlink()
