"""Client-side preferences that survive restarts"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

HIDE_ONLINE_STATUS_KEY = "chat_hide_online_status"


class Preferences:
    """
    A small JSON key/value file.

    Values are stored as strings; booleans are written as "true"/"false".
    An unreadable file is treated as empty.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()

    def _load(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str) -> str | None:
        value = self._load().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    @property
    def hide_online_status(self) -> bool:
        return self.get(HIDE_ONLINE_STATUS_KEY) == "true"

    @hide_online_status.setter
    def hide_online_status(self, hidden: bool) -> None:
        self.set(HIDE_ONLINE_STATUS_KEY, "true" if hidden else "false")
