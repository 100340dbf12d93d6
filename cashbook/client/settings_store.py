"""
Client Settings

The user's own vision API key and preferred model, kept on the client
machine as JSON under ``~/.cashbook/settings.json``. The server never
stores them; they are sent along with each recognition request.

An unreadable or malformed file is not an error: defaults are used and
a warning is logged.
"""

import json
from pathlib import Path
from typing import Optional

import structlog
from pydantic import BaseModel, ValidationError


logger = structlog.get_logger(__name__)

DEFAULT_SETTINGS_PATH = Path.home() / ".cashbook" / "settings.json"

# (model id, display name, description)
AVAILABLE_MODELS: list[tuple[str, str, str]] = [
    ("gemini-1.5-flash", "Gemini 1.5 Flash", "Fast and inexpensive, good for clear screenshots"),
    ("gemini-1.5-pro", "Gemini 1.5 Pro", "More accurate on dense or blurry statements"),
    ("gemini-2.0-flash", "Gemini 2.0 Flash", "Newer fast multimodal model"),
    ("gemini-2.5-flash", "Gemini 2.5 Flash", "Balanced speed and accuracy"),
    ("gemini-2.5-pro", "Gemini 2.5 Pro", "Highest accuracy, slowest"),
]

DEFAULT_MODEL = AVAILABLE_MODELS[0][0]


class ClientSettings(BaseModel):
    api_key: str = ""
    model: str = DEFAULT_MODEL


class SettingsStore:
    """Explicit load/save/reset over one JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else DEFAULT_SETTINGS_PATH

    def load(self) -> ClientSettings:
        if not self.path.exists():
            return ClientSettings()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return ClientSettings.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("client_settings_unreadable", path=str(self.path), error=str(e))
            return ClientSettings()

    def save(self, **changes) -> ClientSettings:
        """Merge ``changes`` into the stored settings and write them back."""
        current = self.load()
        updated = ClientSettings.model_validate({**current.model_dump(), **changes})

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        tmp_path.write_text(updated.model_dump_json(indent=2), encoding="utf-8")
        # Holds the API key
        tmp_path.chmod(0o600)
        tmp_path.replace(self.path)
        return updated

    def reset(self) -> ClientSettings:
        self.path.unlink(missing_ok=True)
        return ClientSettings()
