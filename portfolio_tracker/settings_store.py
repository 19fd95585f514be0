"""
Local settings - user display and risk preferences persisted on this machine.

Usage:
    store = LocalSettingsStore(Path("~/.portfolio-tracker/settings.json"))
    settings = store.load()          # defaults if nothing saved yet
    store.save(settings.model_copy(update={"theme": "dark"}))

The server stays the source of truth for holders, exchanges and sources;
this blob only carries preferences. It is read at startup and written on an
explicit save.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

# Key the blob is stored under, kept from the browser's local storage
STORAGE_KEY = "stockTrackerSettings"


class UserSettings(BaseModel):
    """Flat record of user preferences."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    take_profit_percent: float = 10
    stop_loss_percent: float = 5
    theme: str = "light"
    font: str = "Inter"
    notification_cooldown: int = 15  # minutes
    family_name: str = ""
    default_account_holder_id: Optional[Union[int, str]] = 1
    market_hours_interval: int = 2  # minutes
    after_hours_interval: int = 15  # minutes
    default_view: str = "dashboard"
    number_of_date_tabs: int = 1

    def merged(self, **changes) -> "UserSettings":
        """Return a copy with ``changes`` applied on top, validated."""
        data = self.model_dump()
        data.update(changes)
        return UserSettings.model_validate(data)

    def to_blob(self) -> dict:
        return self.model_dump(by_alias=True)


class LocalSettingsStore:
    """Reads and writes the settings blob in a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> UserSettings:
        """Load saved settings, falling back to defaults.

        A missing, unreadable or invalid file never stops startup.
        """
        if not self.path.exists():
            return UserSettings()
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            return UserSettings.model_validate(data.get(STORAGE_KEY, {}))
        except (OSError, json.JSONDecodeError, AttributeError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return UserSettings()

    def save(self, settings: UserSettings) -> None:
        """Write settings, keeping any other keys already in the file."""
        data = {}
        if self.path.exists():
            try:
                with open(self.path, encoding="utf-8") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError):
                data = {}
            if not isinstance(data, dict):
                data = {}
        data[STORAGE_KEY] = settings.to_blob()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        logger.debug(f"Saved settings to {self.path}")
