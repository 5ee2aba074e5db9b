"""User settings for the launcher, stored in ~/.copilot/launcher-settings.json.

Expected format:
{
    "allowedTools": ["shell(git)", "write"],
    "allowedDirs": ["~/src"],
    "defaultWorkDir": "~/src/app",
    "ides": [{"path": "/usr/bin/code", "description": "VS Code"}]
}
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .constants import SETTINGS_FILE, WORK_DIR_ENV_VAR
from .persistence import write_text_atomic

logger = logging.getLogger(__name__)


class IdeEntry(BaseModel):
    """An IDE the user can open a session's repository in."""

    path: str = ""
    description: str = ""

    def __str__(self) -> str:
        if self.description:
            return f"{self.description}  \u2014  {self.path}"
        return self.path


class LauncherSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    allowed_tools: list[str] = Field(default_factory=list, alias="allowedTools")
    allowed_dirs: list[str] = Field(default_factory=list, alias="allowedDirs")
    default_work_dir: str = Field(default="", alias="defaultWorkDir")
    ides: list[IdeEntry] = Field(default_factory=list)

    @classmethod
    def create_default(cls) -> LauncherSettings:
        return cls()

    @classmethod
    def load(cls, path: str = SETTINGS_FILE) -> LauncherSettings:
        """Load settings; a missing file is created with defaults, a corrupt one ignored."""
        if not os.path.exists(path):
            settings = cls.create_default()
            settings.save(path)
            return settings
        try:
            with open(path, encoding="utf-8") as f:
                return cls.model_validate_json(f.read())
        except (OSError, ValidationError) as e:
            logger.warning("Could not read settings from %s: %s", path, e)
            return cls.create_default()

    def save(self, path: str = SETTINGS_FILE) -> None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
            write_text_atomic(path, self.model_dump_json(by_alias=True, indent=2))
        except OSError as e:
            logger.warning("Could not save settings to %s: %s", path, e)

    def build_copilot_args(self, extra_args: Iterable[str] = ()) -> str:
        """Copilot CLI arguments granting the configured tools and directories."""
        parts = [f'"--allow-tool={tool}"' for tool in self.allowed_tools]
        parts += [f'"--add-dir={d}"' for d in self.allowed_dirs]
        parts += [arg for arg in extra_args if arg]
        return " ".join(parts)

    def resolve_work_dir(self, work_dir: str | None = None) -> str:
        """Explicit argument, then $COPILOT_WORK_DIR, then defaultWorkDir, then home."""
        return (
            work_dir
            or os.environ.get(WORK_DIR_ENV_VAR)
            or self.default_work_dir
            or os.path.expanduser("~")
        )
