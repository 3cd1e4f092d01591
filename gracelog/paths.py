from __future__ import annotations

import os
from pathlib import Path

APP_DIR_NAME = "GraceLog"


def data_directory() -> Path:
    override = os.environ.get("GRACELOG_HOME")
    if override:
        return Path(override)
    local_appdata = os.environ.get("LOCALAPPDATA")
    if local_appdata:
        return Path(local_appdata) / APP_DIR_NAME
    return Path.home() / ".local" / "share" / APP_DIR_NAME.lower()


def database_path(base: Path | None = None) -> Path:
    return (base or data_directory()) / "gracelog.sqlite3"


def ensure_directories(base: Path | None = None) -> None:
    (base or data_directory()).mkdir(parents=True, exist_ok=True)
