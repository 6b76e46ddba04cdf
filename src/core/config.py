from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from PySide6.QtCore import QStandardPaths

ENV_PREFIX = "QUEUEPLAY_"


@dataclass(frozen=True)
class AppConfig:
    data_dir: str
    mpv_path: Optional[str] = None
    log_level: int = logging.INFO
    debug_schema: bool = False

    @property
    def blob_dir(self) -> str:
        return os.path.join(self.data_dir, "blobs")


def default_data_dir() -> str:
    base = QStandardPaths.writableLocation(QStandardPaths.StandardLocation.AppDataLocation)
    return base or os.path.join(os.path.expanduser("~"), ".queueplay")


def _log_level(raw: Optional[str]) -> int:
    if not raw:
        return logging.INFO
    if raw.isdigit():
        return int(raw)
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else logging.INFO


def load_config(env: Mapping[str, str] | None = None) -> AppConfig:
    env = os.environ if env is None else env

    data_dir = env.get(ENV_PREFIX + "DATA_DIR") or default_data_dir()
    return AppConfig(
        data_dir=data_dir,
        mpv_path=env.get(ENV_PREFIX + "MPV_PATH") or None,
        log_level=_log_level(env.get(ENV_PREFIX + "LOG_LEVEL")),
        debug_schema=env.get(ENV_PREFIX + "DEBUG_SCHEMA") == "1",
    )
