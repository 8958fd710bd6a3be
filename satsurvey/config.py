"""Configuration for the satellite survey — loaded from env or config.json."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

logger = logging.getLogger(__name__)

_ENV_PREFIX = "SURVEY_"


@dataclass
class SurveyConfig:
    """Survey settings.

    An empty ``site_url`` means no SharePoint context is reachable and the
    local store is used.
    """

    # SharePoint
    site_url: str = ""
    satellite_list: str = "Satellite_Fixed"
    sensor_list: str = "Sensor"
    api_timeout: float = 30.0  # seconds, applied to every call
    page_size: int = 5000
    auth_token: str = ""

    # Local store
    data_dir: str = "./data"
    local_quota_bytes: int = 5 * 1024 * 1024
    seed_sample: bool = True

    # Server
    host: str = "0.0.0.0"
    port: int = 5200
    log_level: str = "INFO"

    @property
    def remote(self) -> bool:
        return bool(self.site_url.strip())

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / "survey.db"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> SurveyConfig:
        """Read ``SURVEY_<FIELD>`` variables, e.g. ``SURVEY_SITE_URL``."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name, f in cls.__dataclass_fields__.items():
            raw = env.get(f"{_ENV_PREFIX}{name.upper()}")
            if raw is None:
                continue
            try:
                values[name] = _coerce(raw, f.type)
            except ValueError:
                logger.warning("Ignoring invalid %s%s=%r", _ENV_PREFIX, name.upper(), raw)
        return cls(**values)

    @classmethod
    def load(cls, path: str | Path) -> SurveyConfig:
        path = Path(path)
        if path.exists():
            with open(path) as f:
                data = json.load(f)
            known = {k for k in cls.__dataclass_fields__}
            filtered = {k: v for k, v in data.items() if k in known}
            return cls(**filtered)
        logger.warning("Config not found at %s, using defaults", path)
        return cls()


def _coerce(raw: str, type_name: object) -> object:
    # Annotations are strings under ``from __future__ import annotations``.
    kind = str(type_name)
    if kind == "bool":
        return raw.strip().lower() in ("1", "true", "yes", "on")
    if kind == "int":
        return int(raw)
    if kind == "float":
        return float(raw)
    return raw
