"""
Engine settings, read from the environment.

Call ``load_dotenv()`` first (main.py does) to pick up a local .env file.

    SHEETRULES_MAX_PASSES=10000
    SHEETRULES_LOG_LEVEL=INFO
    SHEETRULES_NORMALIZE_NUMBERS=true
"""

import logging
import os
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

ENV_PREFIX = "SHEETRULES_"


class EngineSettings(BaseModel):
    max_passes: int = Field(
        10000, ge=1, description="Cap on fixed-point passes before evaluation gives up."
    )
    log_level: str = Field("INFO", description="Root log level for setup_logging().")
    normalize_numbers: bool = Field(
        True, description="Store integral float results (3.0) as int (3)."
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level {value!r}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "EngineSettings":
        """
        Build settings from SHEETRULES_* variables.

        A value that does not validate is ignored (with a warning) and the
        default is used in its place.
        """
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            raw = environ.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                cls.model_validate({name: raw})
            except ValidationError as e:
                logger.warning(f"Ignoring {ENV_PREFIX}{name.upper()}={raw!r}: {e.errors()[0]['msg']}")
                continue
            values[name] = raw
        return cls.model_validate(values)
