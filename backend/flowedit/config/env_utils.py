"""
Environment helpers for dataclass configs.

Each config declares an ``_ENV_MAP`` of ``field -> ENV_VAR``;
``read_env_defaults`` turns whatever is set in the environment
into constructor kwargs, coerced to the field's declared type.
"""

from __future__ import annotations

import os
from dataclasses import MISSING, Field
from logging import getLogger
from typing import Any, Dict, Mapping, Optional

logger = getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _coerce(raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return raw.strip().lower() in _TRUE_VALUES
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return raw


def read_env_defaults(
    env_map: Mapping[str, str],
    fields: Mapping[str, Field],
    environ: Optional[Mapping[str, str]] = None,
) -> Dict[str, Any]:
    """Collect constructor kwargs from environment variables.

    Variables that are unset are skipped so the dataclass default
    applies. Values that cannot be coerced are ignored with a warning.
    """
    env = os.environ if environ is None else environ
    values: Dict[str, Any] = {}
    for field_name, env_name in env_map.items():
        raw = env.get(env_name)
        if raw is None or raw == "":
            continue
        field = fields.get(field_name)
        default = field.default if field is not None and field.default is not MISSING else ""
        try:
            values[field_name] = _coerce(raw, default)
        except ValueError:
            logger.warning(f"Ignoring invalid value for {env_name}: {raw!r}")
    return values
