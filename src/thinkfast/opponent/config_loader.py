"""Layered loading of :class:`OpponentConfig`.

Precedence, lowest first: dataclass defaults, the TOML file, then
``THINKFAST_<FIELD>`` environment variables. Values that fail to parse are
logged and skipped, so a bad layer never hides the one beneath it.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Callable, Mapping, get_type_hints

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    import tomli as tomllib  # type: ignore[no-redef]

from .config import OpponentConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_ENV = "THINKFAST_CONFIG_FILE"
ENV_PREFIX = "THINKFAST_"
DEFAULT_CONFIG_PATH = Path("configs/thinkfast.toml")

# TOML table that owns each setting.
SECTIONS: dict[str, tuple[str, ...]] = {
    "storage": ("models_dir", "default_model_id"),
    "download": (
        "connect_timeout_s",
        "read_timeout_s",
        "chunk_size",
        "progress_interval_s",
    ),
    "runtime": ("runtime", "n_gpu_layers"),
    "gameplay": ("min_thinking_time_s", "hard_min_thinking_time_s"),
    "trivia": ("trivia_base_url", "trivia_timeout_s"),
}


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError(f"expected an integer, got {value!r}")
    if isinstance(value, float):
        return int(value)
    return int(str(value).strip())


def _as_float(value: Any) -> float:
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    return float(str(value).strip()) if isinstance(value, str) else float(value)


_PARSERS: dict[Any, Callable[[Any], Any]] = {int: _as_int, float: _as_float, str: str}

_SETTING_TYPES: dict[str, Any] = {
    name: hint
    for name, hint in get_type_hints(OpponentConfig).items()
    if name != "config_file_path"
}


def _env_name(setting: str) -> str:
    return f"{ENV_PREFIX}{setting.upper()}"


def _file_values(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    with path.open("rb") as fh:
        document = tomllib.load(fh)

    values: dict[str, Any] = {}
    for section, names in SECTIONS.items():
        table = document.get(section)
        if isinstance(table, dict):
            values.update({name: table[name] for name in names if name in table})
    return values


def _env_values(environ: Mapping[str, str]) -> dict[str, str]:
    return {
        name: environ[_env_name(name)]
        for name in _SETTING_TYPES
        if _env_name(name) in environ
    }


def _layer(base: OpponentConfig, values: Mapping[str, Any], source: str) -> OpponentConfig:
    updates: dict[str, Any] = {}
    for name, raw in values.items():
        parse = _PARSERS[_SETTING_TYPES[name]]
        try:
            updates[name] = parse(raw)
        except (TypeError, ValueError):
            logger.warning("Ignoring invalid %s from %s: %r", name, source, raw)
    return replace(base, **updates)


def load_opponent_config(path: Path | str | None = None) -> OpponentConfig:
    """Build the effective config. A missing file is not an error."""

    candidate = Path(
        path or os.environ.get(CONFIG_FILE_ENV) or DEFAULT_CONFIG_PATH
    ).expanduser()
    cfg = _layer(OpponentConfig(), _file_values(candidate), str(candidate))
    cfg = _layer(cfg, _env_values(os.environ), "environment")
    cfg.config_file_path = str(candidate) if candidate.is_file() else None
    return cfg


def list_env_overrides() -> dict[str, str]:
    """Return the ``THINKFAST_*`` variables currently set."""

    return {key: value for key, value in os.environ.items() if key.startswith(ENV_PREFIX)}


__all__ = [
    "CONFIG_FILE_ENV",
    "DEFAULT_CONFIG_PATH",
    "ENV_PREFIX",
    "SECTIONS",
    "list_env_overrides",
    "load_opponent_config",
]
