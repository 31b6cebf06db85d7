"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for specmirror:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.specmirror/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_cache_dir`.
* **Config file** -- A :class:`~specmirror.models.GlobalConfig` stored as
  JSON or YAML. See :func:`load_config` and :func:`save_config`.
* **Precedence resolution** -- :func:`resolve_config` merges explicit
  arguments, environment variables and the config file into the effective
  configuration.

All file writes, including the source caches written by
:mod:`specmirror.cache`, use the temp-file-then-rename strategy of
:func:`atomic_write` so that a reader never sees a half-written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import ValidationError

from specmirror.exceptions import ConfigError
from specmirror.models import GlobalConfig, SourceSettings

_APP_NAME = "specmirror"
_CONFIG_FILENAME = "config.json"

ENV_CONFIG = "SPECMIRROR_CONFIG"
ENV_CACHE_DIR = "SPECMIRROR_CACHE_DIR"
ENV_TTL = "SPECMIRROR_TTL"
ENV_REDIRECT_BUDGET = "SPECMIRROR_REDIRECT_BUDGET"
ENV_TIMEOUT = "SPECMIRROR_TIMEOUT"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/specmirror/`` (default ``~/.config/specmirror/``).
    On macOS/Windows: ``~/.specmirror/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_cache_dir() -> Path:
    """Return the cache directory, creating it if necessary.

    Holds the source index caches and, under ``specifications/``, the
    individually fetched specs. Cached data can be safely deleted at any
    time; it is re-fetched from upstream on the next query.

    On Linux/BSD: ``$XDG_CACHE_HOME/specmirror/`` (default ``~/.cache/specmirror/``).
    On macOS/Windows: ``~/.specmirror/cache/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CACHE_HOME", (".cache",)) / _APP_NAME
    else:
        path = _fallback_base_dir() / "cache"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: Union[str, bytes]) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. On success the temp
    file is renamed over *path*; on any failure the temp file is removed and
    whatever was at *path* before is left untouched.

    Raises:
        OSError: If the directory cannot be created or the file written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    binary = isinstance(data, bytes)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb" if binary else "w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding=None if binary else "utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config file ---


def default_config_path() -> Path:
    """Path of the config file, honouring ``$SPECMIRROR_CONFIG``."""
    env_path = os.environ.get(ENV_CONFIG)
    if env_path:
        return Path(env_path).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


def _parse_config_text(path: Path, text: str) -> Any:
    if path.suffix in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def load_config(path: Optional[Path] = None) -> GlobalConfig:
    """Load the configuration file.

    ``.yaml``/``.yml`` files are read with PyYAML, anything else as JSON.

    Args:
        path: Config file location. Defaults to :func:`default_config_path`.

    Returns:
        The deserialised :class:`~specmirror.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but is unreadable, malformed, or
            fails Pydantic validation.
    """
    path = Path(path) if path is not None else default_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        data = _parse_config_text(path, path.read_text(encoding="utf-8"))
        return GlobalConfig.model_validate(data or {})
    except (OSError, json.JSONDecodeError, yaml.YAMLError, ValidationError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: GlobalConfig, path: Optional[Path] = None) -> Path:
    """Persist the configuration atomically, as YAML or JSON by file suffix.

    Returns:
        The path written.
    """
    path = Path(path) if path is not None else default_config_path()
    data = config.model_dump(mode="json")
    if path.suffix in (".yaml", ".yml"):
        text = yaml.safe_dump(data, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"
    atomic_write(path, text)
    return path


# --- Precedence resolution ---


def _env_int(name: str) -> Optional[int]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigError(
            f"Environment variable {name} must be an integer, got {value!r}"
        ) from exc


def _env_float(name: str) -> Optional[float]:
    value = os.environ.get(name)
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {name} must be a number, got {value!r}") from exc


def resolve_config(
    path: Optional[Path] = None,
    cache_dir: Optional[str] = None,
    ttl_seconds: Optional[int] = None,
    redirect_budget: Optional[int] = None,
) -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. Explicit arguments (``cache_dir``, ``ttl_seconds``, ``redirect_budget``)
        2. Environment variables (``SPECMIRROR_CACHE_DIR``, ``SPECMIRROR_TTL``,
           ``SPECMIRROR_REDIRECT_BUDGET``, ``SPECMIRROR_TIMEOUT``)
        3. Config file
        4. Defaults

    ``cache_dir`` is always filled in: when nothing sets it, the XDG cache
    directory is used. ``spec_dir`` defaults to ``<cache_dir>/specifications``.

    Raises:
        ConfigError: On an unreadable config file or invalid overrides.
    """
    config = load_config(path)
    settings = config.settings.model_dump()

    # 2. Environment variables
    env_cache_dir = os.environ.get(ENV_CACHE_DIR)
    if env_cache_dir:
        config.cache_dir = env_cache_dir
    for key, value in (
        ("ttl_seconds", _env_int(ENV_TTL)),
        ("redirect_budget", _env_int(ENV_REDIRECT_BUDGET)),
        ("timeout", _env_float(ENV_TIMEOUT)),
    ):
        if value is not None:
            settings[key] = value

    # 1. Explicit arguments
    if cache_dir is not None:
        config.cache_dir = cache_dir
    if ttl_seconds is not None:
        settings["ttl_seconds"] = ttl_seconds
    if redirect_budget is not None:
        settings["redirect_budget"] = redirect_budget

    try:
        config.settings = SourceSettings.model_validate(settings)
    except ValidationError as exc:
        raise ConfigError(f"Invalid source settings: {exc}") from exc

    if config.cache_dir is None:
        config.cache_dir = str(get_cache_dir())
    if config.spec_dir is None:
        config.spec_dir = str(Path(config.cache_dir) / "specifications")
    return config
