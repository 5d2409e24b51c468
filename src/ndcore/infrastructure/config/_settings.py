"""
Process-wide runtime settings.

`RuntimeSettings` holds the defaults the array layer consults when a caller
does not pass an explicit value: the device and data type of new arrays, the
tolerance used by epsilon-equality, whether leaked buffers are reported, and
the log level applied by `configure_logging`.

Settings can be loaded from the ``[ndcore]`` table of a TOML file or from
``NDCORE_*`` environment variables, installed globally with `set_settings`,
and overridden temporarily with the `settings_override` context manager.
"""

from __future__ import annotations

import os
import tomllib
import threading
from contextlib import contextmanager
from dataclasses import dataclass, fields, replace
from typing import Any, Iterator, Mapping

from ...domain._dtype import DataType
from ...domain.device._device import Device

ENV_PREFIX = "NDCORE_"


@dataclass(frozen=True)
class RuntimeSettings:
    """Defaults for array creation, comparison and diagnostics."""

    default_device: str = "cpu"
    default_dtype: str = "float32"
    eps_tolerance: float = 1e-5
    warn_on_leak: bool = True
    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        # Fail on load rather than on first use.
        Device(self.default_device)
        DataType.of(self.default_dtype)
        if self.eps_tolerance < 0:
            raise ValueError(f"eps_tolerance must be >= 0, got {self.eps_tolerance}")

    @property
    def device(self) -> Device:
        return Device(self.default_device)

    @property
    def dtype(self) -> DataType:
        return DataType.of(self.default_dtype)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "RuntimeSettings":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown setting(s): {', '.join(sorted(unknown))}")
        return cls(**dict(data))

    @classmethod
    def load(cls, config_path: str) -> "RuntimeSettings":
        """
        Load settings from a TOML file.

        Parameters
        ----------
        config_path : str
            Filesystem path to a TOML file containing an "ndcore" table.

        Returns
        -------
        RuntimeSettings
            Instance populated from the "ndcore" table; missing keys keep
            their defaults.

        Raises
        ------
        FileNotFoundError
            If no file exists at `config_path`.
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found at {config_path}")

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        return cls.from_mapping(data.get("ndcore", {}))

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "RuntimeSettings":
        """
        Build settings from ``NDCORE_<FIELD>`` environment variables.

        Values are converted to the field's type; booleans accept
        ``1/true/yes/on`` and ``0/false/no/off``.
        """
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, f.default, raw)
        return cls(**values)


def _coerce(name: str, default: Any, raw: str) -> Any:
    if isinstance(default, bool):
        lowered = raw.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise ValueError(f"Invalid boolean for {ENV_PREFIX}{name.upper()}: {raw!r}")
    if isinstance(default, float):
        return float(raw)
    return raw.strip()


_lock = threading.Lock()
_current: RuntimeSettings | None = None


def get_settings() -> RuntimeSettings:
    """
    Return the active settings, loading them from the environment on first use.
    """
    global _current
    with _lock:
        if _current is None:
            _current = RuntimeSettings.from_env()
        return _current


def set_settings(settings: RuntimeSettings) -> RuntimeSettings:
    """Install `settings` globally and return the previous value."""
    global _current
    previous = get_settings()
    with _lock:
        _current = settings
    return previous


@contextmanager
def settings_override(**changes: Any) -> Iterator[RuntimeSettings]:
    """
    Temporarily replace individual settings.

    Example
    -------
    >>> with settings_override(eps_tolerance=1e-3):
    ...     a.eps(b)
    """
    previous = set_settings(replace(get_settings(), **changes))
    try:
        yield get_settings()
    finally:
        set_settings(previous)
