"""Ledger configuration for portaria."""

from __future__ import annotations

import dataclasses
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from portaria._constants import DEFAULT_TIME_ZONE
from portaria.exceptions import ConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on", "sim", "s"}:
        return True
    if normalized in {"0", "false", "no", "n", "off", "nao", "não"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class LedgerConfig:
    """Ledger configuration.

    Parameters
    ----------
    store_path : Path or None
        JSON file backing the ledger.  ``None`` keeps everything in memory.
    time_zone : str
        IANA time zone used to decide which calendar day a movement
        belongs to (same-day km check, history and trip filters).
    enforce_alternation : bool
        Reject a departure for a vehicle already out and an arrival for a
        vehicle already in.  Off by default: the gate historically accepted
        both.
    raise_on_write_error : bool
        Raise :class:`~portaria.exceptions.StorageError` when the store
        cannot be written.  When ``False`` the failure is only logged.
    seed_defaults : bool
        Populate an empty store with the default drivers and vehicles.
    """

    store_path: Path | None = None
    time_zone: str = DEFAULT_TIME_ZONE
    enforce_alternation: bool = False
    raise_on_write_error: bool = True
    seed_defaults: bool = False

    def __post_init__(self) -> None:
        if self.store_path is not None and not isinstance(self.store_path, Path):
            object.__setattr__(self, "store_path", Path(self.store_path))
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"unknown time zone: {self.time_zone!r}") from exc

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    @classmethod
    def from_env(cls, **overrides: Any) -> LedgerConfig:
        """Create configuration from ``PORTARIA_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        store_path = env.get("PORTARIA_STORE_PATH")
        if store_path:
            config_kwargs["store_path"] = Path(store_path).expanduser()

        time_zone = env.get("PORTARIA_TIME_ZONE")
        if time_zone:
            config_kwargs["time_zone"] = time_zone

        if "enforce_alternation" not in overrides:
            config_kwargs["enforce_alternation"] = _env_bool(env.get("PORTARIA_ENFORCE_ALTERNATION"), False)

        if "raise_on_write_error" not in overrides:
            config_kwargs["raise_on_write_error"] = _env_bool(env.get("PORTARIA_RAISE_ON_WRITE_ERROR"), True)

        if "seed_defaults" not in overrides:
            config_kwargs["seed_defaults"] = _env_bool(env.get("PORTARIA_SEED_DEFAULTS"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
