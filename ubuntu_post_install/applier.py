"""
Idempotent appliers: write a setting, disable a service or purge a package
only when the current state differs from the desired one.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Protocol

from ubuntu_post_install.settings import (
    LookupResult,
    NotFound,
    Setting,
    SettingOutcome,
)
from ubuntu_post_install.ui import print_success, print_unchanged, print_warning

logger = logging.getLogger(__name__)


class SettingStore(Protocol):
    def get(self, key: str) -> LookupResult: ...

    def set(self, key: str, literal: str) -> None: ...

    def is_writable(self, key: str) -> bool: ...


class ServiceManager(Protocol):
    def is_enabled(self, name: str) -> bool: ...

    def disable(self, name: str) -> None: ...


class PackageManager(Protocol):
    def is_installed(self, name: str) -> bool: ...

    def purge(self, name: str) -> None: ...


@dataclass
class SettingTally:
    """Keys grouped by what happened to them during a run."""

    applied_keys: List[str] = field(default_factory=list)
    unchanged_keys: List[str] = field(default_factory=list)
    unsupported_keys: List[str] = field(default_factory=list)
    skipped_keys: List[str] = field(default_factory=list)

    @property
    def applied(self) -> int:
        return len(self.applied_keys)

    @property
    def unchanged(self) -> int:
        return len(self.unchanged_keys)

    @property
    def unsupported(self) -> int:
        return len(self.unsupported_keys)

    @property
    def skipped(self) -> int:
        return len(self.skipped_keys)

    def record(self, key: str, outcome: SettingOutcome) -> None:
        {
            SettingOutcome.APPLIED: self.applied_keys,
            SettingOutcome.UNCHANGED: self.unchanged_keys,
            SettingOutcome.UNSUPPORTED: self.unsupported_keys,
        }[outcome].append(key)


# ----------------------------------------------------------------
# Setting Applier
# ----------------------------------------------------------------
class SettingApplier:
    """
    Apply settings to a store, writing only when the current literal differs.

    Comparison is exact string equality on the literal: ``'dark'`` and
    ``"dark"`` are different values as far as the applier is concerned.
    """

    def __init__(self, store: SettingStore, tally: Optional[SettingTally] = None):
        self.store = store
        self.tally = tally if tally is not None else SettingTally()

    def apply(self, key: str, literal: str) -> SettingOutcome:
        """
        Ensure ``key`` holds ``literal``.

        Args:
            key: Schema-qualified setting key
            literal: Pre-formatted desired value

        Returns:
            UNSUPPORTED if the key does not exist, UNCHANGED if it already
            holds the literal, APPLIED if a write was performed
        """
        current = self.store.get(key)
        if isinstance(current, NotFound):
            logger.debug(f"The key {key} does not exist.")
            print_warning(f"{key} is not supported here; skipping.")
            outcome = SettingOutcome.UNSUPPORTED
        elif current.value == literal:
            logger.debug(f"{key} is already set to {literal}.")
            print_unchanged(f"{key} is already set to {literal}")
            outcome = SettingOutcome.UNCHANGED
        else:
            logger.debug(f"Setting {key} to {literal} (was {current.value}).")
            self.store.set(key, literal)
            print_success(f"{key} set to {literal}")
            outcome = SettingOutcome.APPLIED
        self.tally.record(key, outcome)
        return outcome

    def apply_setting(self, setting: Setting) -> SettingOutcome:
        return self.apply(setting.key, setting.literal)

    def apply_all(self, settings: Iterable[Setting]) -> List[SettingOutcome]:
        return [self.apply_setting(setting) for setting in settings]

    def apply_if_writable(self, setting: Setting) -> Optional[SettingOutcome]:
        """Apply a setting only if the store currently allows writing it."""
        if not self.store.is_writable(setting.key):
            self.skip(setting.key, "not writable")
            return None
        return self.apply_setting(setting)

    def skip(self, key: str, reason: str) -> None:
        logger.debug(f"Cannot write to {key} ({reason}). Skipping.")
        print_warning(f"Cannot write to {key}; skipping.")
        self.tally.skipped_keys.append(key)


# ----------------------------------------------------------------
# Binary Toggles
# ----------------------------------------------------------------
def ensure_service_disabled(services: ServiceManager, name: str) -> bool:
    """
    Disable a service if it is currently enabled.

    Returns:
        True if the service was disabled by this call
    """
    if services.is_enabled(name):
        logger.debug(f"Disabling {name}...")
        services.disable(name)
        print_success(f"{name} disabled")
        return True
    logger.debug(f"{name} is already disabled.")
    print_unchanged(f"{name} is already disabled")
    return False


def ensure_package_absent(packages: PackageManager, name: str) -> bool:
    """
    Purge a package, configuration included, if it is installed.

    Returns:
        True if the package was removed by this call
    """
    if packages.is_installed(name):
        logger.debug(f"Removing {name}...")
        packages.purge(name)
        print_success(f"{name} purged")
        return True
    logger.debug(f"{name} is already not installed.")
    print_unchanged(f"{name} is already not installed")
    return False
