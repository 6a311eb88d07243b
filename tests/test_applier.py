import subprocess

import pytest

from conftest import FakePackages, FakeServices, FakeStore
from ubuntu_post_install.applier import (
    SettingApplier,
    ensure_package_absent,
    ensure_service_disabled,
)
from ubuntu_post_install.settings import SettingOutcome, boolean, string, uint32


def test_differing_value_is_written_once() -> None:
    store = FakeStore({"a.b.c": "'light'"})
    applier = SettingApplier(store)

    outcome = applier.apply("a.b.c", "'dark'")

    assert outcome is SettingOutcome.APPLIED
    assert store.set_calls == [("a.b.c", "'dark'")]
    assert applier.tally.applied_keys == ["a.b.c"]


def test_matching_value_is_not_written() -> None:
    store = FakeStore({"a.b.c": "'dark'"})
    applier = SettingApplier(store)

    assert applier.apply("a.b.c", "'dark'") is SettingOutcome.UNCHANGED
    assert store.set_calls == []


def test_missing_key_is_unsupported() -> None:
    store = FakeStore({})
    applier = SettingApplier(store)

    assert applier.apply("x.y.z", "'dark'") is SettingOutcome.UNSUPPORTED
    assert store.set_calls == []
    assert applier.tally.unsupported_keys == ["x.y.z"]


def test_comparison_is_exact_string_equality() -> None:
    store = FakeStore({"a.b.c": '"dark"'})
    applier = SettingApplier(store)

    assert applier.apply("a.b.c", "'dark'") is SettingOutcome.APPLIED


def test_second_application_writes_nothing() -> None:
    store = FakeStore(
        {
            "org.gnome.desktop.interface color-scheme": "'default'",
            "org.gnome.desktop.session idle-delay": "uint32 900",
            "org.gnome.system.location enabled": "true",
        }
    )
    settings = [
        string("org.gnome.desktop.interface color-scheme", "prefer-dark"),
        uint32("org.gnome.desktop.session idle-delay", 300),
        boolean("org.gnome.system.location enabled", False),
    ]
    applier = SettingApplier(store)

    first = applier.apply_all(settings)
    writes_after_first = len(store.set_calls)
    second = applier.apply_all(settings)

    assert first == [SettingOutcome.APPLIED] * 3
    assert second == [SettingOutcome.UNCHANGED] * 3
    assert len(store.set_calls) == writes_after_first == 3


def test_unsupported_key_does_not_stop_siblings() -> None:
    store = FakeStore({"org.gnome.desktop.calendar show-weekdate": "false"})
    applier = SettingApplier(store)

    outcomes = applier.apply_all(
        [
            boolean("org.gnome.missing.schema some-key", True),
            boolean("org.gnome.desktop.calendar show-weekdate", True),
        ]
    )

    assert outcomes == [SettingOutcome.UNSUPPORTED, SettingOutcome.APPLIED]


def test_override_in_same_batch_keeps_final_value() -> None:
    key = "org.gnome.desktop.privacy remember-recent-files"
    store = FakeStore({key: "false"})
    applier = SettingApplier(store)

    applier.apply_all([boolean(key, True), boolean(key, False)])

    assert store.set_calls == [(key, "true"), (key, "false")]
    assert store.values[key] == "false"


def test_rejected_write_propagates() -> None:
    class RejectingStore(FakeStore):
        def set(self, key, literal):
            raise subprocess.CalledProcessError(1, ["gsettings", "set"])

    applier = SettingApplier(RejectingStore({"a.b.c": "1"}))

    with pytest.raises(subprocess.CalledProcessError):
        applier.apply("a.b.c", "2")


def test_apply_if_writable_skips_read_only_keys() -> None:
    key = "org.gnome.desktop.background primary-color"
    store = FakeStore({key: "'#023c88'"}, read_only={key})
    applier = SettingApplier(store)

    assert applier.apply_if_writable(string(key, "#000000")) is None
    assert store.set_calls == []
    assert applier.tally.skipped_keys == [key]


def test_service_toggle_disables_only_once() -> None:
    services = FakeServices(enabled={"apache2"})

    assert ensure_service_disabled(services, "apache2") is True
    assert ensure_service_disabled(services, "apache2") is False
    assert services.disable_calls == ["apache2"]


def test_package_toggle_purges_only_installed() -> None:
    packages = FakePackages(installed={"telnet"})

    assert ensure_package_absent(packages, "telnet") is True
    assert ensure_package_absent(packages, "telnet") is False
    assert ensure_package_absent(packages, "talk") is False
    assert packages.calls == [("purge", "telnet")]
