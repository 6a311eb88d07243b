import pytest

from ubuntu_post_install.config import Config, available_profiles, load_profile
from ubuntu_post_install.errors import ProfileError
from ubuntu_post_install.settings import ValueType
from ubuntu_post_install.steps import STEP_NAMES


def test_shipped_profiles() -> None:
    assert available_profiles() == ["mantic", "noble", "tweak"]


def test_noble_runs_every_step_in_order() -> None:
    profile = load_profile("noble")

    assert profile.steps == list(STEP_NAMES)
    assert profile.config == Config()


def test_mantic_copies_local_config_files() -> None:
    mantic = load_profile("mantic")

    assert mantic.steps == load_profile("noble").steps
    assert mantic.config.FIREFOX_USER_JS_PATH == "assets/conf/user.js"
    assert mantic.config.P10K_CONFIG_PATH == "assets/conf/.p10k.zsh"
    assert mantic.config != Config()


def test_tweak_overrides() -> None:
    profile = load_profile("tweak")

    assert profile.steps[-1] == "install_basic_apps"
    assert len(profile.steps) == 15
    assert profile.config.HARDENING_SERVICES == []
    assert profile.config.HARDENING_PACKAGES == []
    assert profile.config.SNAP_PACKAGES == []
    assert profile.config.THIRD_PARTY_DEBS == {}
    assert "gnome-tweaks" in profile.config.APT_PACKAGES
    assert profile.config.SECURITY_PACKAGES == ["usbguard"]


def test_unknown_profile() -> None:
    with pytest.raises(ProfileError):
        load_profile("jammy")


def test_colors_are_typed_as_strings() -> None:
    background = {s.key: s for s in Config().BACKGROUND_SETTINGS}

    color = background["org.gnome.desktop.background primary-color"]
    assert color.type is ValueType.STRING
    assert color.literal == "'#000000'"


def test_recent_files_setting_ends_disabled() -> None:
    key = "org.gnome.desktop.privacy remember-recent-files"
    literals = [s.literal for s in Config().PRIVACY_SETTINGS if s.key == key]

    assert literals == ["true", "false"]
