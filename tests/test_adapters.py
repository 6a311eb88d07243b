import subprocess
from pathlib import Path

import pytest

from conftest import FakeRunner
from ubuntu_post_install.adapters import (
    AptPackageManager,
    Downloader,
    FirefoxProfiles,
    GSettingsStore,
    NetworkProbe,
    ShellProfile,
    SnapPackageManager,
    SystemdServices,
    UfwFirewall,
)
from ubuntu_post_install.errors import DownloadError
from ubuntu_post_install.settings import Found, NotFound


def test_gsettings_get_found_and_not_found() -> None:
    runner = FakeRunner(
        {
            ("gsettings", "get", "org.gnome.desktop.interface", "color-scheme"): (0, "'prefer-dark'\n"),
            ("gsettings", "get", "org.gnome.nope", "key"): (1, ""),
        }
    )
    store = GSettingsStore(runner)

    assert store.get("org.gnome.desktop.interface color-scheme") == Found("'prefer-dark'")
    assert store.get("org.gnome.nope key") == NotFound("org.gnome.nope key")


def test_gsettings_set_and_writable() -> None:
    runner = FakeRunner(
        {
            ("gsettings", "writable", "org.gnome.desktop.background", "primary-color"): (0, "true\n"),
            ("gsettings", "writable", "org.gnome.desktop.background", "picture-uri"): (0, "false\n"),
        }
    )
    store = GSettingsStore(runner)

    store.set("org.gnome.desktop.background.primary-color", "'#000000'")

    assert runner.ran("gsettings", "set", "org.gnome.desktop.background", "primary-color", "'#000000'")
    assert store.is_writable("org.gnome.desktop.background primary-color")
    assert not store.is_writable("org.gnome.desktop.background picture-uri")


def test_apt_commands() -> None:
    runner = FakeRunner({("dpkg", "-s", "telnet"): (1, "")})
    apt = AptPackageManager(runner)

    assert not apt.is_installed("telnet")
    apt.install([])
    apt.install(["vim", "git"])
    apt.purge("talk")

    assert runner.commands[1:] == [
        ("sudo", "apt", "install", "-y", "vim", "git"),
        ("sudo", "apt", "remove", "--purge", "-y", "talk"),
    ]


def test_install_deb_reports_dpkg_failure() -> None:
    runner = FakeRunner({("sudo", "dpkg", "-i", "/tmp/x.deb"): (1, "")})

    assert AptPackageManager(runner).install_deb("/tmp/x.deb") is False


def test_snap_classic_flag() -> None:
    runner = FakeRunner()
    snap = SnapPackageManager(runner)

    snap.install("obsidian", classic=True)
    snap.install("lsd")

    assert runner.commands == [
        ("sudo", "snap", "install", "obsidian", "--classic"),
        ("sudo", "snap", "install", "lsd"),
    ]


def test_ufw_status_parsing() -> None:
    active = FakeRunner({("sudo", "ufw", "status"): (0, "Status: active\n\nTo  Action  From\n")})
    inactive = FakeRunner({("sudo", "ufw", "status"): (0, "Status: inactive\n")})

    assert UfwFirewall(active).status() == "active"
    assert UfwFirewall(inactive).status() == "inactive"


def test_ufw_default_policy_command() -> None:
    runner = FakeRunner()

    UfwFirewall(runner).set_default_policy("incoming", "deny")

    assert runner.commands == [("sudo", "ufw", "default", "deny", "incoming")]


def test_systemd_is_enabled_uses_exit_status() -> None:
    runner = FakeRunner({("sudo", "systemctl", "is-enabled", "smbd"): (1, "disabled\n")})
    services = SystemdServices(runner)

    assert not services.is_enabled("smbd")
    assert services.is_enabled("apache2")


def test_network_probe_command() -> None:
    runner = FakeRunner(default_returncode=1)

    assert NetworkProbe(runner).reachable() is False
    assert runner.commands == [("ping", "-c", "2", "-W", "5", "1.1.1.1")]


def test_downloader_raises_on_curl_failure(tmp_path) -> None:
    runner = FakeRunner(default_returncode=22)

    with pytest.raises(DownloadError) as excinfo:
        Downloader(runner).download_to_path("https://example.invalid/x.deb", tmp_path / "x.deb")
    assert excinfo.value.url == "https://example.invalid/x.deb"


def test_downloader_raises_when_file_missing(tmp_path) -> None:
    with pytest.raises(DownloadError):
        Downloader(FakeRunner()).download("https://example.invalid/user.js", tmp_path)


def test_shell_profile_set_line_replaces_or_appends(tmp_path) -> None:
    zshrc = ShellProfile(tmp_path / ".zshrc")
    zshrc.write('export ZSH="$HOME/.oh-my-zsh"\nZSH_THEME="robbyrussell"\n')

    assert zshrc.set_line("ZSH_THEME=", 'ZSH_THEME="powerlevel10k/powerlevel10k"') is True
    assert zshrc.set_line("plugins=", "plugins=(git)") is False
    assert zshrc.read() == (
        'export ZSH="$HOME/.oh-my-zsh"\n'
        'ZSH_THEME="powerlevel10k/powerlevel10k"\n'
        "plugins=(git)\n"
    )


def test_shell_profile_replace_block(tmp_path) -> None:
    zshrc = ShellProfile(tmp_path / ".zshrc")
    zshrc.write("source $ZSH/oh-my-zsh.sh\n# >>> A >>>\nalias old='x'\n# <<< A <<<\nexport EDITOR=vim\n")

    zshrc.replace_block("# >>> A >>>", "# <<< A <<<", "alias new='y'")

    assert zshrc.read() == (
        "source $ZSH/oh-my-zsh.sh\nexport EDITOR=vim\n# >>> A >>>\nalias new='y'\n# <<< A <<<\n"
    )


def test_shell_profile_backup(tmp_path) -> None:
    zshrc = ShellProfile(tmp_path / ".zshrc")
    zshrc.write("plugins=(git)\n")

    backup = zshrc.backup()

    assert backup == tmp_path / ".zshrc.bak"
    assert backup.read_text() == "plugins=(git)\n"


def test_firefox_profile_dir_lookup_and_clear(tmp_path) -> None:
    profile_dir = tmp_path / "snap" / "firefox" / "common" / ".mozilla" / "firefox"
    (profile_dir / "abcd.default").mkdir(parents=True)
    (profile_dir / "profiles.ini").write_text("[General]\n")
    firefox = FirefoxProfiles(FakeRunner(), home=tmp_path)

    assert firefox.find_profile_dir() == profile_dir
    assert firefox.clear_profiles(profile_dir) == 1
    assert [p.name for p in profile_dir.iterdir()] == ["profiles.ini"]


def test_firefox_profile_dir_missing(tmp_path) -> None:
    assert FirefoxProfiles(FakeRunner(), home=Path(tmp_path)).find_profile_dir() is None


class FakeProcess:
    """Mimics the parts of Popen that FirefoxProfiles.stop uses."""

    def __init__(self, exited: bool = False, hangs: bool = False) -> None:
        self.returncode = 0 if exited else None
        self.hangs = hangs
        self.calls = []

    def poll(self):
        return self.returncode

    def terminate(self):
        self.calls.append("terminate")

    def kill(self):
        self.calls.append("kill")
        self.hangs = False

    def wait(self, timeout=None):
        self.calls.append(("wait", timeout))
        if self.hangs:
            raise subprocess.TimeoutExpired(["firefox"], timeout)
        self.returncode = -15
        return self.returncode


def test_firefox_stop_terminates_and_reaps_the_launched_process(tmp_path) -> None:
    runner = FakeRunner()
    process = FakeProcess()

    FirefoxProfiles(runner, home=tmp_path).stop(process, "firefox -P root", timeout=3)

    assert process.calls == ["terminate", ("wait", 3)]
    assert runner.commands == []


def test_firefox_stop_kills_a_process_that_ignores_terminate(tmp_path) -> None:
    process = FakeProcess(hangs=True)

    FirefoxProfiles(FakeRunner(), home=tmp_path).stop(process, "firefox -P root", timeout=3)

    assert process.calls == ["terminate", ("wait", 3), "kill", ("wait", None)]


def test_firefox_stop_falls_back_to_pkill(tmp_path) -> None:
    runner = FakeRunner()
    firefox = FirefoxProfiles(runner, home=tmp_path)

    firefox.stop(FakeProcess(exited=True), "firefox -P root")
    firefox.stop(None, "firefox -P root")

    assert runner.commands == [("pkill", "-f", "firefox -P root")] * 2
