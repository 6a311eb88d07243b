import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

import pytest

from ubuntu_post_install.applier import SettingTally
from ubuntu_post_install.command import CommandRunner
from ubuntu_post_install.config import Config
from ubuntu_post_install.errors import DownloadError
from ubuntu_post_install.settings import Found, LookupResult, NotFound
from ubuntu_post_install.steps import UbuntuPostInstall


class FakeRunner(CommandRunner):
    """Records commands and returns scripted results instead of executing them."""

    def __init__(
        self,
        results: Optional[Dict[Tuple[str, ...], Tuple[int, str]]] = None,
        default_returncode: int = 0,
    ) -> None:
        self.results = results or {}
        self.default_returncode = default_returncode
        self.commands: List[Tuple[str, ...]] = []

    def run(
        self,
        command: Sequence[str],
        capture_output: bool = False,
        check: bool = True,
        input: Optional[str] = None,
    ) -> subprocess.CompletedProcess:
        self.commands.append(tuple(command))
        returncode, stdout = self.results.get(tuple(command), (self.default_returncode, ""))
        if check and returncode != 0:
            raise subprocess.CalledProcessError(returncode, list(command), stdout, "")
        return subprocess.CompletedProcess(list(command), returncode, stdout, "")

    def ran(self, *command: str) -> bool:
        return tuple(command) in self.commands


class FakeStore:
    def __init__(
        self,
        values: Optional[Dict[str, str]] = None,
        read_only: Optional[Set[str]] = None,
    ) -> None:
        self.values = dict(values or {})
        self.read_only = read_only or set()
        self.set_calls: List[Tuple[str, str]] = []

    def get(self, key: str) -> LookupResult:
        if key not in self.values:
            return NotFound(key)
        return Found(self.values[key])

    def set(self, key: str, literal: str) -> None:
        self.set_calls.append((key, literal))
        self.values[key] = literal

    def is_writable(self, key: str) -> bool:
        return key in self.values and key not in self.read_only


class FakeServices:
    def __init__(self, enabled: Optional[Set[str]] = None) -> None:
        self.enabled = set(enabled or ())
        self.disable_calls: List[str] = []

    def is_enabled(self, name: str) -> bool:
        return name in self.enabled

    def disable(self, name: str) -> None:
        self.disable_calls.append(name)
        self.enabled.discard(name)


class FakePackages:
    def __init__(self, installed: Optional[Set[str]] = None, deb_ok: bool = True) -> None:
        self.installed = set(installed or ())
        self.deb_ok = deb_ok
        self.calls: List[Tuple[str, ...]] = []

    def is_installed(self, name: str) -> bool:
        return name in self.installed

    def purge(self, name: str) -> None:
        self.calls.append(("purge", name))
        self.installed.discard(name)

    def install(self, names) -> None:
        names = list(names)
        self.calls.append(("install", *names))
        self.installed.update(names)

    def update_index(self) -> None:
        self.calls.append(("update",))

    def upgrade_all(self) -> None:
        self.calls.append(("full-upgrade",))

    def autoclean(self) -> None:
        self.calls.append(("autoclean",))

    def autoremove(self) -> None:
        self.calls.append(("autoremove",))

    def install_deb(self, path) -> bool:
        self.calls.append(("install_deb", str(path)))
        return self.deb_ok

    def fix_broken(self) -> None:
        self.calls.append(("fix_broken",))


class FakeNetwork:
    def __init__(self, online: bool = True) -> None:
        self.online = online
        self.probes = 0

    def reachable(self, host=None, timeout=None, attempts=None) -> bool:
        self.probes += 1
        return self.online


class FakeDownloader:
    def __init__(self, failing: Optional[Set[str]] = None, content: str = "downloaded\n") -> None:
        self.failing = failing or set()
        self.content = content
        self.downloads: List[Tuple[str, Path]] = []

    def download_to_path(self, url: str, dest_path) -> Path:
        dest_path = Path(dest_path)
        self.downloads.append((url, dest_path))
        if url in self.failing:
            raise DownloadError(url, "HTTP 404")
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        dest_path.write_text(self.content)
        return dest_path


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def config(tmp_path) -> Config:
    themes = tmp_path / "themes"
    themes.mkdir()
    return Config(
        LOG_FILE=str(tmp_path / "post_install.log"),
        THEMES_DIR=str(themes),
        NERD_FONTS_DIR=str(tmp_path / "fonts-src"),
    )


@pytest.fixture
def make_setup(tmp_path, runner, store, config):
    """Build a UbuntuPostInstall wired to fakes, overriding any of them."""

    def factory(**overrides) -> UbuntuPostInstall:
        home = tmp_path / "home"
        home.mkdir(exist_ok=True)
        options = dict(
            config=config,
            runner=runner,
            tally=SettingTally(),
            home=home,
            apt=FakePackages(),
            store=store,
            services=FakeServices(),
            network=FakeNetwork(),
            downloader=FakeDownloader(),
            sleep=lambda seconds: None,
        )
        options.update(overrides)
        return UbuntuPostInstall(**options)

    return factory
