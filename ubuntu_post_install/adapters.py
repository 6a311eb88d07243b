"""
Thin adapters over the external programs the provisioning steps drive.

Each adapter exposes a narrow capability (package manager, settings store,
firewall, ...) and shells out through a shared CommandRunner. Privileged
commands are prefixed with sudo; the sudo session is kept alive by the
privilege module for the whole run.
"""

import logging
import re
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ubuntu_post_install.command import CommandRunner, backup_file, sudo
from ubuntu_post_install.errors import DownloadError
from ubuntu_post_install.settings import Found, LookupResult, NotFound, split_key

logger = logging.getLogger(__name__)


# ----------------------------------------------------------------
# Package Managers
# ----------------------------------------------------------------
class AptPackageManager:
    """APT/dpkg operations."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def is_installed(self, name: str) -> bool:
        return self.runner.succeeds(["dpkg", "-s", name])

    def install(self, names: Iterable[str]) -> None:
        names = list(names)
        if names:
            self.runner.run(sudo("apt", "install", "-y", *names))

    def purge(self, name: str) -> None:
        self.runner.run(sudo("apt", "remove", "--purge", "-y", name))

    def update_index(self) -> None:
        self.runner.run(sudo("apt", "update"))

    def upgrade_all(self) -> None:
        self.runner.run(sudo("apt", "full-upgrade", "-y"))

    def autoclean(self) -> None:
        self.runner.run(sudo("apt", "autoclean", "-y"))

    def autoremove(self) -> None:
        self.runner.run(sudo("apt", "autoremove", "-y"))

    def install_deb(self, path: Union[str, Path]) -> bool:
        """Install a local .deb; returns False if dpkg reported an error."""
        result = self.runner.run(sudo("dpkg", "-i", str(path)), check=False)
        return result.returncode == 0

    def fix_broken(self) -> None:
        self.runner.run(sudo("apt", "install", "-f", "-y"))


class SnapPackageManager:
    """Sandboxed application channel."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def refresh(self) -> None:
        self.runner.run(sudo("snap", "refresh"))

    def install(self, name: str, classic: bool = False) -> None:
        command = sudo("snap", "install", name)
        if classic:
            command.append("--classic")
        self.runner.run(command)


# ----------------------------------------------------------------
# Desktop Configuration Stores
# ----------------------------------------------------------------
class GSettingsStore:
    """GSettings backend, driven through the gsettings CLI."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def get(self, key: str) -> LookupResult:
        schema, name = split_key(key)
        result = self.runner.run(
            ["gsettings", "get", schema, name], capture_output=True, check=False
        )
        if result.returncode != 0:
            return NotFound(key)
        return Found((result.stdout or "").strip())

    def is_writable(self, key: str) -> bool:
        schema, name = split_key(key)
        result = self.runner.run(
            ["gsettings", "writable", schema, name], capture_output=True, check=False
        )
        return result.returncode == 0 and (result.stdout or "").strip() == "true"

    def set(self, key: str, literal: str) -> None:
        schema, name = split_key(key)
        self.runner.run(["gsettings", "set", schema, name, literal])


class DconfStore:
    """Direct dconf writes for app-specific paths not covered by a schema."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def write(self, path: str, literal: str) -> None:
        self.runner.run(["dconf", "write", path, literal])


# ----------------------------------------------------------------
# System Control
# ----------------------------------------------------------------
class UfwFirewall:
    """Uncomplicated Firewall control."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def status(self) -> str:
        result = self.runner.run(sudo("ufw", "status"), capture_output=True, check=False)
        for line in (result.stdout or "").splitlines():
            if line.strip().lower() == "status: active":
                return "active"
        return "inactive"

    def enable(self) -> None:
        self.runner.run(sudo("ufw", "--force", "enable"))

    def set_default_policy(self, direction: str, action: str) -> None:
        self.runner.run(sudo("ufw", "default", action, direction))

    def verbose_status(self) -> str:
        return self.runner.output(sudo("ufw", "status", "verbose"))


class SystemdServices:
    """systemd unit enablement."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def is_enabled(self, name: str) -> bool:
        return self.runner.succeeds(sudo("systemctl", "is-enabled", name))

    def disable(self, name: str) -> None:
        self.runner.run(sudo("systemctl", "disable", name))


class AudioMixer:
    """ALSA mixer controls."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def mute(self, control: str = "Master") -> None:
        self.runner.run(["amixer", "set", control, "mute"])

    def disable_capture(self, control: str = "Capture") -> None:
        self.runner.run(["amixer", "set", control, "nocap"])


# ----------------------------------------------------------------
# Network
# ----------------------------------------------------------------
class NetworkProbe:
    """ICMP reachability check. Results are never cached."""

    def __init__(self, runner: CommandRunner, host: str = "1.1.1.1", timeout: int = 5, attempts: int = 2):
        self.runner = runner
        self.host = host
        self.timeout = timeout
        self.attempts = attempts

    def reachable(
        self,
        host: Optional[str] = None,
        timeout: Optional[int] = None,
        attempts: Optional[int] = None,
    ) -> bool:
        command = [
            "ping",
            "-c",
            str(attempts or self.attempts),
            "-W",
            str(timeout or self.timeout),
            host or self.host,
        ]
        try:
            return self.runner.succeeds(command)
        except OSError as e:
            logger.warning(f"Network probe could not run: {e}")
            return False


class Downloader:
    """Fetch remote files with curl."""

    def __init__(self, runner: CommandRunner):
        self.runner = runner

    def download_to_path(self, url: str, dest_path: Union[str, Path]) -> Path:
        """
        Download a URL to an exact destination path.

        Raises:
            DownloadError: if curl fails or the file is missing afterwards
        """
        dest_path = Path(dest_path)
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            self.runner.run(["curl", "-fsSL", url, "-o", str(dest_path)], capture_output=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise DownloadError(url, str(e)) from e
        if not dest_path.is_file():
            raise DownloadError(url, f"{dest_path} was not created")
        logger.info(f"Downloaded {url} to {dest_path}")
        return dest_path

    def download(self, url: str, dest_dir: Optional[Union[str, Path]] = None) -> Path:
        """Download a URL into a directory, naming the file after the URL."""
        dest_dir = Path(dest_dir) if dest_dir else Path(tempfile.mkdtemp(prefix="post_install_"))
        name = url.rstrip("/").rsplit("/", 1)[-1] or "download"
        return self.download_to_path(url, dest_dir / name)


# ----------------------------------------------------------------
# Firefox Profiles
# ----------------------------------------------------------------
class FirefoxProfiles:
    """Create, launch and stop Firefox profiles."""

    PROFILE_LOCATIONS = (
        ".mozilla/firefox",
        "snap/firefox/common/.mozilla/firefox",
    )

    def __init__(self, runner: CommandRunner, home: Optional[Path] = None):
        self.runner = runner
        self.home = Path(home) if home else Path.home()

    def find_profile_dir(self) -> Optional[Path]:
        for location in self.PROFILE_LOCATIONS:
            profiles_ini = self.home / location / "profiles.ini"
            if profiles_ini.is_file():
                return profiles_ini.parent
        for profiles_ini in self.home.rglob("profiles.ini"):
            return profiles_ini.parent
        return None

    def clear_profiles(self, profile_dir: Path) -> int:
        removed = 0
        for child in profile_dir.iterdir():
            if child.is_dir() and not child.is_symlink():
                shutil.rmtree(child)
                removed += 1
        return removed

    def create_profile(self, name: str, path: Path) -> bool:
        return self.runner.succeeds(["firefox", "-CreateProfile", f"{name} {path}"])

    def launch(self, name: str) -> subprocess.Popen:
        logger.debug(f"Launching firefox -P {name}")
        return subprocess.Popen(
            ["firefox", "-P", name],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
        )

    def stop(self, process: Optional[subprocess.Popen], match: str, timeout: float = 10.0) -> None:
        """
        Terminate a browser started by launch() and reap it.

        If there is no handle, or the launcher already exited after handing
        off to a running instance, the browser is matched by command line
        with pkill instead.
        """
        if process is None or process.poll() is not None:
            self.runner.run(["pkill", "-f", match], check=False)
            return

        process.terminate()
        try:
            process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning(f"Firefox did not exit within {timeout}s; killing it")
            process.kill()
            process.wait()


# ----------------------------------------------------------------
# Shell Profile
# ----------------------------------------------------------------
class ShellProfile:
    """Line- and block-level edits of a shell rc file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> str:
        return self.path.read_text()

    def write(self, content: str) -> None:
        self.path.write_text(content)

    def backup(self) -> Optional[Path]:
        return backup_file(self.path)

    def contains(self, text: str) -> bool:
        return self.exists() and text in self.read()

    def set_line(self, prefix: str, line: str) -> bool:
        """
        Replace the first line starting with ``prefix`` or append ``line``.

        Returns:
            True if an existing line was replaced, False if appended
        """
        content = self.read() if self.exists() else ""
        pattern = re.compile(rf"^{re.escape(prefix)}.*$", re.MULTILINE)
        if pattern.search(content):
            self.write(pattern.sub(lambda _: line, content, count=1))
            return True
        if content and not content.endswith("\n"):
            content += "\n"
        self.write(content + line + "\n")
        return False

    def remove_block(self, start_marker: str, end_marker: str) -> bool:
        """Delete every line from ``start_marker`` through ``end_marker``."""
        lines: List[str] = self.read().splitlines(keepends=True)
        kept: List[str] = []
        inside = False
        removed = False
        for line in lines:
            stripped = line.strip()
            if not inside and stripped == start_marker:
                inside = True
                removed = True
                continue
            if inside:
                if stripped == end_marker:
                    inside = False
                continue
            kept.append(line)
        if removed:
            self.write("".join(kept))
        return removed

    def replace_block(self, start_marker: str, end_marker: str, body: str) -> None:
        """Remove any existing marked block and append a fresh one."""
        self.remove_block(start_marker, end_marker)
        content = self.read()
        if content and not content.endswith("\n"):
            content += "\n"
        body = body.strip("\n")
        block = f"{start_marker}\n{body}\n{end_marker}\n"
        self.write(content + block)
