"""
Provisioning steps for a fresh Ubuntu desktop.

Each public step method is a self-contained phase: it checks the state it
depends on (network, installed tools, files) and either does its work or
skips with a warning. Steps that hit an unexpected error raise and the
runner records the failure before moving on.
"""

import getpass
import logging
import os
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, List, Optional, Sequence

from ubuntu_post_install.adapters import (
    AptPackageManager,
    AudioMixer,
    DconfStore,
    Downloader,
    FirefoxProfiles,
    GSettingsStore,
    NetworkProbe,
    ShellProfile,
    SnapPackageManager,
    SystemdServices,
    UfwFirewall,
)
from ubuntu_post_install.applier import (
    SettingApplier,
    SettingTally,
    ensure_package_absent,
    ensure_service_disabled,
)
from ubuntu_post_install.command import CommandRunner, backup_file, command_exists, sudo
from ubuntu_post_install.errors import DownloadError, ProfileError
from ubuntu_post_install.runner import Step
from ubuntu_post_install.settings import NotFound, string
from ubuntu_post_install.ui import (
    print_step,
    print_success,
    print_unchanged,
    print_warning,
)

if TYPE_CHECKING:
    from ubuntu_post_install.config import Config

logger = logging.getLogger(__name__)

# Every step a profile may list, in the default run order.
STEP_NAMES = (
    "perform_system_update",
    "configure_ufw",
    "configure_theme",
    "configure_ubuntu_desktop",
    "configure_privacy_settings",
    "configure_sound_settings",
    "configure_power_perfs_settings",
    "configure_display_settings",
    "configure_keyboard_settings",
    "configure_calendar_clock_settings",
    "configure_file_manager_settings",
    "configure_gnome_terminal_settings",
    "configure_gnome_shell_text_editor_settings",
    "configure_hardening",
    "install_basic_apps",
    "manage_firefox_profiles",
    "install_spacevim",
    "install_nerd_fonts",
    "install_ohmyzsh",
    "custom_zsh",
    "update_zsh_plugins",
    "update_zsh_aliases",
    "copy_p10k_config",
)

GTK_THEME_KEY = "org.gnome.desktop.interface gtk-theme"


class UbuntuPostInstall:
    """
    The post-install phases, bound to one configuration and one set of
    system adapters.

    Adapters default to the command-line backed implementations built on
    ``runner``; any of them can be passed in explicitly.
    """

    def __init__(
        self,
        config: "Config",
        runner: Optional[CommandRunner] = None,
        tally: Optional[SettingTally] = None,
        home: Optional[Path] = None,
        apt=None,
        snap=None,
        store=None,
        dconf=None,
        firewall=None,
        services=None,
        mixer=None,
        network=None,
        downloader=None,
        firefox=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.runner = runner or CommandRunner()
        self.tally = tally if tally is not None else SettingTally()
        self.home = Path(home) if home else Path.home()

        self.apt = apt or AptPackageManager(self.runner)
        self.snap = snap or SnapPackageManager(self.runner)
        self.store = store or GSettingsStore(self.runner)
        self.dconf = dconf or DconfStore(self.runner)
        self.firewall = firewall or UfwFirewall(self.runner)
        self.services = services or SystemdServices(self.runner)
        self.mixer = mixer or AudioMixer(self.runner)
        self.network = network or NetworkProbe(
            self.runner,
            host=config.PROBE_HOST,
            timeout=config.PROBE_TIMEOUT,
            attempts=config.PROBE_ATTEMPTS,
        )
        self.downloader = downloader or Downloader(self.runner)
        self.firefox = firefox or FirefoxProfiles(self.runner, home=self.home)
        self.sleep = sleep

        self.applier = SettingApplier(self.store, self.tally)

    # ------------------------------------------------------------
    # Step registry
    # ------------------------------------------------------------
    def steps_for(self, names: Sequence[str]) -> List[Step]:
        """Build runnable steps for the given step names, in order."""
        steps = []
        for name in names:
            if name not in STEP_NAMES:
                raise ProfileError(f"Unknown step: {name}")
            body = getattr(self, name)
            doc = (body.__doc__ or "").strip()
            steps.append(Step(name, body, doc.splitlines()[0] if doc else ""))
        return steps

    # ------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------
    @property
    def zshrc(self) -> ShellProfile:
        return ShellProfile(self.home / ".zshrc")

    @property
    def oh_my_zsh_dir(self) -> Path:
        return self.home / ".oh-my-zsh"

    @property
    def fonts_dir(self) -> Path:
        return self.home / ".local" / "share" / "fonts"

    # ------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------
    def online(self, purpose: str) -> bool:
        """Probe the network; warn and return False if it is unreachable."""
        if self.network.reachable():
            return True
        logger.warning(f"No internet connection. Skipping {purpose}.")
        print_warning(f"No internet connection. Skipping {purpose}.")
        return False

    def select_gtk_theme(self) -> Optional[str]:
        """Return the first preferred theme installed under the themes dir."""
        themes_dir = Path(self.config.THEMES_DIR)
        if not themes_dir.is_dir():
            return None
        available = {entry.name for entry in themes_dir.iterdir() if entry.is_dir()}
        for theme in self.config.GTK_THEME_PREFERENCES:
            if theme in available:
                return theme
        return None

    def install_deb_from_url(self, url: str) -> bool:
        """
        Download a .deb into a temporary directory and install it.

        A dpkg failure is followed by an ``apt install -f`` to pull in
        missing dependencies. The download is always removed afterwards.

        Returns:
            True if the package was installed
        """
        if not self.online(f"installation from {url}"):
            return False

        tmp_dir = Path(tempfile.mkdtemp(prefix="post_install_"))
        try:
            try:
                deb_path = self.downloader.download_to_path(url, tmp_dir / "package.deb")
            except DownloadError as e:
                logger.warning(str(e))
                print_warning(f"Failed to download {url}. Skipping.")
                return False

            print_step(f"Installing {url}...")
            if self.apt.install_deb(deb_path):
                print_success(f"Installed package from {url}")
                return True

            logger.warning(f"dpkg reported errors for {url}; fixing dependencies.")
            self.apt.fix_broken()
            print_success(f"Installed package from {url} after fixing dependencies")
            return True
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

    def ensure_zsh_login_shell(self) -> bool:
        """Switch the login shell to zsh if it is not already."""
        zsh_path = shutil.which("zsh")
        if not zsh_path:
            print_warning("zsh is not installed; cannot change the login shell.")
            return False
        if os.environ.get("SHELL") == zsh_path:
            print_unchanged("zsh is already the default shell")
            return True
        result = self.runner.run(sudo("chsh", "-s", zsh_path, getpass.getuser()), check=False)
        if result.returncode != 0:
            logger.warning("Failed to change default shell to zsh.")
            print_warning("Failed to change default shell to zsh. Change it manually.")
            return False
        print_success("Default shell changed to zsh")
        return True

    def clone_if_missing(self, repo: str, dest: Path) -> None:
        if dest.is_dir():
            print_unchanged(f"{dest.name} is already installed")
            return
        print_step(f"Cloning {dest.name}...")
        self.runner.run(["git", "clone", "--depth=1", repo, str(dest)])

    # ------------------------------------------------------------
    # System
    # ------------------------------------------------------------
    def perform_system_update(self) -> None:
        """Update and upgrade system packages"""
        if not self.online("system update"):
            return
        print_step("Updating package lists...")
        self.apt.update_index()
        print_step("Upgrading all packages...")
        self.apt.upgrade_all()
        self.apt.autoclean()
        self.apt.autoremove()
        print_success("System packages are up to date")

    def configure_ufw(self) -> None:
        """Enable and configure the firewall"""
        if self.firewall.status() == "active":
            print_unchanged("UFW is already active")
        else:
            print_step("Enabling UFW...")
            self.firewall.enable()
            print_success("UFW enabled")

        for direction, action in self.config.FIREWALL_DEFAULTS:
            self.firewall.set_default_policy(direction, action)
            print_success(f"Default {direction} policy: {action}")

        logger.info(f"UFW status:\n{self.firewall.verbose_status()}")

    # ------------------------------------------------------------
    # Desktop
    # ------------------------------------------------------------
    def configure_theme(self) -> None:
        """Apply the dark theme and a plain black background"""
        self.applier.apply_all(self.config.THEME_SETTINGS)

        theme = self.select_gtk_theme()
        if theme:
            self.applier.apply_setting(string(GTK_THEME_KEY, theme))
        else:
            print_warning("No suitable dark theme found. Theme remains unchanged.")

        for setting in self.config.BACKGROUND_SETTINGS:
            self.applier.apply_if_writable(setting)

    def configure_ubuntu_desktop(self) -> None:
        """Configure desktop icons and the dock"""
        self.applier.apply_all(self.config.UBUNTU_DESKTOP_SETTINGS)

    def configure_privacy_settings(self) -> None:
        """Tighten screen lock, location and history settings"""
        if self.config.DISABLE_CONNECTIVITY_CHECK:
            print_step("Disabling the NetworkManager connectivity check...")
            result = self.runner.run(
                sudo(
                    "busctl",
                    "--system",
                    "set-property",
                    "org.freedesktop.NetworkManager",
                    "/org/freedesktop/NetworkManager",
                    "org.freedesktop.NetworkManager",
                    "ConnectivityCheckEnabled",
                    "b",
                    "0",
                ),
                check=False,
            )
            if result.returncode != 0:
                logger.warning(f"busctl exited with {result.returncode}")
                print_warning("Could not disable the NetworkManager connectivity check")
        self.applier.apply_all(self.config.PRIVACY_SETTINGS)

    def configure_sound_settings(self) -> None:
        """Mute output and disable capture"""
        for control in self.config.MUTE_CONTROLS:
            self.mixer.mute(control)
            print_success(f"{control} muted")
        for control in self.config.CAPTURE_CONTROLS:
            self.mixer.disable_capture(control)
            print_success(f"{control} capture disabled")

    def configure_power_perfs_settings(self) -> None:
        """Configure power profile, dimming and sleep behaviour"""
        self.applier.apply_all(self.config.POWER_SETTINGS)

    def configure_display_settings(self) -> None:
        self.applier.apply_all(self.config.DISPLAY_SETTINGS)

    def configure_keyboard_settings(self) -> None:
        """Add the keyboard layouts if they are missing"""
        key = self.config.KEYBOARD_SOURCES_KEY
        current = self.store.get(key)
        if isinstance(current, NotFound):
            print_warning(f"{key} is not supported here; skipping keyboard setup.")
            self.tally.unsupported_keys.append(key)
            return

        source_type, layout = self.config.KEYBOARD_REQUIRED_SOURCE
        if f"('{source_type}', '{layout}')" in current.value:
            print_unchanged(f"Keyboard layout {layout} is already configured")
            return
        self.applier.apply_all(self.config.KEYBOARD_SETTINGS)

    def configure_calendar_clock_settings(self) -> None:
        self.applier.apply_all(self.config.CALENDAR_CLOCK_SETTINGS)

    def configure_file_manager_settings(self) -> None:
        """Configure Nautilus and file chooser preferences"""
        self.applier.apply_all(self.config.FILE_MANAGER_SETTINGS)

    def configure_gnome_terminal_settings(self) -> None:
        """Style the default GNOME Terminal profile"""
        current = self.store.get(self.config.TERMINAL_PROFILE_LIST_KEY)
        if isinstance(current, NotFound):
            print_warning("GNOME Terminal profile list not found; skipping terminal setup.")
            return

        profile_id = current.value.strip("'\"")
        if not profile_id:
            print_warning("No default GNOME Terminal profile; skipping terminal setup.")
            return

        base_path = self.config.TERMINAL_PROFILE_PATH.format(profile=profile_id)
        for setting in self.config.TERMINAL_PROFILE_SETTINGS:
            self.dconf.write(base_path + setting.key, setting.literal)
            print_success(f"Terminal {setting.key} set")

    def configure_gnome_shell_text_editor_settings(self) -> None:
        """Set favourite apps and Text Editor preferences"""
        self.applier.apply_all(self.config.SHELL_TEXT_EDITOR_SETTINGS)

    # ------------------------------------------------------------
    # Security
    # ------------------------------------------------------------
    def configure_hardening(self) -> None:
        """Lock root, disable risky services and purge insecure packages"""
        if self.config.LOCK_ROOT_ACCOUNT:
            print_step("Locking the root account...")
            self.runner.run(sudo("passwd", "-l", "root"))

        if self.config.SECURITY_PACKAGES and self.online("security tools installation"):
            self.apt.install(self.config.SECURITY_PACKAGES)
            print_success(f"Installed {', '.join(self.config.SECURITY_PACKAGES)}")

        for service in self.config.HARDENING_SERVICES:
            ensure_service_disabled(self.services, service)

        for package in self.config.HARDENING_PACKAGES:
            ensure_package_absent(self.apt, package)

    # ------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------
    def install_basic_apps(self) -> None:
        """Install everyday applications"""
        self.apt.update_index()
        self.apt.install(self.config.APT_PACKAGES)
        if self.config.APT_PACKAGES:
            print_success(f"Installed {len(self.config.APT_PACKAGES)} apt packages")

        if self.config.SNAP_PACKAGES:
            self.snap.refresh()
            for name, classic in self.config.SNAP_PACKAGES:
                try:
                    self.snap.install(name, classic=classic)
                except subprocess.CalledProcessError as e:
                    logger.warning(f"snap install {name} failed: {e}")
                    print_warning(f"Failed to install snap {name}")
                    continue
                print_success(f"Snap {name} installed")

        for package, url in self.config.THIRD_PARTY_DEBS.items():
            if self.apt.is_installed(package):
                print_unchanged(f"{package} is already installed")
                continue
            try:
                self.install_deb_from_url(url)
            except subprocess.CalledProcessError as e:
                logger.warning(f"Installing {package} failed: {e}")
                print_warning(f"Failed to install {package}")

    def manage_firefox_profiles(self) -> None:
        """Recreate the Firefox profile with a hardened user.js"""
        profile_dir = self.firefox.find_profile_dir()
        if profile_dir is None:
            print_warning("No profiles.ini found. Firefox might not be installed yet.")
            return
        logger.info(f"Firefox profile directory: {profile_dir}")

        removed = self.firefox.clear_profiles(profile_dir)
        print_success(f"Removed {removed} old profile(s)")

        name = self.config.FIREFOX_PROFILE_NAME
        target = profile_dir / name
        if self.firefox.create_profile(name, target):
            print_success(f"Profile '{name}' created")
        else:
            print_warning(f"Failed to create profile '{name}'")

        try:
            process = self.firefox.launch(name)
        except OSError as e:
            logger.warning(f"Could not launch Firefox: {e}")
            print_warning("Firefox could not be started to initialise the profile")
        else:
            self.sleep(self.config.FIREFOX_INIT_SECONDS)
            self.firefox.stop(process, f"firefox -P {name}")

        user_js = target / "user.js"
        if self.config.FIREFOX_USER_JS_PATH:
            source = Path(self.config.FIREFOX_USER_JS_PATH)
            if not source.is_file():
                print_warning(f"{source} not found. No user.js copied.")
                return
            target.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, user_js)
            print_success(f"user.js copied into profile '{name}'")
            return

        try:
            self.downloader.download_to_path(self.config.FIREFOX_USER_JS_URL, user_js)
            print_success(f"user.js applied to profile '{name}'")
        except DownloadError as e:
            logger.warning(str(e))
            print_warning("Failed to download user.js. Skipping custom configuration.")

    def install_spacevim(self) -> None:
        """Install SpaceVim"""
        if not self.online("SpaceVim installation"):
            return
        if not command_exists("curl"):
            print_warning("curl is required but not installed. Skipping SpaceVim installation.")
            return
        print_step("Running the SpaceVim installer...")
        self.runner.run(["bash", "-c", f"curl -sLf {self.config.SPACEVIM_INSTALLER_URL} | bash"])
        print_success("SpaceVim installed")

    def install_nerd_fonts(self) -> None:
        """Install bundled Nerd Fonts"""
        source = Path(self.config.NERD_FONTS_DIR)
        if not source.is_dir():
            print_warning(f"Nerd Fonts directory not found at {source}. Skipping installation.")
            return

        self.fonts_dir.mkdir(parents=True, exist_ok=True)
        installed = 0
        for font in sorted(source.glob("*.ttf")):
            shutil.copy2(font, self.fonts_dir / font.name)
            logger.debug(f"Installed font {font.name}")
            installed += 1

        if not installed:
            print_warning(f"No .ttf fonts found in {source}. Nothing was installed.")
            return
        self.runner.run(["fc-cache", "-f", str(self.fonts_dir)])
        print_success(f"Installed {installed} font(s) and refreshed the font cache")

    # ------------------------------------------------------------
    # Shell
    # ------------------------------------------------------------
    def install_ohmyzsh(self) -> None:
        """Install Oh My Zsh"""
        if not self.online("Oh My Zsh installation"):
            return
        if not command_exists("zsh"):
            print_warning("zsh is not installed. Skipping Oh My Zsh installation.")
            return

        if self.oh_my_zsh_dir.is_dir():
            print_unchanged("Oh My Zsh is already installed")
        else:
            print_step("Installing Oh My Zsh...")
            self.runner.run(
                [
                    "bash",
                    "-c",
                    f'sh -c "$(curl -fsSL {self.config.OHMYZSH_INSTALLER_URL})" "" --unattended',
                ]
            )
            print_success("Oh My Zsh installed")

        bash_history = self.home / ".bash_history"
        if bash_history.exists():
            bash_history.unlink()
            logger.info("Cleared bash history.")

        self.ensure_zsh_login_shell()

    def custom_zsh(self) -> None:
        """Install Powerlevel10k and zsh plugins"""
        if not command_exists("zsh"):
            print_warning("zsh is not installed. Skipping zsh customization.")
            return
        if not self.online("zsh customization"):
            return

        self.ensure_zsh_login_shell()

        custom_dir = self.oh_my_zsh_dir / "custom"
        self.clone_if_missing(self.config.POWERLEVEL10K_REPO, custom_dir / "themes" / "powerlevel10k")
        for plugin, repo in self.config.ZSH_CUSTOM_PLUGINS.items():
            self.clone_if_missing(repo, custom_dir / "plugins" / plugin)

        zshrc = self.zshrc
        zshrc.set_line("ZSH_THEME=", f'ZSH_THEME="{self.config.ZSH_THEME}"')
        zshrc.set_line("plugins=", f"plugins=(git {' '.join(self.config.ZSH_CUSTOM_PLUGINS)})")
        print_success("Powerlevel10k theme and plugins configured")

    def update_zsh_plugins(self) -> None:
        """Rewrite the plugins list in .zshrc"""
        zshrc = self.zshrc
        if not zshrc.exists():
            print_warning("No .zshrc file found. Skipping plugin update.")
            return

        content = zshrc.read()
        plugins = list(self.config.ZSH_PLUGINS)
        plugins.extend(p for p in self.config.ZSH_CUSTOM_PLUGINS if p in content)
        plugins = sorted(set(plugins))

        zshrc.backup()
        zshrc.set_line("plugins=", f"plugins=({' '.join(plugins)})")
        print_success(f"{len(plugins)} zsh plugins configured")

    def update_zsh_aliases(self) -> None:
        """Refresh the custom alias block in .zshrc"""
        zshrc = self.zshrc
        if not zshrc.exists():
            print_warning("No .zshrc file found. Skipping aliases update.")
            return
        zshrc.backup()
        zshrc.replace_block(
            self.config.ALIAS_BLOCK_START,
            self.config.ALIAS_BLOCK_END,
            self.config.ZSH_ALIASES,
        )
        print_success("Custom aliases updated")

    def copy_p10k_config(self) -> None:
        """Copy or download the Powerlevel10k configuration"""
        source = self.config.P10K_CONFIG_PATH
        if source and not Path(source).is_file():
            print_warning(f"{source} not found. No Powerlevel10k configuration copied.")
            return
        if not source and not self.online("Powerlevel10k configuration"):
            return

        p10k = self.home / ".p10k.zsh"
        if p10k.exists():
            backup_file(p10k)
        if source:
            shutil.copy2(source, p10k)
        else:
            self.downloader.download_to_path(self.config.P10K_CONFIG_URL, p10k)
        print_success(f"Powerlevel10k configuration saved to {p10k}")
