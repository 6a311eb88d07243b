"""
Configuration data for the post-install run and provisioning profiles.

Everything here is payload: package names, URLs, desktop preferences and
shell snippets. Each desktop preference carries an explicit value type so the
settings engine never has to guess how to render it.
"""

import dataclasses
import json
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ubuntu_post_install.errors import ProfileError
from ubuntu_post_install.settings import (
    Setting,
    boolean,
    int32,
    string,
    string_list,
    tuple_list,
    uint32,
)
from ubuntu_post_install.steps import STEP_NAMES

DEFAULT_PROFILE = "noble"


# ----------------------------------------------------------------
# Configuration Dataclass
# ----------------------------------------------------------------
@dataclass
class Config:
    """Configuration settings for the Ubuntu post-install run."""

    # Logging
    LOG_FILE: str = str(
        Path.home() / ".local" / "share" / "ubuntu_post_install" / "post_install.log"
    )

    # Privileges and network
    SUDO_REFRESH_INTERVAL: float = 60.0
    PROBE_HOST: str = "1.1.1.1"
    PROBE_TIMEOUT: int = 5
    PROBE_ATTEMPTS: int = 2

    # Firewall
    FIREWALL_DEFAULTS: List[Tuple[str, str]] = field(
        default_factory=lambda: [("incoming", "deny"), ("outgoing", "allow")]
    )

    # Hardening
    LOCK_ROOT_ACCOUNT: bool = True
    SECURITY_PACKAGES: List[str] = field(default_factory=lambda: ["usbguard"])
    HARDENING_SERVICES: List[str] = field(
        default_factory=lambda: [
            "slapd",
            "nfs-server",
            "rpcbind",
            "bind9",
            "vsftpd",
            "apache2",
            "dovecot",
            "exim",
            "cyrus-imap",
            "smbd",
            "squid",
            "snmpd",
            "postfix",
            "sendmail",
            "rsync",
            "nis",
        ]
    )
    HARDENING_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "nis",
            "rsh-client",
            "rsh-redone-client",
            "talk",
            "telnet",
            "ldap-utils",
        ]
    )

    # Applications
    APT_PACKAGES: List[str] = field(
        default_factory=lambda: [
            "nala",
            "zulucrypt-gui",
            "keepassxc",
            "vim",
            "git",
            "curl",
            "tmux",
            "mat2",
            "rssguard",
            "python3",
            "python3-pip",
            "python3-venv",
            "zsh",
            "taskwarrior",
            "net-tools",
        ]
    )
    # (snap name, classic confinement)
    SNAP_PACKAGES: List[Tuple[str, bool]] = field(
        default_factory=lambda: [
            ("xmind", True),
            ("obsidian", True),
            ("lsd", False),
        ]
    )
    # package name -> .deb download URL, installed only when missing
    THIRD_PARTY_DEBS: Dict[str, str] = field(
        default_factory=lambda: {
            "mullvad-vpn": "https://mullvad.net/download/app/deb/latest",
        }
    )

    # Firefox
    FIREFOX_PROFILE_NAME: str = "root"
    FIREFOX_USER_JS_URL: str = "https://pastebin.com/raw/ZX70EYvN"
    # Local user.js to copy instead of downloading
    FIREFOX_USER_JS_PATH: Optional[str] = None
    FIREFOX_INIT_SECONDS: float = 5.0

    # Editors, fonts and shell
    SPACEVIM_INSTALLER_URL: str = "https://spacevim.org/install.sh"
    NERD_FONTS_DIR: str = "assets/fonts/NerdFonts"
    OHMYZSH_INSTALLER_URL: str = (
        "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh"
    )
    POWERLEVEL10K_REPO: str = "https://github.com/romkatv/powerlevel10k.git"
    ZSH_THEME: str = "powerlevel10k/powerlevel10k"
    ZSH_CUSTOM_PLUGINS: Dict[str, str] = field(
        default_factory=lambda: {
            "zsh-autosuggestions": "https://github.com/zsh-users/zsh-autosuggestions",
            "zsh-syntax-highlighting": "https://github.com/zsh-users/zsh-syntax-highlighting",
            "zsh-completions": "https://github.com/zsh-users/zsh-completions",
        }
    )
    ZSH_PLUGINS: List[str] = field(
        default_factory=lambda: [
            "git", "aliases", "autopep8", "aws", "colored-man-pages", "colorize",
            "command-not-found", "common-aliases", "compleat", "copybuffer",
            "copyfile", "copypath", "cp", "docker", "docker-compose", "emoji",
            "emoji-clock", "emotty", "encode64", "extract", "fancy-ctrl-z",
            "fbterm", "genpass", "git-commit", "git-escape-magic", "gitignore",
            "git-prompt", "golang", "history", "hitokoto", "httpie", "jsontools",
            "kubectl", "kubectx", "lol", "man", "nmap", "pip", "qrcode", "python",
            "rust", "sublime", "sudo", "systemadmin", "systemd", "taskwarrior",
            "terraform", "themes", "timer", "tmux", "tmuxinator", "torrent",
            "transfer", "ubuntu", "ufw", "urltools", "vagrant", "vscode",
            "web-search",
        ]
    )
    ALIAS_BLOCK_START: str = "# >>> CUSTOM ALIASES >>>"
    ALIAS_BLOCK_END: str = "# <<< CUSTOM ALIASES <<<"
    ZSH_ALIASES: str = r"""# Custom Aliases
alias calc='bc -l'
alias getrand='openssl rand -base64 42'
alias untar='tar -zxvf'
alias ..='cd ..'
alias cd..='cd ..'
alias la='lsd -A'
alias ls='lsd'
alias l='lsd'
alias ldir='lsd -l | grep -E '\''^d'\'' --color=never'
alias less='less -R'
alias lf='lsd -l | grep -E -v '\''^d'\'''
alias lk='lsd -lSrh'
alias ll='lsd -alFh'
alias lm='lsd -alh | more'
alias lr='lsd -lRh'
alias lt='lsd -ltrh'
alias lx='lsd -lXh'
alias mem='free -m -l -t'
alias ports='sudo netstat -tulanp'
alias psmem='ps auxf | sort -nr -k 4'
alias shpubip='curl http://ipecho.net/plain; echo'
alias checkmv='curl https://am.i.mullvad.net/connected'
alias city='curl https://am.i.mullvad.net/city'
alias country='curl https://am.i.mullvad.net/country'
alias df='df -h'
alias du='du -h'
alias dmesg='dmesg --human'
alias zulu="zuluCrypt-gui"
alias zulucli="zuluCrypt-cli"
alias biggest='du -h --max-depth=1 | sort -h'
alias countfiles='bash -c "for t in files links directories; do echo \$(find . -type \${t:0:1} | wc -l) \$t; done 2> /dev/null"'
alias da='date "+%Y-%m-%d %A %T %Z"'
alias diskspace='du -S | sort -n -r |more'
alias folders='du -h --max-depth=1'
alias follow='tail -f -n +1'
alias ipview='netstat -anpl | grep :80 | awk {'\''print $5'\''} | cut -d":" -f1 | sort | uniq -c | sort -n | sed -e '\''s/^ *//'\'' -e '\''s/ *$//'\'''
alias iso='cat /etc/dev-rel | awk -F '\''='\'' '\''/ISO/ {print }'\'''
alias j='jobs'
alias jctl='journalctl -p 3 -xb'
alias logs='sudo find /var/log -type f -exec file {} \; | grep '\''text'\'' | cut -d'\'' '\'' -f1 | sed -e'\''s/:$//g'\'' | grep -v '\''[0-9]$'\'' | xargs tail -f'
alias mkdir='mkdir -p'
alias mountedinfo='df -hT'
alias open='xdg-open'
alias openports='netstat -nape --inet'"""
    P10K_CONFIG_URL: str = "https://pastebin.com/raw/U3g4iaPw"
    P10K_CONFIG_PATH: Optional[str] = None

    # ------------------------------------------------------------
    # Desktop settings payloads
    # ------------------------------------------------------------
    THEMES_DIR: str = "/usr/share/themes"
    GTK_THEME_PREFERENCES: List[str] = field(
        default_factory=lambda: ["Yaru-red-dark", "Adwaita-dark"]
    )
    THEME_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            string("org.gnome.desktop.interface color-scheme", "prefer-dark"),
        ]
    )
    # Applied only when the key is currently writable
    BACKGROUND_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            string("org.gnome.desktop.background primary-color", "#000000"),
            string("org.gnome.desktop.background secondary-color", "#000000"),
            string("org.gnome.desktop.background picture-uri", ""),
            string("org.gnome.desktop.background picture-uri-dark", ""),
        ]
    )
    UBUNTU_DESKTOP_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            string("org.gnome.shell.extensions.ding start-corner", "top-left"),
            boolean("org.gnome.shell.extensions.dash-to-dock extend-height", False),
            int32("org.gnome.shell.extensions.dash-to-dock dash-max-icon-size", 42),
        ]
    )
    DISABLE_CONNECTIVITY_CHECK: bool = True
    PRIVACY_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            boolean("org.gnome.desktop.screensaver lock-enabled", True),
            uint32("org.gnome.desktop.screensaver lock-delay", 0),
            boolean("org.gnome.desktop.screensaver idle-activation-enabled", True),
            uint32("org.gnome.desktop.session idle-delay", 300),
            boolean("org.gnome.system.location enabled", False),
            boolean("org.gnome.desktop.privacy remember-recent-files", True),
            int32("org.gnome.desktop.privacy recent-files-max-age", 1),
            boolean("org.gnome.desktop.privacy remember-recent-files", False),
            boolean("org.gnome.desktop.privacy remove-old-trash-files", True),
            boolean("org.gnome.desktop.privacy remove-old-temp-files", True),
            uint32("org.gnome.desktop.privacy old-files-age", 0),
            boolean("org.gnome.desktop.privacy report-technical-problems", False),
            boolean("org.gnome.desktop.privacy send-software-usage-stats", False),
            boolean("org.gnome.desktop.privacy hide-identity", True),
            boolean("org.gnome.desktop.remote-desktop.rdp enable", False),
            boolean("org.gnome.desktop.remote-desktop.vnc enable", False),
            boolean("org.gnome.desktop.privacy remember-app-usage", False),
        ]
    )
    MUTE_CONTROLS: List[str] = field(default_factory=lambda: ["Master"])
    CAPTURE_CONTROLS: List[str] = field(default_factory=lambda: ["Capture"])
    POWER_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            string("org.gnome.shell last-selected-power-profile", "performance"),
            boolean("org.gnome.settings-daemon.plugins.power idle-dim", True),
            boolean("org.gnome.settings-daemon.plugins.power power-saver-profile-on-low-battery", True),
            # Suspend is enabled temporarily so the timeouts below are accepted
            string("org.gnome.settings-daemon.plugins.power sleep-inactive-ac-type", "suspend"),
            string("org.gnome.settings-daemon.plugins.power sleep-inactive-battery-type", "suspend"),
            uint32("org.gnome.desktop.screensaver logout-delay", 7200),
            int32("org.gnome.settings-daemon.plugins.power sleep-inactive-ac-timeout", 7200),
            int32("org.gnome.settings-daemon.plugins.power sleep-inactive-battery-timeout", 7200),
            string("org.gnome.settings-daemon.plugins.power sleep-inactive-ac-type", "nothing"),
            string("org.gnome.settings-daemon.plugins.power sleep-inactive-battery-type", "nothing"),
        ]
    )
    DISPLAY_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            boolean("org.gnome.desktop.interface show-battery-percentage", True),
            boolean("org.gnome.settings-daemon.plugins.color night-light-enabled", True),
            boolean("org.gnome.settings-daemon.plugins.color night-light-schedule-automatic", True),
            uint32("org.gnome.settings-daemon.plugins.color night-light-temperature", 2700),
        ]
    )
    KEYBOARD_SOURCES_KEY: str = "org.gnome.desktop.input-sources sources"
    KEYBOARD_REQUIRED_SOURCE: Tuple[str, str] = ("xkb", "fr+azerty")
    KEYBOARD_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            tuple_list("org.gnome.desktop.input-sources mru-sources", [("xkb", "fr+azerty"), ("xkb", "us")]),
            tuple_list("org.gnome.desktop.input-sources sources", [("xkb", "us"), ("xkb", "fr+azerty")]),
        ]
    )
    CALENDAR_CLOCK_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            boolean("org.gnome.desktop.interface clock-show-weekday", True),
            boolean("org.gnome.desktop.interface clock-show-date", True),
            boolean("org.gnome.desktop.calendar show-weekdate", True),
        ]
    )
    FILE_MANAGER_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            boolean("org.gtk.Settings.FileChooser sort-directories-first", True),
            boolean("org.gtk.gtk4.Settings.FileChooser sort-directories-first", True),
            boolean("org.gnome.nautilus.list-view use-tree-view", True),
            boolean("org.gnome.nautilus.preferences show-create-link", True),
            boolean("org.gnome.nautilus.preferences show-delete-permanently", True),
            string("org.gnome.nautilus.preferences recursive-search", "always"),
            string("org.gnome.nautilus.preferences show-image-thumbnails", "always"),
            string("org.gnome.nautilus.preferences show-directory-item-counts", "always"),
            string_list("org.gnome.nautilus.icon-view captions", ["detailed_type", "size", "permissions"]),
            boolean("org.gtk.Settings.FileChooser show-hidden", True),
            boolean("org.gtk.gtk4.Settings.FileChooser show-hidden", True),
            boolean("org.gnome.nautilus.preferences show-hidden-files", True),
        ]
    )
    TERMINAL_PROFILE_LIST_KEY: str = "org.gnome.Terminal.ProfilesList default"
    TERMINAL_PROFILE_PATH: str = "/org/gnome/terminal/legacy/profiles:/:{profile}/"
    # Keys are relative to the profile path above
    TERMINAL_PROFILE_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            string("visible-name", "root"),
            boolean("use-theme-colors", False),
            string("foreground-color", "rgb(208,207,204)"),
            string("background-color", "rgb(23,20,33)"),
            boolean("use-theme-transparency", True),
            string_list(
                "palette",
                [
                    "rgb(23,20,33)", "rgb(192,28,40)", "rgb(38,162,105)", "rgb(162,115,76)",
                    "rgb(18,72,139)", "rgb(163,71,186)", "rgb(42,161,179)", "rgb(208,207,204)",
                    "rgb(94,92,100)", "rgb(246,97,81)", "rgb(51,209,122)", "rgb(233,173,12)",
                    "rgb(42,123,222)", "rgb(192,97,203)", "rgb(51,199,222)", "rgb(255,255,255)",
                ],
            ),
        ]
    )
    SHELL_TEXT_EDITOR_SETTINGS: List[Setting] = field(
        default_factory=lambda: [
            string_list(
                "org.gnome.shell favorite-apps",
                ["firefox_firefox.desktop", "org.gnome.Terminal.desktop", "org.gnome.Nautilus.desktop"],
            ),
            boolean("org.gnome.TextEditor show-line-numbers", True),
            boolean("org.gnome.TextEditor show-right-margin", True),
            string("org.gnome.TextEditor style-variant", "dark"),
            string("org.gnome.TextEditor style-scheme", "classic-dark"),
            boolean("org.gnome.TextEditor highlight-current-line", True),
            boolean("org.gnome.TextEditor show-grid", True),
            boolean("org.gnome.TextEditor spellcheck", False),
            boolean("org.gnome.TextEditor wrap-text", True),
        ]
    )


# ----------------------------------------------------------------
# Profiles
# ----------------------------------------------------------------
@dataclass
class Profile:
    """An ordered step list plus the configuration it runs with."""

    name: str
    description: str
    steps: List[str]
    config: Config


def available_profiles() -> List[str]:
    profile_dir = resources.files("ubuntu_post_install") / "profiles"
    return sorted(
        entry.name[: -len(".json")]
        for entry in profile_dir.iterdir()
        if entry.name.endswith(".json")
    )


def _coerce_override(name: str, value: Any) -> Any:
    # JSON has no tuples; these fields hold pairs.
    if name in ("FIREWALL_DEFAULTS", "SNAP_PACKAGES"):
        return [tuple(item) for item in value]
    return value


def load_profile(name: str = DEFAULT_PROFILE, base: Optional[Config] = None) -> Profile:
    """
    Load a provisioning profile shipped with the package.

    Args:
        name: Profile name, e.g. "noble"
        base: Configuration the overrides are applied to

    Returns:
        The loaded Profile

    Raises:
        ProfileError: if the profile is missing or malformed
    """
    resource = resources.files("ubuntu_post_install") / "profiles" / f"{name}.json"
    if not resource.is_file():
        raise ProfileError(
            f"Unknown profile '{name}'. Available: {', '.join(available_profiles())}"
        )
    try:
        data = json.loads(resource.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ProfileError(f"Profile '{name}' is not valid JSON: {e}") from e

    steps = data.get("steps")
    if not isinstance(steps, list) or not steps:
        raise ProfileError(f"Profile '{name}' does not define any steps.")
    unknown_steps = [step for step in steps if step not in STEP_NAMES]
    if unknown_steps:
        raise ProfileError(f"Profile '{name}' lists unknown steps: {', '.join(unknown_steps)}")

    overrides = data.get("overrides", {})
    known_fields = {f.name for f in dataclasses.fields(Config)}
    unknown = sorted(set(overrides) - known_fields)
    if unknown:
        raise ProfileError(f"Profile '{name}' overrides unknown settings: {', '.join(unknown)}")

    config = dataclasses.replace(
        base or Config(),
        **{key: _coerce_override(key, value) for key, value in overrides.items()},
    )
    return Profile(
        name=name,
        description=data.get("description", ""),
        steps=list(steps),
        config=config,
    )
