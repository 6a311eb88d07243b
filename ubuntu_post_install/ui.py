"""
Nord-themed console output: banner, section headers, status lines and the
final run report.
"""

import shutil
from typing import TYPE_CHECKING

import pyfiglet
from rich import box
from rich.console import Console, Group
from rich.markup import escape
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from ubuntu_post_install import __version__

if TYPE_CHECKING:
    from ubuntu_post_install.runner import RunReport


# ----------------------------------------------------------------
# Nord Color Theme & Console Setup
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette for consistent styling."""

    POLAR_NIGHT_4: str = "#4C566A"
    SNOW_STORM_1: str = "#D8DEE9"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"


nord_theme = Theme(
    {
        "info": f"{NordColors.FROST_2}",
        "warning": f"{NordColors.YELLOW}",
        "error": f"{NordColors.RED}",
        "success": f"{NordColors.GREEN}",
        "debug": f"{NordColors.POLAR_NIGHT_4}",
        "header": f"bold {NordColors.FROST_1}",
        "title": f"bold {NordColors.FROST_3}",
        "panel.border": f"{NordColors.FROST_4}",
    }
)

console = Console(theme=nord_theme, highlight=False)

STATUS_STYLES = {
    "success": NordColors.GREEN,
    "failure": NordColors.RED,
    "skipped": NordColors.YELLOW,
}


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str) -> Panel:
    """
    Generate an ASCII art header with gradient styling using Pyfiglet.

    Args:
        title: The title text to display in the ASCII art

    Returns:
        A Rich Panel containing the styled ASCII art header
    """
    term_width = shutil.get_terminal_size().columns
    adjusted_width = min(term_width - 4, 80)

    fonts = ["slant", "small", "standard"]
    ascii_art = ""
    for font in fonts:
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=adjusted_width).renderText(title)
        except pyfiglet.FontNotFound:
            continue
        if ascii_art.strip():
            break

    colors = [
        NordColors.FROST_1,
        NordColors.FROST_2,
        NordColors.FROST_3,
        NordColors.FROST_4,
    ]
    styled_text = Text()
    for i, line in enumerate(line for line in ascii_art.splitlines() if line.strip()):
        styled_text.append(line, style=Style(color=colors[i % len(colors)], bold=True))
        styled_text.append("\n")

    return Panel(
        styled_text,
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        title=f"v{__version__}",
        title_align="right",
    )


def print_section(title: str) -> None:
    """Display a section header with consistent styling."""
    console.print()
    console.print(f"[bold {NordColors.FROST_3}]{escape(title)}[/]")
    console.print(f"[{NordColors.FROST_3}]{'─' * len(title)}[/]")


def print_message(text: str, style: str = NordColors.FROST_2, prefix: str = "•") -> None:
    """Print a styled message with a prefix."""
    console.print(f"[{style}]{prefix} {escape(text)}[/{style}]")


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def print_step(message: str) -> None:
    print_message(message, NordColors.FROST_2, "→")


def print_unchanged(message: str) -> None:
    print_message(message, NordColors.FROST_3, "=")


# ----------------------------------------------------------------
# Run Report
# ----------------------------------------------------------------
def print_run_report(report: "RunReport") -> None:
    """Display a summary table of every step in the run."""
    table = Table(
        title="Post-Install Run Report",
        title_style=f"bold {NordColors.FROST_1}",
        border_style=f"{NordColors.FROST_3}",
        box=box.ROUNDED,
        show_lines=False,
    )
    table.add_column("#", justify="right", style=f"{NordColors.FROST_3}")
    table.add_column("Step", style=f"bold {NordColors.FROST_2}")
    table.add_column("Status", style="bold")
    table.add_column("Time", justify="right")
    table.add_column("Message")

    for index, result in enumerate(report, start=1):
        status = result.status.value
        status_style = STATUS_STYLES.get(status, NordColors.FROST_2)
        table.add_row(
            str(index),
            result.name,
            f"[{status_style}]{status.upper()}[/{status_style}]",
            f"{result.elapsed:.1f}s",
            escape(result.message),
        )

    tally = report.tally
    summary = Text(
        f"Settings: {tally.applied} applied, {tally.unchanged} unchanged, "
        f"{tally.unsupported} unsupported, {tally.skipped} skipped",
        style=f"{NordColors.FROST_2}",
    )
    console.print(Panel(Group(table, summary), border_style=f"{NordColors.FROST_1}"))


def print_completion(report: "RunReport", log_file: str) -> None:
    """Print the final completion banner."""
    failed = report.failed
    if failed:
        headline = Text(
            f"Post-installation completed with {len(failed)} failed step(s): "
            f"{', '.join(r.name for r in failed)}",
            style=f"bold {NordColors.YELLOW}",
        )
    else:
        headline = Text(
            "Post-installation completed successfully.",
            style=f"bold {NordColors.GREEN}",
        )
    console.print(
        Panel(
            Group(headline, Text(f"Log file: {log_file}", style=f"{NordColors.FROST_3}")),
            title="Setup Complete",
            title_align="center",
            border_style=f"bold {NordColors.FROST_1}",
            padding=(1, 2),
        )
    )
