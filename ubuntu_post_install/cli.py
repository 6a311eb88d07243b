"""
Command-line entry point for the Ubuntu post-install run.

Run with no arguments to provision a fresh Ubuntu desktop with the default
profile. The run needs sudo rights; individual step failures are reported
in the final summary but never change the exit status.
"""

import logging
import signal
import sys
from typing import Optional

import click

from ubuntu_post_install import __version__
from ubuntu_post_install.applier import SettingTally
from ubuntu_post_install.command import CommandRunner
from ubuntu_post_install.config import DEFAULT_PROFILE, available_profiles, load_profile
from ubuntu_post_install.errors import PrivilegeError, ProfileError
from ubuntu_post_install.log import LOGGER_NAME, setup_logger
from ubuntu_post_install.privilege import SudoKeepAlive, require_admin_rights
from ubuntu_post_install.runner import StepRunner
from ubuntu_post_install.steps import UbuntuPostInstall
from ubuntu_post_install.ui import (
    NordColors,
    console,
    create_header,
    print_completion,
    print_error,
    print_run_report,
    print_warning,
)


# ----------------------------------------------------------------
# Signal Handling
# ----------------------------------------------------------------
def signal_handler(signum, frame) -> None:
    """
    Gracefully handle termination signals.

    Args:
        signum: Signal number
        frame: Current stack frame
    """
    sig_name = signal.Signals(signum).name
    logging.getLogger(LOGGER_NAME).error(f"Run interrupted by {sig_name}.")
    console.print(f"[bold {NordColors.RED}]Run interrupted by {sig_name}. Exiting...[/]")
    sys.exit(128 + signum)


def install_signal_handlers() -> None:
    for sig in (signal.SIGINT, signal.SIGTERM, signal.SIGHUP):
        signal.signal(sig, signal_handler)


# ----------------------------------------------------------------
# Main
# ----------------------------------------------------------------
def run(
    profile_name: str = DEFAULT_PROFILE,
    stop_on_failure: bool = False,
    log_file: Optional[str] = None,
    debug: bool = False,
) -> int:
    """
    Provision the machine with the named profile.

    Returns:
        Process exit code: 0 once privileges are confirmed, 1 otherwise
    """
    console.print(create_header("Ubuntu Post-Install"))

    try:
        profile = load_profile(profile_name)
    except ProfileError as e:
        print_error(str(e))
        return 1

    config = profile.config
    if log_file:
        config.LOG_FILE = log_file
    logger = setup_logger(config.LOG_FILE, debug=debug)
    logger.info(f"Starting post-install with profile '{profile.name}' ({len(profile.steps)} steps)")

    runner = CommandRunner()
    try:
        require_admin_rights(runner)
    except PrivilegeError as e:
        logger.error(str(e))
        print_error(str(e))
        return 1

    tally = SettingTally()
    setup = UbuntuPostInstall(config, runner=runner, tally=tally)
    steps = setup.steps_for(profile.steps)
    step_runner = StepRunner(stop_on_failure=stop_on_failure, tally=tally)

    with SudoKeepAlive(runner, interval=config.SUDO_REFRESH_INTERVAL):
        report = step_runner.run(steps)

    print_run_report(report)
    print_completion(report, config.LOG_FILE)
    logger.info(
        f"Post-install finished: {len(report.succeeded)} succeeded, "
        f"{len(report.failed)} failed, {len(report)} total"
    )
    return 0


@click.command()
@click.option(
    "--profile",
    "profile_name",
    type=click.Choice(available_profiles()),
    default=DEFAULT_PROFILE,
    show_default=True,
    help="Provisioning profile to run.",
)
@click.option(
    "--stop-on-failure",
    is_flag=True,
    help="Stop at the first failed step and skip the rest.",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Write the detailed log to this file.",
)
@click.option("--debug", is_flag=True, help="Show debug output on the console.")
@click.version_option(__version__)
def main(profile_name: str, stop_on_failure: bool, log_file: Optional[str], debug: bool) -> None:
    """
    Ubuntu Post-Install - Nord Themed CLI

    Updates the system, configures the firewall and GNOME desktop, hardens
    services and installs applications and shell tooling.
    """
    install_signal_handlers()
    try:
        exit_code = run(profile_name, stop_on_failure, log_file, debug)
    except KeyboardInterrupt:
        print_warning("Operation cancelled by user.")
        exit_code = 130
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
