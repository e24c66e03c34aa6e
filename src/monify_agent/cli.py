"""CLI interface for monify-agent."""

from __future__ import annotations

import argparse
import getpass
import logging
import os
import signal
import subprocess
import sys

from . import __version__
from .config import DEFAULT_SERVER_URL, ENV_FILE_PATH, load_config, load_env_file, save_env_file, setup_logging
from .errors import ConfigError

logger = logging.getLogger(__name__)

SERVICE_NAME = "monify"
INSTALL_COMMAND = "curl -sSL https://monify.cloud/install.sh | bash"


def _cmd_run(args: argparse.Namespace) -> None:
    """Run the agent in the foreground until stopped."""
    load_env_file(args.env_file)
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)
    setup_logging(cfg)

    if cfg.mode == "http" and not cfg.server.token:
        logger.error("No token configured. Run 'sudo monify login' first.")
        sys.exit(1)

    from .agent import Agent

    agent = Agent(cfg)

    def _handle_stop(sig: int, _frame: object) -> None:
        logger.info("Received %s, shutting down", signal.Signals(sig).name)
        agent.stop()

    def _handle_hup(_sig: int, _frame: object) -> None:
        logger.info("Received SIGHUP, reload not supported")

    signal.signal(signal.SIGINT, _handle_stop)
    signal.signal(signal.SIGTERM, _handle_stop)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, _handle_hup)

    sys.exit(agent.run())


def _service_state() -> str:
    try:
        result = subprocess.run(
            ["systemctl", "is-active", SERVICE_NAME],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        return "unknown"
    return result.stdout.strip() or "unknown"


def _cmd_status(args: argparse.Namespace) -> None:
    """Print service and configuration status."""
    load_env_file(args.env_file)
    try:
        cfg = load_config(args.config)
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)

    state = _service_state()
    print(f"monify {__version__}")
    print(f"  Service:   {state}")
    print(f"  Mode:      {cfg.mode}")
    if cfg.mode == "http":
        print(f"  Server:    {cfg.server.url}")
        print(f"  Token:     {'configured' if cfg.server.token else 'missing'}")
    elif cfg.mode == "local":
        print(f"  Output:    {cfg.local_sender.output_dir}")
    else:
        print(f"  Endpoint:  {cfg.otel.endpoint}")

    if cfg.mode == "http" and not cfg.server.token:
        print()
        print("No token configured. Run:")
        print("  sudo monify login")
    elif state == "failed":
        print()
        print("The service has stopped. If the token was rejected (exit code 3), run:")
        print("  sudo monify login")
        print(f"  sudo systemctl restart {SERVICE_NAME}")


def _cmd_login(args: argparse.Namespace) -> None:
    """Store an agent token in the env file."""
    token = args.token or getpass.getpass("Agent token: ")
    token = token.strip()
    if not token:
        print("No token given.", file=sys.stderr)
        sys.exit(1)

    updates = {"MONIFY_TOKEN": token}
    if args.server_url:
        updates["MONIFY_SERVER_URL"] = args.server_url
    try:
        save_env_file(updates, args.env_file)
    except OSError as exc:
        print(f"Cannot write {args.env_file}: {exc} (try sudo)", file=sys.stderr)
        sys.exit(1)
    print(f"Token saved to {args.env_file}")
    print(f"Restart the agent to apply: sudo systemctl restart {SERVICE_NAME}")


def _stop_service() -> bool:
    try:
        result = subprocess.run(
            ["systemctl", "stop", SERVICE_NAME],
            capture_output=True,
            timeout=30,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("systemctl stop %s failed: %s", SERVICE_NAME, exc)
        return False
    return result.returncode == 0


def _cmd_logout(args: argparse.Namespace) -> None:
    """Stop the service, then remove the agent token from the env file."""
    if _stop_service():
        print("Service stopped")
    try:
        save_env_file({"MONIFY_TOKEN": ""}, args.env_file)
    except OSError as exc:
        print(f"Cannot write {args.env_file}: {exc} (try sudo)", file=sys.stderr)
        sys.exit(1)
    print(f"Token removed from {args.env_file}")


def _cmd_update(_args: argparse.Namespace) -> None:
    """Re-run the installer, which replaces the binary and restarts the service."""
    if os.geteuid() != 0:
        print("update requires root privileges. Please run: sudo monify update", file=sys.stderr)
        sys.exit(1)

    print("Updating monify agent...")
    print(f"Current version: {__version__}")
    # stdout/stderr are inherited so installer output streams to the terminal.
    try:
        result = subprocess.run(["bash", "-c", INSTALL_COMMAND], check=False)
    except OSError as exc:
        print(f"Update failed: {exc}", file=sys.stderr)
        sys.exit(1)
    if result.returncode != 0:
        print(f"Update failed: installer exited with status {result.returncode}", file=sys.stderr)
        sys.exit(1)


def _cmd_version(_args: argparse.Namespace) -> None:
    print(f"monify {__version__}")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the monify CLI."""
    parser = argparse.ArgumentParser(
        prog="monify",
        description="Host metrics agent for monify.cloud",
    )
    parser.add_argument("--config", "-c", default=None, help="Path to monify.yaml")
    parser.add_argument("--env-file", default=ENV_FILE_PATH, help=f"Env file (default: {ENV_FILE_PATH})")
    sub = parser.add_subparsers(dest="command")

    # run
    run_p = sub.add_parser("run", help="Run the agent in the foreground")
    run_p.set_defaults(func=_cmd_run)

    # status
    status_p = sub.add_parser("status", help="Show service and configuration status")
    status_p.set_defaults(func=_cmd_status)

    # login
    login_p = sub.add_parser("login", help="Save an agent token")
    login_p.add_argument("token", nargs="?", default=None, help="Agent token (prompted if omitted)")
    login_p.add_argument("--server-url", default=None, help=f"Collector URL (default: {DEFAULT_SERVER_URL})")
    login_p.set_defaults(func=_cmd_login)

    # logout
    logout_p = sub.add_parser("logout", help="Stop the service and remove the saved agent token")
    logout_p.set_defaults(func=_cmd_logout)

    # update
    update_p = sub.add_parser("update", help="Update the agent to the latest release (root only)")
    update_p.set_defaults(func=_cmd_update)

    # version
    ver_p = sub.add_parser("version", help="Print version")
    ver_p.set_defaults(func=_cmd_version)

    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == "__main__":
    main()
