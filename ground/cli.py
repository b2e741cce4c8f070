import argparse
import logging
import os
import sys

import uvicorn

from ground.config import settings
from ground.services import execute, monitor, users

VERSION = "v0.2.8"

SERVICE_PATH = "/etc/systemd/system/ground.service"

REQUIRED_PROGRAMS = (
    "df",
    "du",
    "gpasswd",
    "groups",
    "mkdir",
    "mv",
    "passwd",
    "sed",
    "su",
    "sudo",
    "systemctl",
    "tar",
    "touch",
    "uptime",
    "useradd",
    "userdel",
)

HELP_TEXT = """ground

Methods:
  help:    Print this message
  version: Print version
  service: Print systemd service instructions
  run:     Run web server

Arguments:
  -h, --help:    Print this message
  -v, --version: Print version
"""

logger = logging.getLogger("ground")


class HealthCheckError(Exception):
    pass


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ground", add_help=False)
    parser.add_argument("methods", nargs="*")
    parser.add_argument("-h", "--help", action="store_true", dest="help")
    parser.add_argument("-v", "--version", action="store_true", dest="version")
    return parser


def print_error(message: str) -> None:
    print(f"Error: {message}")
    print("Run with -h/--help to print help.")


def print_service(executable: str | None = None) -> None:
    executable = executable or os.path.realpath(sys.argv[0])
    exists = " (file already exists)" if os.path.exists(SERVICE_PATH) else ""

    print("The following instructions are to set up ground as a systemd service.")
    print("Note, this is just an example, the actual service location/content can be modified.")
    print(f"Executable location: {executable}")
    print(f"   Service location: {SERVICE_PATH}{exists}")
    print()
    print("Example content of service file (uses current executable location):")
    print(
        f"""[Unit]
Description=Ground
After=network.target

[Service]
User=root
ExecStart={executable} run
Restart=always

[Install]
WantedBy=multi-user.target
"""
    )
    print("After you have a service file defined, you can enable/start the service with the following:")
    print("sudo systemctl enable ground.service")
    print("sudo systemctl start ground.service")
    print()
    print("You can stop/disable the service with the following:")
    print("sudo systemctl stop ground.service")
    print("sudo systemctl disable ground.service")
    print()
    print("Upgrade the installed package to get a newer version running, no updates to the service needed.")


def health_check() -> None:
    if os.getuid() != 0:
        raise HealthCheckError("not running as root")

    missing = execute.missing_programs(REQUIRED_PROGRAMS)
    if missing:
        raise HealthCheckError(f"missing required dependency program '{missing[0]}'")

    try:
        users.setup_admin_group()
    except (OSError, RuntimeError) as exc:
        raise HealthCheckError(f"failed to setup admin group: {exc}") from exc

    if monitor.disk_size() == "?":
        raise HealthCheckError("failed to setup disk size")


def configure_logging() -> None:
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


def serve() -> None:
    logger.info("Starting %s %s on %s:%s", settings.app_name, VERSION, settings.host, settings.port)
    uvicorn.run(
        "ground.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


def main(argv: list[str] | None = None) -> int:
    args, _ = _build_parser().parse_known_args(argv)
    methods = set(args.methods)

    if args.help or "help" in methods:
        print(HELP_TEXT, end="")
        return 0

    if args.version or "version" in methods:
        print(VERSION)
        return 0

    if "service" in methods:
        print_service()
        return 0

    if "run" not in methods:
        print_error("nothing to run")
        return 1

    configure_logging()
    try:
        health_check()
    except HealthCheckError as exc:
        print_error(f"failed health check: {exc}")
        return 1

    serve()
    return 0


if __name__ == "__main__":
    sys.exit(main())
