"""
Config derivation - reconcile flags, image metadata and defaults.

Precedence for every setting is: explicit flag, then image metadata, then
the built-in default. Each resolver is a plain function so it can be tested
without any runtime.

Informational messages ("No port specified, ...") are passed to `say`,
which the orchestrator points at the CLI output.
"""

import logging
import os
from typing import Callable, Mapping, Optional, Sequence

from servicectl.errors import (
    BadImageError,
    InvalidSyntaxError,
    MonitorPortNotExposedError,
)
from servicectl.schemas import (
    MAX_PORT,
    ImageMetadata,
    MonitorConfig,
    MonitorMethod,
    RouteOverride,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8080
DEFAULT_WORKING_DIR = "/"

INVALID_PORT_MESSAGE = (
    "Invalid port specified. Ports must be a comma-delimited list of integers between 0-65535."
)
MONITOR_PORT_NOT_EXPOSED_MESSAGE = "Must have an exposed port that matches the monitored port"
MALFORMED_ROUTE_MESSAGE = "Malformed route. Routes must be of the format port:route"
INVALID_MONITOR_URL_MESSAGE = "Invalid monitor URL. Format is port:/path/to/endpoint"
NO_START_COMMAND_MESSAGE = "Unable to determine start command from image metadata."

Say = Callable[[str], None]


def _log_only(message: str) -> None:
    logger.info(message)


def _parse_port(token: str, message: str = INVALID_PORT_MESSAGE) -> int:
    token = token.strip()
    if not (token.isascii() and token.isdigit()):
        raise InvalidSyntaxError(message)
    port = int(token)
    if port > MAX_PORT:
        raise InvalidSyntaxError(message)
    return port


def resolve_exposed_ports(
    ports_spec: str,
    metadata: ImageMetadata,
    say: Say = _log_only,
) -> list[int]:
    """
    Resolve the ports exposed on the container.

    Args:
        ports_spec: Comma-delimited explicit port list ("" when not given)
        metadata: Image metadata
        say: Sink for informational messages

    Returns:
        Unique ports in numeric ascending order

    Raises:
        InvalidSyntaxError: If a token is not an integer in 0-65535
    """
    if ports_spec:
        return sorted({_parse_port(token) for token in ports_spec.split(",")})

    if metadata.exposed_ports:
        ports = sorted(set(metadata.exposed_ports))
        say(
            "No port specified, using exposed ports from the image metadata.\n"
            f"\tExposed Ports: {', '.join(str(p) for p in ports)}"
        )
        return ports

    say(f"No port specified, image metadata did not contain exposed ports. Defaulting to {DEFAULT_PORT}.")
    return [DEFAULT_PORT]


def resolve_monitor_config(
    exposed_ports: Sequence[int],
    monitor_port: int = 0,
    no_monitor: bool = False,
    monitor_url: str = "",
    monitor_timeout: float = 1.0,
) -> MonitorConfig:
    """
    Resolve the health-check configuration.

    Args:
        exposed_ports: Resolved exposed ports
        monitor_port: Explicit port to monitor (0 = pick automatically)
        no_monitor: Disable health checks entirely
        monitor_url: "port:/path" spec for an HTTP check
        monitor_timeout: Per-check timeout in seconds

    Returns:
        MonitorConfig

    Raises:
        InvalidSyntaxError: If monitor_url is malformed
        MonitorPortNotExposedError: If the chosen port is not exposed
    """
    if no_monitor:
        return MonitorConfig.disabled()

    if monitor_url:
        port_part, sep, path = monitor_url.partition(":")
        if not sep or not path.startswith("/") or ":" in path:
            raise InvalidSyntaxError(INVALID_MONITOR_URL_MESSAGE)
        port = _parse_port(port_part, INVALID_MONITOR_URL_MESSAGE)
        if port not in exposed_ports:
            raise MonitorPortNotExposedError(MONITOR_PORT_NOT_EXPOSED_MESSAGE)
        return MonitorConfig(
            method=MonitorMethod.URL,
            port=port,
            url_path=path,
            timeout=monitor_timeout,
        )

    if monitor_port:
        if monitor_port not in exposed_ports:
            raise MonitorPortNotExposedError(MONITOR_PORT_NOT_EXPOSED_MESSAGE)
        port = monitor_port
    elif exposed_ports:
        port = min(exposed_ports)
    else:
        return MonitorConfig.disabled()

    return MonitorConfig(method=MonitorMethod.PORT, port=port, timeout=monitor_timeout)


def resolve_working_dir(
    working_dir: str,
    metadata: ImageMetadata,
    say: Say = _log_only,
) -> str:
    """Explicit flag, then image WORKDIR, then "/"."""
    if working_dir:
        return working_dir
    if metadata.working_dir:
        say(f"No working directory specified, using working directory from the image metadata: {metadata.working_dir}")
        return metadata.working_dir
    return DEFAULT_WORKING_DIR


def resolve_start_command(
    explicit: Sequence[str],
    metadata: ImageMetadata,
    say: Say = _log_only,
) -> tuple[str, list[str]]:
    """
    Resolve the start command and its arguments.

    Args:
        explicit: Tokens given after "--" (empty when not given)
        metadata: Image metadata

    Returns:
        (command, args)

    Raises:
        BadImageError: If neither source yields a command
    """
    if explicit:
        return explicit[0], list(explicit[1:])

    if not metadata.start_command:
        raise BadImageError(NO_START_COMMAND_MESSAGE)

    say(
        "No start command specified, using start command from the image metadata.\n"
        f"\tStart command: {' '.join(metadata.start_command)}"
    )
    return metadata.start_command[0], list(metadata.start_command[1:])


def parse_route_overrides(routes_spec: str) -> list[RouteOverride]:
    """
    Parse "80:web,8080:api" into RouteOverrides.

    Raises:
        InvalidSyntaxError: If an entry is not port:hostname
    """
    overrides: list[RouteOverride] = []
    for entry in routes_spec.split(","):
        entry = entry.strip()
        if not entry:
            continue
        port_part, sep, hostname = entry.partition(":")
        if not sep or not hostname or ":" in hostname:
            raise InvalidSyntaxError(MALFORMED_ROUTE_MESSAGE)
        port = _parse_port(port_part, MALFORMED_ROUTE_MESSAGE)
        overrides.append(RouteOverride(port=port, hostname_prefix=hostname))
    return overrides


def build_app_environment(
    env_flags: Sequence[str],
    app_name: str,
    lookup: Optional[Mapping[str, str]] = None,
) -> dict[str, str]:
    """
    Build the container environment from --env flags.

    "KEY=VALUE" sets KEY. A bare "KEY" (or "KEY=") takes its value from the
    caller's environment. PROCESS_GUID defaults to the app name.
    """
    if lookup is None:
        lookup = os.environ
    environment: dict[str, str] = {}
    for pair in env_flags:
        name, _, value = pair.partition("=")
        name = name.strip()
        if not name:
            raise InvalidSyntaxError(f"Invalid environment variable: {pair!r}")
        if value == "":
            value = lookup.get(name, "")
        environment[name] = value
    environment.setdefault("PROCESS_GUID", app_name)
    return environment
