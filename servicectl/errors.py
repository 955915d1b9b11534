"""
Error classes for servicectl.

Errors are grouped by who can fix them:
- InvalidSyntaxError: malformed user input (bad ports, route or monitor spec)
- CommandFailedError: well-formed input that failed a business rule or a
  remote step (monitor port not exposed, app creation failed)
- BadImageError: the image could not be inspected or has no start command
- ReadinessTimeoutError: the app did not become healthy in time
- UnexpectedError: environment failure or implementation defect
  (blob store I/O, runtime lookup, unknown service type)

Components raise these errors. The orchestrator catches them at its boundary
and records a ProvisioningOutcome; the CLI maps the failure kind to an exit
code. Errors are exceptions, not values.
"""

from enum import Enum, IntEnum


class ExitCode(IntEnum):
    """Process exit status per failure class."""
    SUCCESS = 0
    INVALID_SYNTAX = 2
    COMMAND_FAILED = 3
    BAD_IMAGE = 4
    TIMED_OUT = 5
    UNEXPECTED = 70


class FailureKind(str, Enum):
    """Terminal failure classification for a provisioning attempt."""
    INVALID_SYNTAX = "invalid_syntax"
    COMMAND_FAILED = "command_failed"
    BAD_IMAGE = "bad_image"
    TIMED_OUT = "timed_out"
    UNEXPECTED = "unexpected"

    @property
    def exit_code(self) -> ExitCode:
        return _EXIT_CODES[self]

    @property
    def user_correctable(self) -> bool:
        return self is not FailureKind.UNEXPECTED


_EXIT_CODES = {
    FailureKind.INVALID_SYNTAX: ExitCode.INVALID_SYNTAX,
    FailureKind.COMMAND_FAILED: ExitCode.COMMAND_FAILED,
    FailureKind.BAD_IMAGE: ExitCode.BAD_IMAGE,
    FailureKind.TIMED_OUT: ExitCode.TIMED_OUT,
    FailureKind.UNEXPECTED: ExitCode.UNEXPECTED,
}


class ServicectlError(Exception):
    """Base exception for servicectl."""
    kind: FailureKind = FailureKind.UNEXPECTED

    @property
    def exit_code(self) -> ExitCode:
        return self.kind.exit_code


class InvalidSyntaxError(ServicectlError):
    """
    Malformed or missing user input.

    Examples:
    - Port list token that is not an integer in 0-65535
    - Monitor URL not of the form port:/path
    - Route spec not of the form port:hostname

    No remote state has been touched when this is raised.
    """
    kind = FailureKind.INVALID_SYNTAX


class CommandFailedError(ServicectlError):
    """
    Well-formed input that could not be carried out.

    Covers business-rule violations the user can correct as well as
    remote steps that reported failure.
    """
    kind = FailureKind.COMMAND_FAILED


class MonitorPortNotExposedError(CommandFailedError):
    """The requested monitor port is not among the exposed ports."""
    pass


class ServiceExistsError(CommandFailedError):
    """A descriptor for this service name is already published."""
    pass


class ImageReferenceError(CommandFailedError):
    """The image reference cannot be turned into a root filesystem URI."""
    pass


class AppCreationError(CommandFailedError):
    """The application runtime rejected the create request."""
    pass


class PlacementError(CommandFailedError):
    """The platform could not place all requested instances."""
    pass


class BadImageError(ServicectlError):
    """
    The image could not be used.

    Examples:
    - Metadata fetch failed (unknown repository, registry unreachable)
    - No start command given and none declared by the image
    """
    kind = FailureKind.BAD_IMAGE


class ReadinessTimeoutError(ServicectlError):
    """
    The app did not report the requested instance count in time.

    The app is not removed; it keeps starting in the background.
    """
    kind = FailureKind.TIMED_OUT

    def __init__(self, message: str, running: int = 0, desired: int = 0):
        super().__init__(message)
        self.running = running
        self.desired = desired


class UnexpectedError(ServicectlError):
    """
    Environment failure or implementation defect.

    These are not user errors. The CLI logs them with a traceback and
    exits with ExitCode.UNEXPECTED.
    """
    kind = FailureKind.UNEXPECTED


class DescriptorStoreError(UnexpectedError):
    """Blob store list/upload/delete failed."""
    pass


class AppRuntimeError(UnexpectedError):
    """The application runtime failed outside of app creation."""
    pass


class RuntimeInfoError(UnexpectedError):
    """Instance address lookup failed after the app was reported ready."""
    pass


class UnknownServiceTypeError(UnexpectedError):
    """No registry entry for the requested service type."""

    def __init__(self, service_type: str, known: list[str] | None = None):
        known = known or []
        super().__init__(
            f"Unknown service type: {service_type}. Known types: {', '.join(known) or 'none'}"
        )
        self.service_type = service_type
        self.known = known


class FactoryError(UnexpectedError):
    """A configured client factory could not be loaded or called."""
    pass
