"""
ProvisioningOrchestrator - the create-service workflow.

Turns a ServiceCreationRequest into a running, monitored, routed app and a
published ServiceDescriptor.

States, in strict order (each gated by the previous one succeeding):

    start -> metadata_fetched -> config_derived -> route_resolved
          -> app_created -> instances_ready -> descriptor_published -> done

Any step may instead end in `failed`, carrying a FailureKind. The workflow is
not resumable and never rolls back: a failure after app_created leaves the
app running on the platform, and the outcome says so (app_created=True).

Execution flow:
0. Look up the service type (no network) and refuse names that already
   have a published descriptor
1. Fetch image metadata                      -> bad_image on failure
2. Resolve exposed ports and monitor config  -> invalid_syntax / command_failed
3. Resolve working dir and start command     -> bad_image if no command
4. Resolve routes and the root filesystem    -> invalid_syntax / command_failed
5. Build the environment (registry vars override --env)
6. Create the app with the health-check setup action -> command_failed
7. Wait for the instances                    -> timed_out / command_failed
8. Look up the first running instance's address -> unexpected
9. Render and upload the descriptor          -> unexpected

Components raise typed errors; this module catches them at its boundary and
records a ProvisioningOutcome. The CLI maps the outcome to an exit code.
"""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from servicectl import derivation
from servicectl.clients.descriptor_store import DescriptorStore
from servicectl.clients.runtime import AppExaminer, AppRunner, ImageMetadataFetcher
from servicectl.config import DEFAULT_HEALTHCHECK_URL
from servicectl.errors import (
    AppCreationError,
    BadImageError,
    DescriptorStoreError,
    FailureKind,
    ReadinessTimeoutError,
    RuntimeInfoError,
    ServiceExistsError,
    ServicectlError,
)
from servicectl.image_names import format_root_fs
from servicectl.readiness import DEFAULT_POLL_INTERVAL, wait_for_instances
from servicectl.schemas import (
    DownloadAction,
    EffectiveAppConfig,
    ImageMetadata,
    MonitorConfig,
    ServiceCreationRequest,
    ServiceDescriptor,
    descriptor_key,
)
from servicectl.service_types import ServiceType, ServiceTypeRegistry, infer_service_type

if TYPE_CHECKING:
    from servicectl.config import ServicectlConfig

logger = logging.getLogger(__name__)

HEALTHCHECK_DESTINATION = "/tmp"


class ProvisioningState(str, Enum):
    """Workflow states, in order."""
    START = "start"
    METADATA_FETCHED = "metadata_fetched"
    CONFIG_DERIVED = "config_derived"
    ROUTE_RESOLVED = "route_resolved"
    APP_CREATED = "app_created"
    INSTANCES_READY = "instances_ready"
    DESCRIPTOR_PUBLISHED = "descriptor_published"
    DONE = "done"
    FAILED = "failed"


STATE_ORDER = (
    ProvisioningState.START,
    ProvisioningState.METADATA_FETCHED,
    ProvisioningState.CONFIG_DERIVED,
    ProvisioningState.ROUTE_RESOLVED,
    ProvisioningState.APP_CREATED,
    ProvisioningState.INSTANCES_READY,
    ProvisioningState.DESCRIPTOR_PUBLISHED,
    ProvisioningState.DONE,
)


@dataclass
class ProvisioningOutcome:
    """
    Result of one provisioning attempt.

    Attributes:
        service_name: Service being provisioned
        state: Terminal state (done or failed)
        last_state: Last state reached successfully
        history: Every state entered, in order
        failure_kind: Why it failed (None on success)
        message: Human-readable failure message ("" on success)
        error: The exception that ended the workflow
        app_created: True once the runtime accepted the app (it is never rolled back)
        app_config: Config sent to the runtime, once derived
        descriptor: Descriptor published, on success
    """
    service_name: str
    state: ProvisioningState = ProvisioningState.START
    last_state: ProvisioningState = ProvisioningState.START
    history: list[ProvisioningState] = field(default_factory=lambda: [ProvisioningState.START])
    failure_kind: Optional[FailureKind] = None
    message: str = ""
    error: Optional[BaseException] = None
    app_created: bool = False
    app_config: Optional[EffectiveAppConfig] = None
    descriptor: Optional[ServiceDescriptor] = None

    @property
    def success(self) -> bool:
        return self.state == ProvisioningState.DONE

    @property
    def exit_code(self) -> int:
        if self.failure_kind is None:
            return 0
        return int(self.failure_kind.exit_code)

    def advance(self, new_state: ProvisioningState) -> None:
        """Move to the next state. States cannot be skipped or revisited."""
        if self.state == ProvisioningState.FAILED:
            raise RuntimeError(f"Cannot advance failed provisioning of {self.service_name}")
        expected = STATE_ORDER[STATE_ORDER.index(self.state) + 1]
        if new_state != expected:
            raise RuntimeError(
                f"Invalid transition {self.state.value} -> {new_state.value} "
                f"(expected {expected.value})"
            )
        self.state = new_state
        self.last_state = new_state
        self.history.append(new_state)

    def fail(self, error: BaseException) -> None:
        """Enter the terminal failed state."""
        self.failure_kind = error.kind if isinstance(error, ServicectlError) else FailureKind.UNEXPECTED
        self.message = str(error)
        self.error = error
        self.state = ProvisioningState.FAILED
        self.history.append(ProvisioningState.FAILED)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "service_name": self.service_name,
            "state": self.state.value,
            "last_state": self.last_state.value,
            "history": [s.value for s in self.history],
            "app_created": self.app_created,
        }
        if self.failure_kind is not None:
            result["failure_kind"] = self.failure_kind.value
            result["message"] = self.message
        if self.descriptor is not None:
            result["descriptor_key"] = descriptor_key(self.service_name)
        return result


class ProvisioningOrchestrator:
    """
    Drives one create-service transaction end to end.

    Holds no state between provision() calls.

    Usage:
        orchestrator = ProvisioningOrchestrator(
            metadata_fetcher=fetcher,
            app_runner=runtime,
            app_examiner=runtime,
            store=store,
        )
        outcome = orchestrator.provision(request)
        if not outcome.success:
            sys.exit(outcome.exit_code)
    """

    def __init__(
        self,
        metadata_fetcher: ImageMetadataFetcher,
        app_runner: AppRunner,
        app_examiner: AppExaminer,
        store: DescriptorStore,
        registry: Optional[ServiceTypeRegistry] = None,
        *,
        domain: str = "",
        healthcheck_url: str = DEFAULT_HEALTHCHECK_URL,
        healthcheck_user: str = "vcap",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        say: Optional[Callable[[str], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._fetcher = metadata_fetcher
        self._runner = app_runner
        self._examiner = app_examiner
        self._store = store
        self._registry = registry or ServiceTypeRegistry.create_default()
        self._domain = domain
        self._setup = DownloadAction(
            from_url=healthcheck_url,
            to=HEALTHCHECK_DESTINATION,
            user=healthcheck_user,
        )
        self._poll_interval = poll_interval
        self._say = say or logger.info
        self._clock = clock
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        config: "ServicectlConfig",
        metadata_fetcher: ImageMetadataFetcher,
        app_runner: AppRunner,
        app_examiner: AppExaminer,
        store: DescriptorStore,
        say: Optional[Callable[[str], None]] = None,
    ) -> "ProvisioningOrchestrator":
        return cls(
            metadata_fetcher=metadata_fetcher,
            app_runner=app_runner,
            app_examiner=app_examiner,
            store=store,
            registry=ServiceTypeRegistry.create_default(config.service_types),
            domain=config.domain,
            healthcheck_url=config.healthcheck_url,
            healthcheck_user=config.healthcheck_user,
            poll_interval=config.poll_interval,
            say=say,
        )

    def provision(self, request: ServiceCreationRequest) -> ProvisioningOutcome:
        """
        Run the workflow for one request.

        Never raises for workflow failures; they are recorded on the outcome.
        """
        outcome = ProvisioningOutcome(service_name=request.name)
        logger.info(
            f"Provisioning {request.name} from {request.image}",
            extra={"service": request.name, "state": outcome.state.value},
        )
        try:
            self._run(request, outcome)
        except Exception as e:
            outcome.fail(e)
            self._log_failure(outcome)
        else:
            logger.info(
                f"Provisioned {request.name}",
                extra={"service": request.name, "state": outcome.state.value},
            )
        return outcome

    def _run(self, request: ServiceCreationRequest, outcome: ProvisioningOutcome) -> None:
        service_type = self._registry.get(request.service_type or infer_service_type(request.image))
        self._ensure_unpublished(request.name)

        metadata = self._fetch_metadata(request.image)
        outcome.advance(ProvisioningState.METADATA_FETCHED)

        exposed_ports = derivation.resolve_exposed_ports(request.ports, metadata, say=self._say)
        monitor = derivation.resolve_monitor_config(
            exposed_ports,
            monitor_port=request.monitor_port,
            no_monitor=request.no_monitor,
            monitor_url=request.monitor_url,
            monitor_timeout=request.monitor_timeout,
        )
        working_dir = derivation.resolve_working_dir(request.working_dir, metadata, say=self._say)
        self._announce_monitor(monitor)
        start_command, app_args = derivation.resolve_start_command(
            request.start_command, metadata, say=self._say
        )
        outcome.advance(ProvisioningState.CONFIG_DERIVED)

        route_overrides = derivation.parse_route_overrides(request.routes)
        root_fs = format_root_fs(request.image)
        outcome.advance(ProvisioningState.ROUTE_RESOLVED)

        environment = derivation.build_app_environment(request.env, request.name)
        environment.update(service_type.environment(request.user, request.password))

        app_config = EffectiveAppConfig(
            name=request.name,
            root_fs=root_fs,
            start_command=start_command,
            app_args=tuple(app_args),
            environment=environment,
            privileged=request.privileged,
            monitor=monitor,
            instances=request.instances,
            cpu_weight=request.cpu_weight,
            memory_mb=request.memory_mb,
            disk_mb=request.disk_mb,
            exposed_ports=tuple(exposed_ports),
            working_dir=working_dir,
            route_overrides=tuple(route_overrides),
            no_routes=request.no_routes,
            timeout=request.timeout,
            setup=self._setup,
        )
        outcome.app_config = app_config

        self._create_app(app_config)
        outcome.app_created = True
        outcome.advance(ProvisioningState.APP_CREATED)

        self._wait_until_running(app_config)
        outcome.advance(ProvisioningState.INSTANCES_READY)
        self._say(f"Service {request.name} running.")

        host, port = self._instance_address(app_config)
        descriptor = service_type.render_descriptor(request.user, request.password, host, port)
        self._publish(request.name, descriptor)
        outcome.descriptor = descriptor
        outcome.advance(ProvisioningState.DESCRIPTOR_PUBLISHED)
        self._say(f"Service {request.name} registered.")

        outcome.advance(ProvisioningState.DONE)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _ensure_unpublished(self, name: str) -> None:
        key = descriptor_key(name)
        try:
            exists = self._store.exists(key)
        except DescriptorStoreError:
            raise
        except Exception as e:
            raise DescriptorStoreError(f"Failed to check {key}: {e}") from e
        if exists:
            raise ServiceExistsError(
                f"Service {name} already exists. Remove it with 'servicectl remove-service {name}' first."
            )

    def _fetch_metadata(self, image: str) -> ImageMetadata:
        try:
            return self._fetcher.fetch_metadata(image)
        except Exception as e:
            raise BadImageError(f"Error fetching image metadata: {e}") from e

    def _announce_monitor(self, monitor: MonitorConfig) -> None:
        if monitor.enabled:
            self._say(f"Monitoring the app on port {monitor.port}...")
        else:
            self._say("No ports will be monitored.")

    def _create_app(self, app_config: EffectiveAppConfig) -> None:
        self._say(f"Creating App: {app_config.name}")
        try:
            self._runner.create_app(app_config)
        except Exception as e:
            raise AppCreationError(f"Error creating app: {e}") from e

    def _wait_until_running(self, app_config: EffectiveAppConfig) -> None:
        try:
            wait_for_instances(
                self._examiner,
                app_config.name,
                desired=app_config.instances,
                timeout=app_config.timeout,
                poll_interval=self._poll_interval,
                clock=self._clock,
                sleep=self._sleep,
            )
        except ReadinessTimeoutError:
            self._say("Timed out waiting for the container to come up.")
            self._say("This typically happens because docker layers can take time to download.")
            self._say(f"{app_config.name} is still starting in the background.")
            self._say(f"Run 'servicectl remove-service {app_config.name}' to start over.")
            raise

        self._say(f"{app_config.name} is now running.")
        if app_config.no_routes:
            return
        self._say("App is reachable at:")
        for url in self._route_urls(app_config):
            self._say(url)

    def _route_urls(self, app_config: EffectiveAppConfig) -> list[str]:
        suffix = f".{self._domain}" if self._domain else ""
        if app_config.route_overrides:
            return [f"http://{r.hostname_prefix}{suffix}" for r in app_config.route_overrides]
        return [f"http://{app_config.name}{suffix}"]

    def _instance_address(self, app_config: EffectiveAppConfig) -> tuple[str, int]:
        """IP and host port of the first running instance."""
        try:
            status = self._examiner.app_status(app_config.name)
        except Exception as e:
            raise RuntimeInfoError(f"Failed to look up {app_config.name} after it started: {e}") from e

        running = sorted(status.running_instances, key=lambda i: i.index)
        if not running:
            raise RuntimeInfoError(f"{app_config.name} reported ready but has no running instances")

        instance = running[0]
        container_port = app_config.monitor.port if app_config.monitor.enabled else app_config.exposed_ports[0]
        host_port = instance.host_port_for(container_port)
        if not instance.ip or host_port is None:
            raise RuntimeInfoError(
                f"Instance {instance.index} of {app_config.name} has no address or port mapping"
            )
        return instance.ip, host_port

    def _publish(self, name: str, descriptor: ServiceDescriptor) -> None:
        key = descriptor_key(name)
        try:
            self._store.upload(key, descriptor.to_json().encode("utf-8"))
        except Exception as e:
            raise DescriptorStoreError(
                f"Service {name} is running but its descriptor could not be published to {key}: {e}. "
                f"Retry, or run 'servicectl remove-service {name}' to remove the app."
            ) from e

    def _log_failure(self, outcome: ProvisioningOutcome) -> None:
        extra = {
            "service": outcome.service_name,
            "state": outcome.last_state.value,
            "failure_kind": outcome.failure_kind.value if outcome.failure_kind else None,
        }
        if not outcome.failure_kind.user_correctable:
            logger.error(
                f"Provisioning {outcome.service_name} hit an internal or environment failure "
                f"after {outcome.last_state.value}: {outcome.message}",
                exc_info=outcome.error,
                extra=extra,
            )
        else:
            logger.warning(
                f"Provisioning {outcome.service_name} failed after {outcome.last_state.value}: "
                f"{outcome.message}",
                extra=extra,
            )
