"""
CLI interface for servicectl.

Provides commands to create, list, bind and remove backing services.

Services are launched as apps through the configured runtime adapters and
published as descriptors in the blob store (services/<name>.json). Exit codes
follow servicectl.errors.ExitCode; click usage errors exit with
INVALID_SYNTAX (2).
"""

import logging
from typing import NoReturn

import click

from servicectl import __version__
from servicectl.errors import ExitCode, FactoryError, ServicectlError
from servicectl.utils import parse_duration

logger = logging.getLogger(__name__)

START_COMMAND_META = "servicectl.start_command"


class DurationParamType(click.ParamType):
    """Click parameter accepting 500ms, 10s, 2m, 1h or bare seconds."""
    name = "duration"

    def convert(self, value, param, ctx):
        if isinstance(value, float):
            return value
        try:
            return parse_duration(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


DURATION = DurationParamType()


class StartCommandCommand(click.Command):
    """
    Command that treats everything after "--" as the container start command.

    The tokens are stored in ctx.meta so they never mix with positionals.
    """

    def parse_args(self, ctx, args):
        if "--" in args:
            split = args.index("--")
            ctx.meta[START_COMMAND_META] = tuple(args[split + 1:])
            args = args[:split]
        else:
            ctx.meta[START_COMMAND_META] = ()
        return super().parse_args(ctx, args)


@click.group()
@click.version_option(version=__version__, prog_name="servicectl")
@click.pass_context
def main(ctx):
    """
    servicectl - Backing service provisioner.

    Launch postgres and mysql as apps and publish their connection URLs.
    """
    from servicectl.config import load_config
    from servicectl.utils import setup_logging

    ctx.ensure_object(dict)
    try:
        config = load_config()
    except Exception as e:
        # init runs without a config; other commands check ctx.obj["config"]
        ctx.obj["config_error"] = str(e)
        return

    ctx.obj["config"] = config
    setup_logging(
        config.get_log_file_path(),
        log_level=config.log_level,
        log_format=config.log_format,
        console_output=config.log_console,
    )


def _require_config(ctx):
    if "config" not in ctx.obj:
        click.echo(f"✗ Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}", err=True)
        click.echo("Run 'servicectl init' to create a configuration file.", err=True)
        raise SystemExit(int(ExitCode.UNEXPECTED))
    return ctx.obj["config"]


def _fail(error: ServicectlError) -> NoReturn:
    """Report a typed error and exit with its code."""
    if error.kind.user_correctable:
        click.echo(f"✗ {error}", err=True)
    else:
        logger.error(f"Internal or environment failure: {error}", exc_info=error)
        click.echo(f"✗ Internal or environment failure: {error}", err=True)
    raise SystemExit(int(error.exit_code))


def _build_store(config):
    from servicectl.clients import build_descriptor_store

    try:
        return build_descriptor_store(config)
    except ValueError as e:
        raise FactoryError(f"Cannot build blob store: {e}") from e


def _build_runtime(config):
    """AppRunner that is also an AppExaminer, from app_runner_factory."""
    from servicectl.clients import AppExaminer, AppRunner, build_client

    runtime = build_client(config.app_runner_factory, config, AppRunner, "app_runner_factory")
    if not isinstance(runtime, AppExaminer):
        raise FactoryError(
            f"Factory {config.app_runner_factory} returned {type(runtime).__name__}, "
            "which does not implement AppExaminer"
        )
    return runtime


def _build_fetcher(config):
    from servicectl.clients import ImageMetadataFetcher, build_client

    return build_client(
        config.metadata_fetcher_factory, config, ImageMetadataFetcher, "metadata_fetcher_factory"
    )


@main.command("init")
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
def init(force: bool):
    """Initialize servicectl configuration."""
    from servicectl.config import default_config_dict, get_servicectl_home
    import yaml

    home = get_servicectl_home()
    if not home.exists():
        home.mkdir(parents=True)

    cfg_path = home / "config.yaml"
    if cfg_path.exists() and not force:
        click.echo(f"Config already exists at {cfg_path}. Use --force to overwrite.", err=True)
        raise SystemExit(1)

    cfg_path.write_text(yaml.safe_dump(default_config_dict(home), sort_keys=False))

    env_path = home / ".env"
    if not env_path.exists():
        env_path.write_text("# SERVICECTL_BLOB_USERNAME=...\n# SERVICECTL_BLOB_PASSWORD=...\n")

    click.echo(f"Initialized servicectl config at {cfg_path}")
    click.echo("Set app_runner_factory and metadata_fetcher_factory before creating services.")


# =============================================================================
# Catalog Commands
# =============================================================================

@main.command("list-services")
@click.pass_context
def list_services_cmd(ctx):
    """List services with a published descriptor.

    Example:

        servicectl list-services
    """
    from servicectl.catalog import list_services

    config = _require_config(ctx)
    try:
        with _build_store(config) as store:
            names = list_services(store)
    except ServicectlError as e:
        _fail(e)

    if not names:
        click.echo("No services found.")
        return
    for name in names:
        click.echo(name)


@main.command("bind-service")
@click.argument("names", nargs=-1, metavar="APP_NAME SERVICE_NAME")
@click.pass_context
def bind_service_cmd(ctx, names: tuple[str, ...]):
    """Bind a service to an app.

    The service does not have to exist yet; the binding only records intent.

    Example:

        servicectl bind-service web db
    """
    from servicectl.catalog import bind_service

    if len(names) < 2:
        raise click.UsageError("APP_NAME and SERVICE_NAME are required")
    if len(names) > 2:
        raise click.UsageError(f"Unexpected extra arguments: {' '.join(names[2:])}")
    app_name, service_name = names

    config = _require_config(ctx)
    try:
        with _build_store(config) as store:
            bind_service(store, app_name, service_name)
    except ServicectlError as e:
        _fail(e)

    click.echo(f"✓ Bound {service_name} to {app_name}")


@main.command("remove-service")
@click.argument("service_name")
@click.pass_context
def remove_service_cmd(ctx, service_name: str):
    """Remove a service's app and its descriptor.

    Example:

        servicectl remove-service db
    """
    from servicectl.catalog import remove_service

    config = _require_config(ctx)
    try:
        with _build_store(config) as store:
            remove_service(_build_runtime(config), store, service_name)
    except ServicectlError as e:
        _fail(e)

    click.echo(f"✓ Removed {service_name}")


# =============================================================================
# create-service
# =============================================================================

@main.command("create-service", cls=StartCommandCommand)
@click.argument("positionals", nargs=-1, metavar="SERVICE_NAME IMAGE USER PASS [-- START_COMMAND ARGS...]")
@click.option("--type", "service_type", default=None,
              help="Service type (postgres, mysql). Defaults to the image's repository name")
@click.option("--ports", "-p", default="",
              help="Comma-separated ports the container listens on. Defaults to the image's exposed ports")
@click.option("--monitor-port", "-M", type=click.IntRange(0, 65535), default=0,
              help="Port to health-check. Defaults to the lowest exposed port")
@click.option("--monitor-url", "-U", default="",
              help="HTTP health-check as port:/path (e.g. 8080:/health)")
@click.option("--monitor-timeout", type=DURATION, default="1s", show_default=True,
              help="Timeout for each health check")
@click.option("--no-monitor", is_flag=True, help="Disable health checks")
@click.option("--routes", "-R", default="",
              help="Route overrides as port:hostname, comma-separated")
@click.option("--no-routes", is_flag=True, help="Register no routes")
@click.option("--working-dir", "-w", default="",
              help="Working directory. Defaults to the image's WORKDIR, then /")
@click.option("--run-as-root", "-r", is_flag=True, help="Run the container as root (privileged)")
@click.option("--env", "-e", "env", multiple=True,
              help="Environment variable KEY=VALUE; a bare KEY copies it from your environment")
@click.option("--cpu-weight", "-c", type=click.IntRange(1, 100), default=100, show_default=True,
              help="Relative CPU weight (1-100)")
@click.option("--memory-mb", "-m", type=click.IntRange(min=0), default=128, show_default=True,
              help="Memory limit in MB")
@click.option("--disk-mb", "-d", type=click.IntRange(min=0), default=0, show_default=True,
              help="Disk limit in MB")
@click.option("--instances", "-i", type=click.IntRange(min=1), default=1, show_default=True,
              help="Number of instances")
@click.option("--timeout", "-t", type=DURATION, default=None,
              help="How long to wait for instances to start. Defaults to default_timeout from config")
@click.pass_context
def create_service_cmd(
    ctx,
    positionals: tuple[str, ...],
    service_type: str | None,
    ports: str,
    monitor_port: int,
    monitor_url: str,
    monitor_timeout: float,
    no_monitor: bool,
    routes: str,
    no_routes: bool,
    working_dir: str,
    run_as_root: bool,
    env: tuple[str, ...],
    cpu_weight: int,
    memory_mb: int,
    disk_mb: int,
    instances: int,
    timeout: float | None,
):
    """Create a backing service.

    Launches IMAGE as app SERVICE_NAME, waits for it to start, then publishes
    its connection URL to services/SERVICE_NAME.json. USER and PASS become
    the service's credentials and the user is also the database name.

    Examples:

        servicectl create-service db myrepo/postgres alice s3cr3t

        servicectl cs cache mysql:5.7 app pw -p 3306 -t 5m

        servicectl cs db myrepo/postgres alice s3cr3t -- postgres -c fsync=off
    """
    from servicectl.orchestrator import ProvisioningOrchestrator
    from servicectl.schemas import ServiceCreationRequest

    if len(positionals) < 4:
        raise click.UsageError("SERVICE_NAME, IMAGE, USER and PASS are required")
    if len(positionals) > 4:
        raise click.UsageError("'--' Required before start command")
    name, image, user, password = positionals

    config = _require_config(ctx)

    request = ServiceCreationRequest(
        name=name,
        image=image,
        user=user,
        password=password,
        service_type=service_type,
        start_command=ctx.meta.get(START_COMMAND_META, ()),
        working_dir=working_dir,
        privileged=run_as_root,
        env=env,
        cpu_weight=cpu_weight,
        memory_mb=memory_mb,
        disk_mb=disk_mb,
        ports=ports,
        monitor_port=monitor_port,
        monitor_url=monitor_url,
        monitor_timeout=monitor_timeout,
        no_monitor=no_monitor,
        routes=routes,
        no_routes=no_routes,
        instances=instances,
        timeout=timeout if timeout is not None else config.default_timeout,
    )

    try:
        store = _build_store(config)
    except ServicectlError as e:
        _fail(e)

    with store:
        try:
            runtime = _build_runtime(config)
            fetcher = _build_fetcher(config)
        except ServicectlError as e:
            _fail(e)

        orchestrator = ProvisioningOrchestrator.from_config(
            config,
            metadata_fetcher=fetcher,
            app_runner=runtime,
            app_examiner=runtime,
            store=store,
            say=click.echo,
        )
        outcome = orchestrator.provision(request)

    if outcome.success:
        click.echo(f"✓ {name} created")
        return

    if outcome.failure_kind.user_correctable:
        click.echo(f"✗ {outcome.message}", err=True)
    else:
        click.echo(f"✗ Internal or environment failure: {outcome.message}", err=True)
        click.echo(f"See {config.get_log_file_path()} for details.", err=True)
    if outcome.app_created:
        click.echo(f"App {name} was created and has not been removed.", err=True)
    raise SystemExit(outcome.exit_code)


main.add_command(list_services_cmd, name="lss")
main.add_command(bind_service_cmd, name="bs")
main.add_command(remove_service_cmd, name="rs")
main.add_command(create_service_cmd, name="cs")


if __name__ == "__main__":
    main()
