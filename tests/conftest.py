import pytest
from servicectl.clients import InMemoryDescriptorStore
from servicectl.config import ServicectlConfig
from servicectl.schemas import (
    AppStatus,
    ImageMetadata,
    InstanceInfo,
    InstanceState,
    PortMapping,
)


class FakeMetadataFetcher:
    """Returns fixed metadata, or raises `error`."""

    def __init__(self, metadata=None, error=None):
        self.metadata = metadata or ImageMetadata()
        self.error = error
        self.calls = []

    def fetch_metadata(self, image):
        self.calls.append(image)
        if self.error:
            raise self.error
        return self.metadata


class FakeRuntime:
    """
    AppRunner + AppExaminer double.

    Instances become running on poll number `ready_after_polls`; None means
    never. Every instance gets `ip` and host ports counting up from `host_port`.
    """

    def __init__(self, ip="10.0.0.5", host_port=61001, ready_after_polls=1):
        self.ip = ip
        self.host_port = host_port
        self.ready_after_polls = ready_after_polls
        self.placement_error = False
        self.create_error = None
        self.remove_error = None
        self.status_error = None
        self.created = []
        self.removed = []
        self.polls = 0

    def create_app(self, config):
        if self.create_error:
            raise self.create_error
        self.created.append(config)

    def remove_app(self, name):
        if self.remove_error:
            raise self.remove_error
        self.removed.append(name)

    def _desired(self, name):
        for config in self.created:
            if config.name == name:
                return config.instances
        return 0

    def running_instances(self, name):
        self.polls += 1
        if self.ready_after_polls is None or self.polls < self.ready_after_polls:
            return 0, self.placement_error
        return self._desired(name), self.placement_error

    def app_status(self, name):
        if self.status_error:
            raise self.status_error
        config = next(c for c in self.created if c.name == name)
        ports = tuple(
            PortMapping(container_port=p, host_port=self.host_port + i)
            for i, p in enumerate(config.exposed_ports)
        )
        instances = tuple(
            InstanceInfo(index=i, state=InstanceState.RUNNING, ip=self.ip, ports=ports)
            for i in range(config.instances)
        )
        return AppStatus(name=name, desired_instances=config.instances, actual_instances=instances)


class FakeClock:
    """Monotonic clock that only moves when sleep() is called."""

    def __init__(self, start=0.0):
        self.now = start
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def test_config(tmp_path):
    return ServicectlConfig(
        domain="test.example.io",
        blob_store={"type": "memory"},
        default_timeout=10.0,
        poll_interval=1.0,
        log_file=str(tmp_path / "logs" / "servicectl.log"),
        home=tmp_path,
    )


@pytest.fixture
def postgres_metadata():
    return ImageMetadata(
        exposed_ports=(5432,),
        working_dir="/var/lib/postgresql",
        start_command=("docker-entrypoint.sh", "postgres"),
    )


@pytest.fixture
def fetcher(postgres_metadata):
    return FakeMetadataFetcher(postgres_metadata)


@pytest.fixture
def runtime():
    return FakeRuntime()


@pytest.fixture
def store():
    return InMemoryDescriptorStore()


@pytest.fixture
def clock():
    return FakeClock()


from unittest.mock import patch

@pytest.fixture(autouse=True)
def mock_load_config(request, test_config):
    # Don't patch for config tests
    if "test_config" in request.module.__name__ or "test_cli_config" in request.module.__name__:
        yield
        return

    with patch("servicectl.config.load_config", return_value=test_config):
        yield
