"""
Runtime client protocols - the boundary to the orchestration platform.

servicectl does not talk to the platform directly. It depends on three
protocols, implemented by whatever adapter the deployment configures:
1. ImageMetadataFetcher: reads EXPOSE/WORKDIR/ENTRYPOINT from the registry
2. AppRunner: creates and removes apps
3. AppExaminer: reports instance counts and per-instance addresses

Adapters are provided by factory functions named in config.yaml as
"module:function". Each factory is called with the loaded ServicectlConfig.
"""

import importlib
from typing import TYPE_CHECKING, Any, Callable, Protocol, Sequence, runtime_checkable

from servicectl.errors import FactoryError
from servicectl.schemas import AppStatus, EffectiveAppConfig, ImageMetadata

if TYPE_CHECKING:
    from servicectl.config import ServicectlConfig


@runtime_checkable
class ImageMetadataFetcher(Protocol):
    """Fetches metadata for an image reference."""

    def fetch_metadata(self, image: str) -> ImageMetadata:
        """
        Fetch metadata for `image`.

        Raises:
            Exception: Any failure; the orchestrator reports it as a bad image
        """
        ...


@runtime_checkable
class AppRunner(Protocol):
    """Creates and removes apps on the platform."""

    def create_app(self, config: EffectiveAppConfig) -> None:
        """Submit the app. Returns once the platform accepted it."""
        ...

    def remove_app(self, name: str) -> None:
        """Remove the app and all its instances."""
        ...


@runtime_checkable
class AppExaminer(Protocol):
    """Reads app state from the platform."""

    def running_instances(self, name: str) -> tuple[int, bool]:
        """
        Returns:
            (number of running instances, whether any instance failed placement)
        """
        ...

    def app_status(self, name: str) -> AppStatus:
        """Full status including instance addresses and port mappings."""
        ...


def _is_allowed_module(module_path: str, allowlist: Sequence[str]) -> bool:
    """Check if module is in allowlist (exact match or submodule)."""
    for allowed in allowlist:
        if module_path == allowed or module_path.startswith(allowed + "."):
            return True
    return False


def load_factory(factory_path: str, allowlist: Sequence[str]) -> Callable[..., Any]:
    """
    Load a client factory by "module:function" path.

    Args:
        factory_path: e.g. "lattice_adapters.factories:build_app_runner"
        allowlist: Modules factories may come from (exact or submodule)

    Returns:
        The factory callable

    Raises:
        FactoryError: If the path is malformed, not allowlisted, missing or not callable
    """
    if ":" not in factory_path:
        raise FactoryError(f"Factory path must be 'module:function', got: {factory_path}")

    module_path, func_name = factory_path.rsplit(":", 1)

    if not _is_allowed_module(module_path, allowlist):
        raise FactoryError(
            f"Factory module '{module_path}' not in allowlist. "
            f"Allowed: {list(allowlist)}"
        )

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise FactoryError(f"Cannot import factory module '{module_path}': {e}") from e

    factory = getattr(module, func_name, None)
    if factory is None:
        raise FactoryError(f"Factory function '{func_name}' not found in '{module_path}'")
    if not callable(factory):
        raise FactoryError(f"{factory_path} is not callable")

    return factory


def build_client(factory_path: str | None, config: "ServicectlConfig", protocol: type, role: str) -> Any:
    """
    Build a runtime client from a configured factory and check its protocol.

    Args:
        factory_path: "module:function" from config (None when unset)
        config: Loaded config, passed to the factory
        protocol: Protocol the result must satisfy
        role: Config key name, used in error messages

    Raises:
        FactoryError: If unset, unloadable, failing, or returning the wrong type
    """
    if not factory_path:
        raise FactoryError(f"No {role} configured. Set '{role}' in config.yaml.")

    factory = load_factory(factory_path, config.factory_allowlist)
    try:
        client = factory(config)
    except Exception as e:
        raise FactoryError(f"Factory {factory_path} failed: {e}") from e

    if not isinstance(client, protocol):
        raise FactoryError(
            f"Factory {factory_path} returned {type(client).__name__}, "
            f"which does not implement {protocol.__name__}"
        )
    return client
