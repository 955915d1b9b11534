"""
Service catalog - list, bind and remove provisioned services.

Operates directly on the blob store key layout:
    services/<name>.json      one per provisioned service
    bindings/<app>-<service>  one per declared binding

None of these operations are transactional. remove_service removes the app
first and the descriptor second; if the second step fails the descriptor is
left behind and the error says so.
"""

import logging

from servicectl.clients.descriptor_store import DescriptorStore
from servicectl.clients.runtime import AppRunner
from servicectl.errors import AppRuntimeError, DescriptorStoreError
from servicectl.schemas import Binding, descriptor_key, service_name_from_key

logger = logging.getLogger(__name__)


def list_services(store: DescriptorStore) -> list[str]:
    """
    Names of all services with a published descriptor.

    Keys outside services/ (bindings, stray files) are ignored.

    Raises:
        DescriptorStoreError: If the store cannot be listed
    """
    names = []
    for key in store.list():
        name = service_name_from_key(key)
        if name is not None:
            names.append(name)
    return names


def bind_service(store: DescriptorStore, app_name: str, service_name: str) -> Binding:
    """
    Record that `app_name` should receive `service_name`'s credentials.

    Writes a zero-length marker. The service is not required to exist.
    """
    binding = Binding(app_name=app_name, service_name=service_name)
    store.upload(binding.key, b"")
    logger.info(f"Bound {service_name} to {app_name}", extra={"service": service_name})
    return binding


def remove_service(runner: AppRunner, store: DescriptorStore, name: str) -> None:
    """
    Remove a service's app, then its descriptor.

    Args:
        runner: App runtime
        store: Blob store holding the descriptor
        name: Service name

    Raises:
        AppRuntimeError: If the app could not be removed (descriptor untouched)
        DescriptorStoreError: If the app was removed but the descriptor was not
    """
    try:
        runner.remove_app(name)
    except Exception as e:
        raise AppRuntimeError(f"Failed to remove app {name}: {e}") from e
    logger.info(f"Removed app {name}", extra={"service": name})

    key = descriptor_key(name)
    try:
        store.delete(key)
    except Exception as e:
        raise DescriptorStoreError(
            f"App {name} was removed but its descriptor {key} could not be deleted "
            f"and is now orphaned: {e}"
        ) from e
    logger.info(f"Deleted descriptor {key}", extra={"service": name})
