import logging
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Generic, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Provider(Generic[T]):
    name: str
    model_class: Type[T]


def get_providers(provider_type: Type[T], entrypoint_group: str) -> dict[str, Provider[T]]:
    raw_providers = entry_points(group=entrypoint_group)

    all_providers: dict[str, Provider[T]] = {}
    for raw_provider in raw_providers:
        try:
            provider_class = raw_provider.load()
        except ImportError as e:
            # e.g. aws providers without the `aws` extra installed
            logger.warning(f"Provider {raw_provider.name} could not be loaded: {e}")
            continue

        # check that provider_class is subclass of provider
        if not isinstance(provider_class, type) or not issubclass(provider_class, provider_type):
            logger.warning(f"Provider {raw_provider.name} is not a subclass of {provider_type}")
            continue

        all_providers[raw_provider.name] = Provider(raw_provider.name, provider_class)

    return all_providers
