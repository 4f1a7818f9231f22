from config.models import ContextStoreConfig, ObjectStoreConfig
from core.contracts.object_store import ObjectStoreClient
from core.contracts.store import ContextStore
from core.registry import context_store_registry, object_store_registry
from utils.errors import ConfigError

# Importing the backends registers them.
import core.context.memory_store  # noqa: F401
import core.object_store.github  # noqa: F401
import core.object_store.memory  # noqa: F401


def get_context_store(config: ContextStoreConfig) -> ContextStore:
    """
    Instantiates the Context Store backend named in the config.

    Raises:
        ConfigError: If the backend is unknown or fails to start.
    """
    try:
        return context_store_registry.create(config.backend, config=config)
    except KeyError:
        available = list(context_store_registry.keys())
        raise ConfigError(f"Unknown context store backend '{config.backend}'. Available backends: {available}")
    except Exception as e:
        raise ConfigError(f"Failed to create context store backend '{config.backend}': {e}") from e


def get_object_store(config: ObjectStoreConfig) -> ObjectStoreClient:
    """
    Instantiates the object store client named in the config.

    Raises:
        ConfigError: If the provider is unknown or fails to start.
    """
    try:
        return object_store_registry.create(config.provider, config=config)
    except KeyError:
        available = list(object_store_registry.keys())
        raise ConfigError(f"Unknown object store provider '{config.provider}'. Available providers: {available}")
    except Exception as e:
        raise ConfigError(f"Failed to create object store provider '{config.provider}': {e}") from e
