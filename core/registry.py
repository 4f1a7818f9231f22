from typing import Any, Callable, Dict, Iterator, KeysView, Type, TypeVar

T = TypeVar("T")


class Registry:
    """Maps backend names (as used in the config) to implementation classes."""

    def __init__(self, name: str):
        """
        Args:
            name: The kind of backend held by the registry (e.g. "context store").
        """
        self._name = name
        self._backends: Dict[str, Type[Any]] = {}

    def register(self, name: str) -> Callable[[Type[T]], Type[T]]:
        """
        Class decorator registering a backend under ``name``.

        Raises:
            ValueError: If the name is already taken.
        """
        def decorator(cls: Type[T]) -> Type[T]:
            if name in self._backends:
                raise ValueError(f"Backend '{name}' already registered in the {self._name} registry.")
            self._backends[name] = cls
            return cls
        return decorator

    def get(self, name: str) -> Type[Any]:
        """
        Raises:
            KeyError: If no backend is registered under ``name``.
        """
        try:
            return self._backends[name]
        except KeyError:
            raise KeyError(f"Backend '{name}' not found in the {self._name} registry.") from None

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        return self.get(name)(*args, **kwargs)

    def __contains__(self, name: str) -> bool:
        return name in self._backends

    def __iter__(self) -> Iterator[str]:
        return iter(self._backends)

    def keys(self) -> KeysView[str]:
        return self._backends.keys()


context_store_registry = Registry("context store")
object_store_registry = Registry("object store")
