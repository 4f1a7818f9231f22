import pytest

from config.models import ContextStoreConfig
from core.commit.builder import AtomicCommitBuilder
from core.context.memory_store import InMemoryContextStore
from core.object_store.memory import MemoryObjectStore

T0 = 1_700_000_000.0


class FakeClock:
    """A controllable replacement for time.time."""

    def __init__(self, start: float = T0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return InMemoryContextStore(ContextStoreConfig(preview_length=20), clock=clock)


@pytest.fixture
def object_store():
    """A memory object store with repository 'demo' whose main branch holds two files."""
    memory = MemoryObjectStore()
    memory.create_repo("demo", files={"a.txt": "original\n", "docs/guide.md": "# Guide\n"})
    return memory


@pytest.fixture
def builder(object_store):
    return AtomicCommitBuilder(object_store)
