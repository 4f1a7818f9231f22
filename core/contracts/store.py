from typing import List, Optional, Protocol

from core.contracts.models import ContextSnapshot, SearchResult


class ContextStore(Protocol):
    """
    A registry of named working sets of files.

    Operations on one context id are serialized by the store; operations on
    different ids proceed independently. Every operation on an unknown (or
    evicted) id raises NotFoundError.
    """

    async def create(self) -> str:
        ...

    async def add_file(
        self,
        context_id: str,
        path: str,
        content: str,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> None:
        ...

    async def remove_file(self, context_id: str, path: str) -> None:
        ...

    async def get_context(self, context_id: str) -> ContextSnapshot:
        ...

    async def search(self, context_id: str, query: str) -> SearchResult:
        ...

    async def evict_expired(self, now: Optional[float] = None) -> List[str]:
        """Deletes every context older than the retention window and returns their ids."""
        ...

    def __len__(self) -> int:
        ...
