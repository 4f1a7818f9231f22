import asyncio
import itertools
import secrets
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import AsyncIterator, Callable, Dict, List, Optional

from config.models import ContextStoreConfig
from core.contracts.models import (
    ContextSnapshot,
    FileSearchResult,
    FileSnapshot,
    RepoInfo,
    SearchMatch,
    SearchResult,
)
from core.contracts.store import ContextStore
from core.registry import context_store_registry
from utils import codec
from utils.errors import NotFoundError, ValidationError
from utils.logger import logger


def _to_datetime(timestamp: float) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


@dataclass
class _StoredFile:
    encoded: str
    size: int
    added_at: float


@dataclass
class _ContextRecord:
    context_id: str
    created_at: float
    files: Dict[str, _StoredFile] = field(default_factory=dict)
    repo_info: Optional[RepoInfo] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@context_store_registry.register("memory")
class InMemoryContextStore(ContextStore):
    """
    A volatile, process-lifetime Context Store.

    Each context carries its own lock, so operations on one context are
    serialized while different contexts never contend. Eviction takes the
    same lock, so it never observes a half-applied mutation.
    """

    def __init__(self, config: Optional[ContextStoreConfig] = None, clock: Callable[[], float] = time.time):
        """
        Args:
            config: Retention, preview and default branch settings.
            clock: Returns the current time as epoch seconds.
        """
        self.config = config or ContextStoreConfig()
        self._clock = clock
        self._contexts: Dict[str, _ContextRecord] = {}
        self._sequence = itertools.count(1)

    def __len__(self) -> int:
        return len(self._contexts)

    def context_ids(self) -> List[str]:
        return list(self._contexts)

    def _new_id(self) -> str:
        # The sequence alone is unique for the process lifetime; the suffix is fixed-width.
        return f"ctx_{int(self._clock() * 1000)}_{next(self._sequence):x}{secrets.token_hex(3)}"

    def _get_record(self, context_id: str) -> _ContextRecord:
        record = self._contexts.get(context_id)
        if record is None:
            raise NotFoundError(f"Context '{context_id}' not found", reason="context_not_found")
        return record

    @asynccontextmanager
    async def _locked(self, context_id: str) -> AsyncIterator[_ContextRecord]:
        record = self._get_record(context_id)
        async with record.lock:
            # Evicted while we were waiting for the lock.
            if self._contexts.get(context_id) is not record:
                raise NotFoundError(f"Context '{context_id}' not found", reason="context_not_found")
            yield record

    async def create(self) -> str:
        context_id = self._new_id()
        self._contexts[context_id] = _ContextRecord(context_id=context_id, created_at=self._clock())
        logger.info(f"Created context {context_id}")
        return context_id

    async def add_file(
        self,
        context_id: str,
        path: str,
        content: str,
        repo: Optional[str] = None,
        branch: Optional[str] = None,
    ) -> None:
        async with self._locked(context_id) as record:
            if not path or not path.strip():
                raise ValidationError("File path must not be empty", reason="missing_path")
            record.files[path] = _StoredFile(
                encoded=codec.encode(content),
                size=codec.byte_length(content),
                added_at=self._clock(),
            )
            if repo:
                record.repo_info = RepoInfo(repo=repo, branch=branch or self.config.default_branch)
        logger.debug(f"Added '{path}' to context {context_id}")

    async def remove_file(self, context_id: str, path: str) -> None:
        async with self._locked(context_id) as record:
            if path not in record.files:
                raise NotFoundError(f"File '{path}' not found in context '{context_id}'", reason="path_not_found")
            del record.files[path]
        logger.debug(f"Removed '{path}' from context {context_id}")

    async def get_context(self, context_id: str) -> ContextSnapshot:
        async with self._locked(context_id) as record:
            files = [
                FileSnapshot(
                    path=path,
                    content=codec.decode(stored.encoded),
                    size=stored.size,
                    added_at=_to_datetime(stored.added_at),
                )
                for path, stored in record.files.items()
            ]
            return ContextSnapshot(
                context_id=record.context_id,
                created_at=_to_datetime(record.created_at),
                files=files,
                file_count=len(files),
                repo_info=record.repo_info.model_copy() if record.repo_info else None,
            )

    def _preview(self, line: str) -> str:
        text = line.strip()
        limit = self.config.preview_length
        if len(text) <= limit:
            return text
        return text[:limit] + "..."

    async def search(self, context_id: str, query: str) -> SearchResult:
        """
        Case-insensitive substring search over every line of every file.

        Only files with at least one matching line appear in ``results``;
        ``files_scanned`` counts all files in the context.
        """
        async with self._locked(context_id) as record:
            if not query:
                raise ValidationError("Search query must not be empty", reason="missing_query")

            needle = query.lower()
            results: List[FileSearchResult] = []
            total = 0
            for path, stored in record.files.items():
                lines = codec.decode(stored.encoded).split("\n")
                matches = [
                    SearchMatch(line=number, content=line, preview=self._preview(line))
                    for number, line in enumerate(lines, start=1)
                    if needle in line.lower()
                ]
                if matches:
                    results.append(FileSearchResult(path=path, matches=matches))
                    total += len(matches)

            return SearchResult(
                query=query,
                results=results,
                total_matches=total,
                files_scanned=len(record.files),
            )

    async def evict_expired(self, now: Optional[float] = None) -> List[str]:
        now = self._clock() if now is None else now
        retention = self.config.retention_sec
        expired = [r for r in list(self._contexts.values()) if now - r.created_at > retention]

        evicted: List[str] = []
        for record in expired:
            async with record.lock:
                if self._contexts.get(record.context_id) is record:
                    del self._contexts[record.context_id]
                    evicted.append(record.context_id)

        if evicted:
            logger.info(f"Evicted {len(evicted)} expired context(s); {len(self._contexts)} remaining")
        return evicted
