from typing import List, Protocol, Sequence

from core.contracts.models import (
    BranchInfo,
    CommitSummary,
    ContentEntry,
    RepoFile,
    RepoSummary,
    TreeEntry,
)


class ObjectStoreClient(Protocol):
    """Blob/tree/commit/ref primitives of a remote content-addressed repository."""

    async def get_branch_head(self, repo: str, branch: str) -> str:
        """Returns the commit sha the branch points at (NotFoundError for an unknown repo or branch)."""
        ...

    async def get_commit_tree(self, repo: str, commit_sha: str) -> str:
        ...

    async def create_blob(self, repo: str, encoded_content: str) -> str:
        """Stores base64-encoded content and returns the blob sha."""
        ...

    async def create_tree(self, repo: str, base_tree_sha: str, entries: Sequence[TreeEntry]) -> str:
        """Creates a tree with the entries merged over the base tree."""
        ...

    async def create_commit(self, repo: str, message: str, tree_sha: str, parent_sha: str) -> str:
        ...

    async def update_ref(self, repo: str, branch: str, new_sha: str, expected_old_sha: str) -> None:
        """
        Moves the branch to new_sha only if it still points at expected_old_sha.

        Raises:
            ConflictError: If the branch moved.
            RefUpdateAmbiguousError: If the outcome of the update is unknown.
        """
        ...

    async def get_files(self, repo: str, path: str = "", branch: str = "main") -> List[RepoFile]:
        ...

    async def list_contents(self, repo: str, path: str = "", branch: str = "main") -> List[ContentEntry]:
        """Directory listing (files and subdirectories) at path, or the single entry path names."""
        ...

    async def get_readme(self, repo: str, branch: str = "main") -> RepoFile:
        ...

    async def list_commits(self, repo: str, branch: str = "main", limit: int = 30) -> List[CommitSummary]:
        """Most recent commits reachable from the branch, newest first."""
        ...

    async def get_branch(self, repo: str, branch: str) -> BranchInfo:
        ...

    async def list_repos(self) -> List[RepoSummary]:
        """Repositories of the configured owner."""
        ...

    async def aclose(self) -> None:
        ...
