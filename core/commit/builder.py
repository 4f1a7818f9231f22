import asyncio
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

from core.contracts.models import CommitFile, CommitRequest, CommitResult, CommittedFile, TreeEntry
from core.contracts.object_store import ObjectStoreClient
from utils import codec
from utils.errors import ContextCommitException, InternalError, ValidationError
from utils.logger import logger


class CommitState(str, Enum):
    RESOLVING = "resolving"
    BLOBS_PENDING = "blobs_pending"
    TREE_BUILDING = "tree_building"
    COMMIT_PENDING = "commit_pending"
    REF_UPDATING = "ref_updating"
    COMMITTED = "committed"
    ABORTED = "aborted"


_TRANSITIONS: Dict[CommitState, FrozenSet[CommitState]] = {
    CommitState.RESOLVING: frozenset({CommitState.BLOBS_PENDING, CommitState.ABORTED}),
    CommitState.BLOBS_PENDING: frozenset({CommitState.TREE_BUILDING, CommitState.ABORTED}),
    CommitState.TREE_BUILDING: frozenset({CommitState.COMMIT_PENDING, CommitState.ABORTED}),
    CommitState.COMMIT_PENDING: frozenset({CommitState.REF_UPDATING, CommitState.ABORTED}),
    CommitState.REF_UPDATING: frozenset({CommitState.COMMITTED, CommitState.ABORTED}),
    CommitState.COMMITTED: frozenset(),
    CommitState.ABORTED: frozenset(),
}


def validate_request(request: CommitRequest) -> List[Tuple[str, str]]:
    """
    Checks a request before any object-store call and returns its files,
    duplicate paths collapsed (last occurrence wins).
    """
    if not request.repo or not request.repo.strip():
        raise ValidationError("Repository name is required", reason="missing_repo")
    if not request.branch or not request.branch.strip():
        raise ValidationError("Branch name is required", reason="missing_branch")
    if not request.message or not request.message.strip():
        raise ValidationError("Commit message is required", reason="missing_message")
    if not request.files:
        raise ValidationError("At least one file is required", reason="empty_file_list")
    for f in request.files:
        if not f.path or not f.path.strip():
            raise ValidationError("File path must not be empty", reason="missing_path")
        if f.path.startswith("/"):
            raise ValidationError(f"File path '{f.path}' must be relative to the repository root", reason="invalid_path")
    return request.unique_files()


class CommitAttempt:
    """
    One run of the blob -> tree -> commit -> ref-update sequence.

    An attempt ends in COMMITTED or ABORTED; neither can be left. Retrying
    means starting a new attempt, which re-resolves the branch head.
    """

    def __init__(self, client: ObjectStoreClient, request: CommitRequest):
        self.client = client
        self.request = request
        self.state = CommitState.RESOLVING
        self.history: List[CommitState] = [CommitState.RESOLVING]
        self.error: Optional[BaseException] = None
        self.head_sha: Optional[str] = None

    def _advance(self, state: CommitState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise InternalError(f"Illegal commit state transition {self.state.value} -> {state.value}")
        logger.debug(f"Commit to {self.request.repo}@{self.request.branch}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def _abort(self, error: BaseException) -> None:
        self.error = error
        if self.state not in (CommitState.COMMITTED, CommitState.ABORTED):
            self._advance(CommitState.ABORTED)

    async def run(self) -> CommitResult:
        if self.state is not CommitState.RESOLVING:
            raise InternalError(f"Commit attempt already {self.state.value}; start a new attempt")

        try:
            return await self._execute(validate_request(self.request))
        except ContextCommitException as e:
            self._abort(e)
            logger.warning(f"Commit to {self.request.repo}@{self.request.branch} aborted ({e.kind}): {e.detail}")
            raise
        except Exception as e:
            self._abort(e)
            logger.exception(f"Unexpected error while committing to {self.request.repo}@{self.request.branch}")
            raise InternalError(f"Unexpected error while committing: {e}") from e

    async def _execute(self, files: List[Tuple[str, str]]) -> CommitResult:
        repo, branch = self.request.repo, self.request.branch

        # 1-2. Resolve the branch head and its tree.
        head_sha = await self.client.get_branch_head(repo, branch)
        self.head_sha = head_sha
        base_tree_sha = await self.client.get_commit_tree(repo, head_sha)

        # 3. Blobs are independent of each other.
        self._advance(CommitState.BLOBS_PENDING)
        blob_shas = await asyncio.gather(
            *(self.client.create_blob(repo, codec.encode(content)) for _, content in files)
        )

        # 4. Entries are merged over the base tree by the backend.
        self._advance(CommitState.TREE_BUILDING)
        entries = [TreeEntry(path=path, sha=sha) for (path, _), sha in zip(files, blob_shas)]
        tree_sha = await self.client.create_tree(repo, base_tree_sha, entries)

        self._advance(CommitState.COMMIT_PENDING)
        commit_sha = await self.client.create_commit(repo, self.request.message, tree_sha, head_sha)

        # 6. Compare-and-swap against the head observed in step 1.
        self._advance(CommitState.REF_UPDATING)
        await self.client.update_ref(repo, branch, commit_sha, expected_old_sha=head_sha)
        self._advance(CommitState.COMMITTED)

        logger.success(f"Committed {len(entries)} file(s) to {repo}@{branch}: {commit_sha}")
        return CommitResult(
            repo=repo,
            branch=branch,
            commit_sha=commit_sha,
            tree_sha=tree_sha,
            parent_sha=head_sha,
            message=self.request.message,
            files=[CommittedFile(path=e.path, sha=e.sha) for e in entries],
        )


class AtomicCommitBuilder:
    """
    Turns in-memory file edits into exactly one new commit on a branch.

    The ref update is the only concurrency guard: if the branch moved since
    its head was resolved, the commit fails with a ConflictError and is not
    retried here, since only the caller knows whether re-running on the new
    head is safe.
    """

    def __init__(self, client: ObjectStoreClient):
        self.client = client

    def start(self, request: CommitRequest) -> CommitAttempt:
        return CommitAttempt(self.client, request)

    async def commit(self, request: CommitRequest) -> CommitResult:
        return await self.start(request).run()

    async def commit_file(self, repo: str, branch: str, path: str, content: str, message: str) -> CommitResult:
        request = CommitRequest(
            repo=repo,
            branch=branch,
            files=[CommitFile(path=path, content=content)],
            message=message,
        )
        return await self.commit(request)
