"""
Atomic commit endpoints.

Endpoints:
    POST /v1/push_files     - commit several files in one commit
    PUT  /commit            - commit or update a single file
    POST /v1/commit_context - commit every file staged in a context
"""
from fastapi import APIRouter, Depends

from api.dependencies import Services, get_builder, get_services
from api.schemas import CommitContextRequest, CommitFileRequest, PushFilesRequest
from core.commit.builder import AtomicCommitBuilder
from core.contracts.models import CommitFile, CommitRequest, CommitResult
from utils.errors import ValidationError

router = APIRouter(tags=["commit"])


@router.post("/v1/push_files", response_model=CommitResult)
async def push_files(body: PushFilesRequest, builder: AtomicCommitBuilder = Depends(get_builder)) -> CommitResult:
    """Push several files as one atomic commit."""
    request = CommitRequest(repo=body.repo, branch=body.branch, files=body.files, message=body.message)
    return await builder.commit(request)


@router.put("/commit", response_model=CommitResult)
async def commit_file(body: CommitFileRequest, builder: AtomicCommitBuilder = Depends(get_builder)) -> CommitResult:
    """Commit or update a file."""
    return await builder.commit_file(body.repo, body.branch, body.path, body.content, body.message)


@router.post("/v1/commit_context", response_model=CommitResult)
async def commit_context(body: CommitContextRequest, services: Services = Depends(get_services)) -> CommitResult:
    """Commit the files of a context, by default to the repository it was staged for."""
    snapshot = await services.store.get_context(body.context_id)
    repo_info = snapshot.repo_info

    repo = body.repo or (repo_info.repo if repo_info else None)
    if not repo:
        raise ValidationError(
            f"No repository given and context '{body.context_id}' has none recorded",
            reason="missing_repo",
        )
    branch = body.branch or (repo_info.branch if repo_info else services.config.context_store.default_branch)

    request = CommitRequest(
        repo=repo,
        branch=branch,
        files=[CommitFile(path=f.path, content=f.content) for f in snapshot.files],
        message=body.message,
    )
    return await services.builder.commit(request)
