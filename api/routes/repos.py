"""
Read-only repository endpoints, passed through to the object store.

Endpoints:
    POST /v1/github_files - decoded files at a repository path
    GET  /repos           - repositories of the configured owner
    GET  /commits         - recent commits of a branch
    GET  /branch          - branch info
    GET  /readme          - decoded README, as plain text
    GET  /files           - directory listing at a repository path
"""
from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import PlainTextResponse

from api.dependencies import get_object_store_client
from api.schemas import RepoFilesRequest, RepoFilesResponse
from core.contracts.models import BranchInfo, CommitSummary, ContentEntry, RepoSummary
from core.contracts.object_store import ObjectStoreClient

router = APIRouter(tags=["repository"])


@router.post("/v1/github_files", response_model=RepoFilesResponse)
async def github_files(
    body: RepoFilesRequest,
    client: ObjectStoreClient = Depends(get_object_store_client),
) -> RepoFilesResponse:
    """Get files from a repository path."""
    return RepoFilesResponse(files=await client.get_files(body.repo, body.path, body.branch))


@router.get("/repos", response_model=List[RepoSummary])
async def list_repos(client: ObjectStoreClient = Depends(get_object_store_client)) -> List[RepoSummary]:
    """List repositories."""
    return await client.list_repos()


@router.get("/commits", response_model=List[CommitSummary])
async def list_commits(
    repo: str = Query(..., alias="repoName"),
    branch: str = Query("main"),
    limit: int = Query(30, ge=1, le=100),
    client: ObjectStoreClient = Depends(get_object_store_client),
) -> List[CommitSummary]:
    """List commits."""
    return await client.list_commits(repo, branch, limit)


@router.get("/branch", response_model=BranchInfo)
async def get_branch(
    repo: str = Query(..., alias="repoName"),
    branch: str = Query(..., alias="branchName"),
    client: ObjectStoreClient = Depends(get_object_store_client),
) -> BranchInfo:
    """Get branch info."""
    return await client.get_branch(repo, branch)


@router.get("/readme", response_class=PlainTextResponse)
async def get_readme(
    repo: str = Query(..., alias="repoName"),
    branch: str = Query("main"),
    client: ObjectStoreClient = Depends(get_object_store_client),
) -> PlainTextResponse:
    """Read the README file."""
    readme = await client.get_readme(repo, branch)
    return PlainTextResponse(readme.content)


@router.get("/files", response_model=List[ContentEntry])
async def list_files(
    repo: str = Query(..., alias="repoName"),
    path: str = Query(""),
    branch: str = Query("main"),
    client: ObjectStoreClient = Depends(get_object_store_client),
) -> List[ContentEntry]:
    """List files in a repository path."""
    return await client.list_contents(repo, path, branch)
