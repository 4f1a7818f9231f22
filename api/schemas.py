"""Request and response bodies of the HTTP API."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from core.contracts.models import CommitFile, RepoFile


class InitResponse(BaseModel):
    context_id: str


class AckResponse(BaseModel):
    success: bool = True


class AddFileRequest(BaseModel):
    context_id: str
    path: str
    content: str
    repo: Optional[str] = None
    branch: Optional[str] = None


class RemoveFileRequest(BaseModel):
    context_id: str
    path: str


class SearchRequest(BaseModel):
    context_id: str
    query: str


class PushFilesRequest(BaseModel):
    repo: str
    branch: str = "main"
    files: List[CommitFile]
    message: str


class CommitFileRequest(BaseModel):
    """Single-file commit. ``repoName`` is accepted for compatibility with older clients."""
    model_config = ConfigDict(populate_by_name=True)

    repo: str = Field(alias="repoName")
    branch: str = "main"
    path: str
    content: str = ""
    message: str


class CommitContextRequest(BaseModel):
    context_id: str
    message: str
    repo: Optional[str] = None
    branch: Optional[str] = None


class RepoFilesRequest(BaseModel):
    repo: str
    branch: str = "main"
    path: str = ""


class RepoFilesResponse(BaseModel):
    files: List[RepoFile] = []


class HealthResponse(BaseModel):
    status: str = "healthy"
    uptime_seconds: int
    contexts: int
    object_store: str
