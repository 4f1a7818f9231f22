from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field


class RepoInfo(BaseModel):
    repo: str
    branch: str = "main"


class FileSnapshot(BaseModel):
    path: str
    content: str
    size: int
    added_at: datetime


class ContextSnapshot(BaseModel):
    context_id: str
    created_at: datetime
    files: List[FileSnapshot] = []
    file_count: int = 0
    repo_info: Optional[RepoInfo] = None


class SearchMatch(BaseModel):
    line: int
    content: str
    preview: str


class FileSearchResult(BaseModel):
    path: str
    matches: List[SearchMatch] = []


class SearchResult(BaseModel):
    query: str
    results: List[FileSearchResult] = []
    total_matches: int = 0
    files_scanned: int = 0


class CommitFile(BaseModel):
    path: str
    content: str = ""


class CommitRequest(BaseModel):
    repo: str
    branch: str = "main"
    files: List[CommitFile] = Field(default_factory=list)
    message: str

    def unique_files(self) -> List[Tuple[str, str]]:
        """(path, content) pairs with duplicate paths collapsed; the last occurrence wins."""
        by_path = {}
        for f in self.files:
            by_path[f.path] = f.content
        return list(by_path.items())


class TreeEntry(BaseModel):
    path: str
    mode: str = "100644"
    type: str = "blob"
    sha: str


class CommittedFile(BaseModel):
    path: str
    sha: str


class CommitResult(BaseModel):
    repo: str
    branch: str
    commit_sha: str
    tree_sha: str
    parent_sha: str
    message: str
    files: List[CommittedFile] = []


class RepoFile(BaseModel):
    path: str
    content: str


class ContentEntry(BaseModel):
    name: str
    path: str
    type: str
    size: int = 0
    sha: Optional[str] = None


class RepoSummary(BaseModel):
    name: str
    full_name: str
    default_branch: str = "main"
    private: bool = False
    description: Optional[str] = None


class CommitSummary(BaseModel):
    sha: str
    message: str
    parents: List[str] = []


class BranchInfo(BaseModel):
    name: str
    commit_sha: str
    protected: bool = False
