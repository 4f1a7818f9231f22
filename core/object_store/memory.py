import hashlib
import itertools
import posixpath
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Union

from config.models import ObjectStoreConfig
from core.contracts.models import (
    BranchInfo,
    CommitSummary,
    ContentEntry,
    RepoFile,
    RepoSummary,
    TreeEntry,
)
from core.contracts.object_store import ObjectStoreClient
from core.registry import object_store_registry
from utils import codec
from utils.errors import ConflictError, NotFoundError, ValidationError


def git_object_sha(kind: str, data: bytes) -> str:
    """SHA-1 over a git-style object header and payload."""
    return hashlib.sha1(f"{kind} {len(data)}\0".encode("ascii") + data).hexdigest()


@dataclass
class _Commit:
    tree: str
    parents: List[str]
    message: str


@dataclass
class _Repository:
    default_branch: str = "main"
    blobs: Dict[str, bytes] = field(default_factory=dict)
    trees: Dict[str, Dict[str, str]] = field(default_factory=dict)  # sha -> {path: blob sha}
    commits: Dict[str, _Commit] = field(default_factory=dict)
    refs: Dict[str, str] = field(default_factory=dict)  # branch -> commit sha


@object_store_registry.register("memory")
class MemoryObjectStore(ObjectStoreClient):
    """
    An in-process, content-addressed object store for local development and tests.

    Objects are immutable and keyed by the hash of their content; trees are
    flat path -> blob mappings. Ref updates are compare-and-swap.
    """

    def __init__(self, config: Optional[ObjectStoreConfig] = None):
        self.config = config or ObjectStoreConfig(provider="memory")
        self._repos: Dict[str, _Repository] = {}
        self._serial = itertools.count(1)

    async def aclose(self) -> None:
        pass

    def _repo(self, repo: str) -> _Repository:
        found = self._repos.get(repo)
        if found is None and "/" in repo:
            found = self._repos.get(repo.rsplit("/", 1)[1])
        if found is None:
            raise NotFoundError(f"Repository '{repo}' not found", reason="repo_not_found")
        return found

    def _store_tree(self, repository: _Repository, files: Mapping[str, str]) -> str:
        listing = "\n".join(f"100644 blob {sha}\t{path}" for path, sha in sorted(files.items()))
        sha = git_object_sha("tree", codec.utf8_bytes(listing))
        repository.trees.setdefault(sha, dict(files))
        return sha

    def _store_commit(self, repository: _Repository, message: str, tree_sha: str, parents: List[str]) -> str:
        # The serial stands in for the author timestamp git would record.
        body = f"tree {tree_sha}\n" + "".join(f"parent {p}\n" for p in parents)
        body += f"serial {next(self._serial)}\n\n{message}"
        sha = git_object_sha("commit", codec.utf8_bytes(body))
        repository.commits[sha] = _Commit(tree=tree_sha, parents=list(parents), message=message)
        return sha

    def create_repo(
        self,
        name: str,
        files: Optional[Mapping[str, Union[str, bytes]]] = None,
        branch: str = "main",
    ) -> str:
        """Creates a repository whose branch holds one root commit with the given files; returns its sha."""
        if name in self._repos:
            raise ValidationError(f"Repository '{name}' already exists", reason="repo_exists")
        repository = _Repository(default_branch=branch)
        self._repos[name] = repository
        blob_shas = {}
        for path, content in (files or {}).items():
            data = content if isinstance(content, bytes) else codec.utf8_bytes(content)
            blob_sha = git_object_sha("blob", data)
            repository.blobs[blob_sha] = data
            blob_shas[path] = blob_sha
        tree_sha = self._store_tree(repository, blob_shas)
        head = self._store_commit(repository, "Initial commit", tree_sha, [])
        repository.refs[branch] = head
        return head

    def _head(self, repo: str, repository: _Repository, branch: str) -> str:
        head = repository.refs.get(branch)
        if head is None:
            raise NotFoundError(f"Branch '{branch}' not found in '{repo}'", reason="branch_not_found")
        return head

    def _tree_of(self, repo: str, repository: _Repository, branch: str) -> Dict[str, str]:
        head = self._head(repo, repository, branch)
        return repository.trees[repository.commits[head].tree]

    def _file(self, repository: _Repository, path: str, blob_sha: str) -> RepoFile:
        return RepoFile(path=path, content=codec.to_text(repository.blobs[blob_sha]))

    def read_file(self, repo: str, branch: str, path: str) -> Optional[str]:
        repository = self._repo(repo)
        blob_sha = self._tree_of(repo, repository, branch).get(path)
        return codec.to_text(repository.blobs[blob_sha]) if blob_sha else None

    def list_paths(self, repo: str, branch: str) -> List[str]:
        repository = self._repo(repo)
        return sorted(self._tree_of(repo, repository, branch))

    def commit_parents(self, repo: str, commit_sha: str) -> List[str]:
        return list(self._repo(repo).commits[commit_sha].parents)

    async def get_branch_head(self, repo: str, branch: str) -> str:
        return self._head(repo, self._repo(repo), branch)

    async def get_commit_tree(self, repo: str, commit_sha: str) -> str:
        commit = self._repo(repo).commits.get(commit_sha)
        if commit is None:
            raise NotFoundError(f"Commit {commit_sha} not found in '{repo}'")
        return commit.tree

    async def create_blob(self, repo: str, encoded_content: str) -> str:
        repository = self._repo(repo)
        data = codec.decode_bytes(encoded_content)
        sha = git_object_sha("blob", data)
        repository.blobs.setdefault(sha, data)
        return sha

    async def create_tree(self, repo: str, base_tree_sha: str, entries: Sequence[TreeEntry]) -> str:
        repository = self._repo(repo)
        base = repository.trees.get(base_tree_sha)
        if base is None:
            raise NotFoundError(f"Tree {base_tree_sha} not found in '{repo}'")
        files = dict(base)
        for entry in entries:
            if entry.sha not in repository.blobs:
                raise NotFoundError(f"Blob {entry.sha} not found in '{repo}'")
            files[entry.path] = entry.sha
        return self._store_tree(repository, files)

    async def create_commit(self, repo: str, message: str, tree_sha: str, parent_sha: str) -> str:
        repository = self._repo(repo)
        if tree_sha not in repository.trees:
            raise NotFoundError(f"Tree {tree_sha} not found in '{repo}'")
        if parent_sha not in repository.commits:
            raise NotFoundError(f"Commit {parent_sha} not found in '{repo}'")
        return self._store_commit(repository, message, tree_sha, [parent_sha])

    async def update_ref(self, repo: str, branch: str, new_sha: str, expected_old_sha: str) -> None:
        repository = self._repo(repo)
        current = self._head(repo, repository, branch)
        if current != expected_old_sha:
            raise ConflictError(f"Branch '{branch}' of '{repo}' moved from {expected_old_sha} to {current}")
        if new_sha not in repository.commits:
            raise NotFoundError(f"Commit {new_sha} not found in '{repo}'")
        repository.refs[branch] = new_sha

    async def get_files(self, repo: str, path: str = "", branch: str = "main") -> List[RepoFile]:
        repository = self._repo(repo)
        tree = self._tree_of(repo, repository, branch)
        path = path.strip("/")
        if path in tree:
            return [self._file(repository, path, tree[path])]

        files = [
            self._file(repository, p, sha)
            for p, sha in sorted(tree.items())
            if posixpath.dirname(p) == path
        ]
        if not files and path and not any(p.startswith(path + "/") for p in tree):
            raise NotFoundError(f"Path '{path}' not found in '{repo}'@{branch}")
        return files

    async def list_contents(self, repo: str, path: str = "", branch: str = "main") -> List[ContentEntry]:
        repository = self._repo(repo)
        tree = self._tree_of(repo, repository, branch)
        path = path.strip("/")
        if path in tree:
            sha = tree[path]
            return [ContentEntry(
                name=posixpath.basename(path), path=path, type="file", size=len(repository.blobs[sha]), sha=sha,
            )]

        prefix = path + "/" if path else ""
        entries: Dict[str, ContentEntry] = {}
        for p, sha in tree.items():
            if not p.startswith(prefix):
                continue
            name, _, rest = p[len(prefix):].partition("/")
            if rest:
                entries.setdefault(name, ContentEntry(name=name, path=prefix + name, type="dir"))
            else:
                entries[name] = ContentEntry(
                    name=name, path=p, type="file", size=len(repository.blobs[sha]), sha=sha,
                )
        if not entries and path:
            raise NotFoundError(f"Path '{path}' not found in '{repo}'@{branch}")
        return [entries[name] for name in sorted(entries)]

    async def get_readme(self, repo: str, branch: str = "main") -> RepoFile:
        repository = self._repo(repo)
        tree = self._tree_of(repo, repository, branch)
        candidates = sorted(
            p for p in tree
            if "/" not in p and (p.lower() == "readme" or p.lower().startswith("readme."))
        )
        if not candidates:
            raise NotFoundError(f"No README in '{repo}'@{branch}", reason="readme_not_found")
        return self._file(repository, candidates[0], tree[candidates[0]])

    async def list_commits(self, repo: str, branch: str = "main", limit: int = 30) -> List[CommitSummary]:
        repository = self._repo(repo)
        sha: Optional[str] = self._head(repo, repository, branch)
        commits: List[CommitSummary] = []
        while sha is not None and len(commits) < limit:
            commit = repository.commits[sha]
            commits.append(CommitSummary(sha=sha, message=commit.message, parents=list(commit.parents)))
            sha = commit.parents[0] if commit.parents else None
        return commits

    async def get_branch(self, repo: str, branch: str) -> BranchInfo:
        repository = self._repo(repo)
        return BranchInfo(name=branch, commit_sha=self._head(repo, repository, branch))

    async def list_repos(self) -> List[RepoSummary]:
        owner = self.config.owner
        return [
            RepoSummary(
                name=name,
                full_name=f"{owner}/{name}" if owner else name,
                default_branch=repository.default_branch,
            )
            for name, repository in sorted(self._repos.items())
        ]
