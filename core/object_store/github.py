import asyncio
import json
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx

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
from utils.errors import (
    ConflictError,
    NotFoundError,
    RefUpdateAmbiguousError,
    UpstreamError,
    ValidationError,
)
from utils.logger import logger


@object_store_registry.register("github")
class GitHubObjectStore(ObjectStoreClient):
    """
    Object store backed by the GitHub Git Data API.

    Repositories are addressed as ``name`` (under the configured owner) or
    ``owner/name``.
    """

    def __init__(self, config: ObjectStoreConfig):
        self.config = config
        headers = {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        token = config.token or os.getenv(config.token_env_var)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        else:
            logger.warning(
                f"Environment variable '{config.token_env_var}' not set. "
                "Making unauthenticated requests to the GitHub API."
            )

        self._client = httpx.AsyncClient(
            base_url=config.api_url,
            headers=headers,
            timeout=config.timeout_sec,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def _repo_url(self, repo: str) -> str:
        if "/" in repo:
            owner, name = repo.split("/", 1)
        elif self.config.owner:
            owner, name = self.config.owner, repo
        else:
            raise ValidationError(
                f"No owner for repository '{repo}'. Use 'owner/{repo}' or set object_store.owner.",
                reason="missing_owner",
            )
        return f"/repos/{owner}/{name}"

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json().get("message", response.text)
        except (json.JSONDecodeError, AttributeError, ValueError):
            return response.text

    async def _request(
        self,
        method: str,
        url: str,
        *,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        ambiguous: bool = False,
    ) -> Any:
        """
        Sends one API request and returns the decoded JSON body.

        With ``ambiguous`` set, failures after the request may have reached
        GitHub raise RefUpdateAmbiguousError instead of UpstreamError.
        """
        try:
            response = await self._client.request(method, url, json=payload, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            if ambiguous and not isinstance(e, httpx.ConnectTimeout):
                raise RefUpdateAmbiguousError(
                    f"Timed out waiting for GitHub to apply {method} {url}; re-read the branch before retrying"
                ) from e
            raise UpstreamError(f"Request to GitHub timed out: {method} {url}", reason="upstream_timeout") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            message = self._error_message(e.response)
            if status == 404:
                raise NotFoundError(f"GitHub resource not found: {url} ({message})") from e
            raise UpstreamError(f"GitHub API error ({status}): {message}", upstream_status=status) from e
        except httpx.RequestError as e:
            if ambiguous and not isinstance(e, httpx.ConnectError):
                raise RefUpdateAmbiguousError(
                    f"Connection to GitHub lost during {method} {url}; re-read the branch before retrying"
                ) from e
            raise UpstreamError(f"An unexpected network error occurred: {e}", reason="upstream_unreachable") from e

    async def _repo_exists(self, repo: str) -> bool:
        try:
            await self._request("GET", self._repo_url(repo))
            return True
        except NotFoundError:
            return False

    async def _not_found(self, repo: str, detail: str, reason: str) -> NotFoundError:
        """Tells a missing repository apart from something missing inside it."""
        if await self._repo_exists(repo):
            return NotFoundError(detail, reason=reason)
        return NotFoundError(f"Repository '{repo}' not found", reason="repo_not_found")

    async def get_branch_head(self, repo: str, branch: str) -> str:
        try:
            data = await self._request("GET", f"{self._repo_url(repo)}/git/ref/heads/{branch}")
        except NotFoundError:
            raise await self._not_found(repo, f"Branch '{branch}' not found in '{repo}'", "branch_not_found")
        except UpstreamError as e:
            if e.upstream_status == 409:  # "Git Repository is empty."
                raise NotFoundError(f"Branch '{branch}' not found in empty repository '{repo}'", reason="branch_not_found") from e
            raise
        return data["object"]["sha"]

    async def get_commit_tree(self, repo: str, commit_sha: str) -> str:
        data = await self._request("GET", f"{self._repo_url(repo)}/git/commits/{commit_sha}")
        return data["tree"]["sha"]

    async def create_blob(self, repo: str, encoded_content: str) -> str:
        data = await self._request(
            "POST",
            f"{self._repo_url(repo)}/git/blobs",
            payload={"content": encoded_content, "encoding": "base64"},
        )
        return data["sha"]

    async def create_tree(self, repo: str, base_tree_sha: str, entries: Sequence[TreeEntry]) -> str:
        data = await self._request(
            "POST",
            f"{self._repo_url(repo)}/git/trees",
            payload={"base_tree": base_tree_sha, "tree": [e.model_dump() for e in entries]},
        )
        return data["sha"]

    async def create_commit(self, repo: str, message: str, tree_sha: str, parent_sha: str) -> str:
        data = await self._request(
            "POST",
            f"{self._repo_url(repo)}/git/commits",
            payload={"message": message, "tree": tree_sha, "parents": [parent_sha]},
        )
        return data["sha"]

    async def update_ref(self, repo: str, branch: str, new_sha: str, expected_old_sha: str) -> None:
        # No conditional ref update on GitHub: re-read, then a non-forced PATCH,
        # which only accepts a fast forward (new_sha's parent is expected_old_sha).
        current_sha = await self.get_branch_head(repo, branch)
        if current_sha != expected_old_sha:
            raise ConflictError(
                f"Branch '{branch}' of '{repo}' moved from {expected_old_sha} to {current_sha}"
            )

        try:
            await self._request(
                "PATCH",
                f"{self._repo_url(repo)}/git/refs/heads/{branch}",
                payload={"sha": new_sha, "force": False},
                ambiguous=True,
            )
        except UpstreamError as e:
            if e.upstream_status in (409, 422):
                raise ConflictError(
                    f"Branch '{branch}' of '{repo}' moved during the update: {e.detail}"
                ) from e
            raise

    def _decode_item(self, item: Dict[str, Any]) -> RepoFile:
        if item.get("encoding") != "base64" or "content" not in item:
            raise UpstreamError(f"GitHub returned no inline content for '{item.get('path')}'", reason="content_unavailable")
        return RepoFile(path=item["path"], content=codec.decode(item["content"]))

    async def _get_file(self, repo: str, path: str, branch: str) -> RepoFile:
        item = await self._request("GET", f"{self._repo_url(repo)}/contents/{path}", params={"ref": branch})
        return self._decode_item(item)

    async def get_files(self, repo: str, path: str = "", branch: str = "main") -> List[RepoFile]:
        """
        Fetches the files at ``path``: every file of a directory (not
        recursive), or the single file the path names.
        """
        listing = await self._request(
            "GET",
            f"{self._repo_url(repo)}/contents/{path.strip('/')}",
            params={"ref": branch},
        )
        if isinstance(listing, dict):
            if listing.get("type") != "file":
                return []
            return [self._decode_item(listing)]

        file_paths = [item["path"] for item in listing if item.get("type") == "file"]
        logger.debug(f"Fetching {len(file_paths)} file(s) from {repo}@{branch}:/{path}")
        return list(await asyncio.gather(*(self._get_file(repo, p, branch) for p in file_paths)))

    @staticmethod
    def _content_entry(item: Dict[str, Any]) -> ContentEntry:
        return ContentEntry(
            name=item["name"],
            path=item["path"],
            type=item.get("type", "file"),
            size=item.get("size") or 0,
            sha=item.get("sha"),
        )

    async def list_contents(self, repo: str, path: str = "", branch: str = "main") -> List[ContentEntry]:
        listing = await self._request(
            "GET",
            f"{self._repo_url(repo)}/contents/{path.strip('/')}",
            params={"ref": branch},
        )
        if isinstance(listing, dict):
            return [self._content_entry(listing)]
        return [self._content_entry(item) for item in listing]

    async def get_readme(self, repo: str, branch: str = "main") -> RepoFile:
        try:
            item = await self._request("GET", f"{self._repo_url(repo)}/readme", params={"ref": branch})
        except NotFoundError:
            raise await self._not_found(repo, f"No README in '{repo}'@{branch}", "readme_not_found")
        return self._decode_item(item)

    async def list_commits(self, repo: str, branch: str = "main", limit: int = 30) -> List[CommitSummary]:
        try:
            items = await self._request(
                "GET",
                f"{self._repo_url(repo)}/commits",
                params={"sha": branch, "per_page": limit},
            )
        except NotFoundError:
            raise await self._not_found(repo, f"Branch '{branch}' not found in '{repo}'", "branch_not_found")
        except UpstreamError as e:
            if e.upstream_status == 409:  # "Git Repository is empty."
                return []
            raise
        return [
            CommitSummary(
                sha=item["sha"],
                message=item["commit"]["message"],
                parents=[p["sha"] for p in item.get("parents", [])],
            )
            for item in items
        ]

    async def get_branch(self, repo: str, branch: str) -> BranchInfo:
        try:
            data = await self._request("GET", f"{self._repo_url(repo)}/branches/{branch}")
        except NotFoundError:
            raise await self._not_found(repo, f"Branch '{branch}' not found in '{repo}'", "branch_not_found")
        return BranchInfo(name=data["name"], commit_sha=data["commit"]["sha"], protected=data.get("protected", False))

    async def list_repos(self) -> List[RepoSummary]:
        if not self.config.owner:
            raise ValidationError("Listing repositories requires object_store.owner", reason="missing_owner")
        items = await self._request("GET", f"/users/{self.config.owner}/repos", params={"per_page": 100})
        return [
            RepoSummary(
                name=item["name"],
                full_name=item["full_name"],
                default_branch=item.get("default_branch") or "main",
                private=item.get("private", False),
                description=item.get("description"),
            )
            for item in items
        ]
