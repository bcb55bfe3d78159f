"""GitHub repository contents client."""

import logging
import os

import httpx

from .contents import ContentAddressing
from .models import ContentItem, DirectoryTree, FileContent, RepositoryCoordinates
from .mutations import MutationOrchestrator
from .transport import DEFAULT_MAX_RETRIES, GitHubTransport, get_token

logger = logging.getLogger(__name__)


class GitHubRepository:
    """Files and directories of one GitHub repository.

    Reads go through ContentAddressing, writes through MutationOrchestrator.
    The instance holds nothing mutable, so concurrent calls are independent.
    """

    def __init__(
        self,
        token: str | None,
        owner: str,
        repo: str,
        *,
        branch: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        use_gh_cli: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize repository client.

        Args:
            token: GitHub personal access token (falls back to GH_TOKEN/GITHUB_TOKEN)
            owner: Repository owner
            repo: Repository name
            branch: Branch to read and write (defaults to the repository's default branch)
            base_url: Custom base URL (defaults to GitHub API)
            timeout: Request timeout in seconds
            use_gh_cli: Use gh cli credentials (requires user consent)
            max_retries: Maximum number of attempts per request (default: 3)
            transport: httpx transport override
        """
        resolved_token = get_token(token, use_gh_cli=use_gh_cli)
        self.coordinates = RepositoryCoordinates(
            owner=owner, repo=repo, token=resolved_token, branch=branch
        )
        self.transport = GitHubTransport(
            token=self.coordinates.token,
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
        )
        self.contents = ContentAddressing(self.transport, self.coordinates)
        self.mutations = MutationOrchestrator(self.transport, self.coordinates, self.contents)
        logger.info("Repository client ready: %s branch=%s", self.coordinates.full_name, branch)

    @classmethod
    def from_env(
        cls, owner: str | None = None, repo: str | None = None, **kwargs
    ) -> "GitHubRepository":
        """
        Build a client from the environment.

        Owner and repo default to GITHUB_REPOSITORY ("owner/repo"), the
        branch to GITHUB_BRANCH, the token to GH_TOKEN/GITHUB_TOKEN.
        """
        if owner is None or repo is None:
            full_name = os.environ.get("GITHUB_REPOSITORY", "")
            env_owner, _, env_repo = full_name.partition("/")
            owner = owner or env_owner
            repo = repo or env_repo
        if not owner or not repo:
            raise ValueError("Repository not given and GITHUB_REPOSITORY is not set")
        kwargs.setdefault("branch", os.environ.get("GITHUB_BRANCH") or None)
        return cls(kwargs.pop("token", None), owner, repo, **kwargs)

    def __repr__(self) -> str:
        return f"GitHubRepository({self.coordinates.full_name!r}, branch={self.coordinates.branch!r})"

    async def list_contents(self, path: str = "") -> list[ContentItem]:
        """List the immediate entries of a directory."""
        return await self.contents.list_contents(path)

    async def exists(self, path: str) -> bool:
        """Check whether anything exists at path. Not found is False, not an error."""
        return await self.contents.exists(path)

    async def get_version_token(self, path: str) -> str:
        """Get the current SHA of the file at path."""
        return await self.contents.get_version_token(path)

    async def read_file(self, path: str) -> FileContent:
        return await self.contents.read_file(path)

    async def get_directory_tree(self, path: str = "", recursive: bool = True) -> DirectoryTree:
        return await self.contents.get_directory_tree(path, recursive=recursive)

    async def get_or_fetch_token(self, path: str, sha: str | None = None) -> str:
        """Return sha if given, otherwise the file's current SHA."""
        return await self.mutations.get_or_fetch_token(path, sha)

    async def create_file(
        self, path: str, message: str, content: str | bytes, exist_ok: bool = False
    ) -> None:
        """Create a new file. Raises Conflict if the path is taken, unless exist_ok."""
        await self.mutations.create_file(path, message, content, exist_ok=exist_ok)

    async def update_file(
        self, path: str, message: str, content: str | bytes, sha: str | None = None
    ) -> str:
        """Update a file at sha and return its new SHA. Raises RaceDetected on a stale sha."""
        return await self.mutations.update_file(path, message, content, sha)

    async def delete_file(self, path: str, message: str, sha: str | None = None) -> None:
        """Delete a file at sha. Raises RaceDetected on a stale sha."""
        await self.mutations.delete_file(path, message, sha)

    async def put_file(self, path: str, message: str, content: str | bytes) -> str:
        """Create or update a file and return its SHA."""
        return await self.mutations.put_file(path, message, content)
