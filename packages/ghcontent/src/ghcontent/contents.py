"""Content addressing: path lookups, listings and version tokens."""

import base64
import binascii
import logging
from typing import Any

from .errors import MalformedResponse, NotFound, Operation, UnexpectedShape, error_from_response
from .models import (
    ContentItem,
    ContentKind,
    DirectoryTree,
    FileContent,
    FilePayload,
    RepositoryCoordinates,
    normalize_path,
    parse_item,
    parse_payload,
)
from .transport import GitHubTransport

logger = logging.getLogger(__name__)


class ContentAddressing:
    """Resolves repository paths to content items and their current SHA.

    Every "is it there, and at which version" question goes through here so
    that 404 handling is decided in one place.
    """

    def __init__(self, transport: GitHubTransport, coordinates: RepositoryCoordinates):
        self.transport = transport
        self.coordinates = coordinates

    async def _lookup(self, path: str) -> Any:
        """GET the contents endpoint for a normalized path and return the JSON body."""
        endpoint = self.coordinates.contents_endpoint(path)
        params = {"ref": self.coordinates.branch} if self.coordinates.branch else None
        response = await self.transport.request("GET", endpoint, params=params)
        if response.is_error:
            raise error_from_response(response, path=path, operation=Operation.READ)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponse(
                "Response body is not JSON", path=path, status_code=response.status_code
            ) from e

    async def _get_file_payload(self, path: str) -> FilePayload:
        data = await self._lookup(path)
        if isinstance(data, list):
            raise UnexpectedShape(
                "Path is a directory, not a file",
                path=path,
                expected=ContentKind.FILE.value,
                actual=ContentKind.DIRECTORY.value,
            )
        item = parse_item(data, path=path, model=FilePayload)
        if not item.is_file:
            raise UnexpectedShape(
                f"Path is a {item.kind.value}, not a file",
                path=path,
                expected=ContentKind.FILE.value,
                actual=item.kind.value,
            )
        return item

    async def list_contents(self, path: str = "") -> list[ContentItem]:
        """
        List the immediate entries of a directory.

        Args:
            path: Directory path (empty for the repository root)

        Returns:
            Entries of the directory, empty if it has none

        Raises:
            NotFound: If nothing exists at path
            UnexpectedShape: If path is a file or other non-directory entry
        """
        path = normalize_path(path, allow_root=True)
        logger.info("Listing contents: %s path=%s", self.coordinates.full_name, path)
        payload = parse_payload(await self._lookup(path), path=path)
        if isinstance(payload, ContentItem):
            raise UnexpectedShape(
                f"Path is a {payload.kind.value}, not a directory",
                path=path,
                expected=ContentKind.DIRECTORY.value,
                actual=payload.kind.value,
            )
        logger.debug("Directory listing: %d items", len(payload))
        return payload

    async def exists(self, path: str) -> bool:
        """
        Check whether a file or directory exists at path.

        A 404 means False. Every other failure is raised.
        """
        path = normalize_path(path, allow_root=True)
        try:
            parse_payload(await self._lookup(path), path=path)
        except NotFound:
            logger.debug("Not found: %s", path)
            return False
        return True

    async def get_version_token(self, path: str) -> str:
        """
        Get the current SHA of the file at path.

        Raises:
            NotFound: If no file exists at path
            UnexpectedShape: If path is a directory or other non-file entry
        """
        path = normalize_path(path)
        item = await self._get_file_payload(path)
        logger.debug("Resolved %s at sha=%s", path, item.sha)
        return item.sha

    async def read_file(self, path: str) -> FileContent:
        """
        Get file content with decoded bytes.

        Inline base64 content is used when present; large files that GitHub
        serves without inline content are fetched from their download URL.

        Args:
            path: File path in repository

        Returns:
            FileContent carrying the SHA the bytes belong to
        """
        path = normalize_path(path)
        logger.info("Fetching file content: %s path=%s", self.coordinates.full_name, path)
        item = await self._get_file_payload(path)

        if item.encoding == "base64" and item.content is not None:
            try:
                decoded = base64.b64decode(item.content)
            except binascii.Error as e:
                raise MalformedResponse("Invalid base64 content", path=path) from e
        elif item.download_url:
            logger.debug("No inline content, downloading from: %s", item.download_url)
            response = await self.transport.download(item.download_url)
            if response.is_error:
                raise error_from_response(response, path=path, operation=Operation.READ)
            decoded = response.content
        else:
            raise MalformedResponse("File has no content and no download URL", path=path)

        logger.debug("File content fetched: %s (%d bytes)", path, len(decoded))
        return FileContent(**item.model_dump(exclude={"content", "encoding"}), content=decoded)

    async def get_directory_tree(self, path: str = "", recursive: bool = True) -> DirectoryTree:
        """
        Walk a directory.

        Args:
            path: Directory path (empty for root)
            recursive: Whether to descend into subdirectories

        Returns:
            DirectoryTree with all entries, parents before children
        """
        path = normalize_path(path, allow_root=True)
        logger.info("Fetching directory tree: path=%s recursive=%s", path, recursive)
        items: list[ContentItem] = []
        for item in await self.list_contents(path):
            items.append(item)
            if recursive and item.is_dir:
                logger.debug("Recursing into directory: %s", item.path)
                subtree = await self.get_directory_tree(item.path, recursive=True)
                items.extend(subtree.items)

        logger.debug("Directory tree fetched: %s (%d items)", path, len(items))
        return DirectoryTree(path=path, items=items)
