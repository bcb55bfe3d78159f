"""Create, update and delete with SHA-conditional writes."""

import logging
from typing import Any

from .contents import ContentAddressing
from .errors import Conflict, MalformedResponse, NotFound, Operation, error_from_response
from .models import MutationRequest, RepositoryCoordinates, encode_content, normalize_path, parse_item
from .transport import GitHubTransport

logger = logging.getLogger(__name__)


class MutationOrchestrator:
    """Runs one write protocol per call against the contents API.

    No retries happen here. A RaceDetected error means GitHub rejected the
    SHA because the object changed since it was read; the caller decides
    whether to re-read and try again.
    """

    def __init__(
        self,
        transport: GitHubTransport,
        coordinates: RepositoryCoordinates,
        contents: ContentAddressing,
    ):
        self.transport = transport
        self.coordinates = coordinates
        self.contents = contents

    async def _submit(self, method: str, request: MutationRequest, operation: Operation) -> dict[str, Any]:
        endpoint = self.coordinates.contents_endpoint(request.path)
        response = await self.transport.request(method, endpoint, json=request.to_payload())
        if response.is_error:
            raise error_from_response(
                response, path=request.path, operation=operation, supplied_sha=request.sha
            )
        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponse(
                "Response body is not JSON", path=request.path, status_code=response.status_code
            ) from e
        if not isinstance(data, dict):
            raise MalformedResponse(
                f"Expected a commit object, got {type(data).__name__}",
                path=request.path,
                status_code=response.status_code,
            )
        return data

    @staticmethod
    def _new_sha(data: dict[str, Any], path: str) -> str:
        return parse_item(data.get("content"), path=path).sha

    async def _create(self, path: str, message: str, content: str | bytes) -> str:
        request = MutationRequest(
            path=path,
            message=message,
            content=encode_content(content),
            branch=self.coordinates.branch,
        )
        data = await self._submit("PUT", request, Operation.CREATE)
        return self._new_sha(data, path)

    async def get_or_fetch_token(self, path: str, sha: str | None = None) -> str:
        """
        Return the supplied SHA, or look up the current one.

        A fetched SHA only narrows the race window between read and write.
        GitHub still checks it when the write arrives.

        Raises:
            ValueError: If a blank SHA was supplied (no request is made)
            NotFound: If no SHA was supplied and no file exists at path
            UnexpectedShape: If no SHA was supplied and path is not a file
        """
        if sha is not None:
            if not sha.strip():
                raise ValueError(f"Blank version token for {path!r}")
            return sha
        logger.debug("No sha supplied for %s, fetching current", path)
        return await self.contents.get_version_token(path)

    async def create_file(
        self, path: str, message: str, content: str | bytes, exist_ok: bool = False
    ) -> None:
        """
        Create a new file.

        Args:
            path: File path in repository
            message: Commit message
            content: File content, str is encoded as UTF-8
            exist_ok: Treat an existing file at path as success

        Raises:
            Conflict: If an object already exists at path and exist_ok is False
        """
        path = normalize_path(path)
        logger.info("Creating file: %s path=%s", self.coordinates.full_name, path)
        try:
            sha = await self._create(path, message, content)
        except Conflict:
            if not exist_ok:
                raise
            logger.warning("File already exists, leaving it untouched: %s", path)
            return
        logger.debug("Created %s at sha=%s", path, sha)

    async def update_file(
        self, path: str, message: str, content: str | bytes, sha: str | None = None
    ) -> str:
        """
        Replace the content of an existing file.

        Args:
            path: File path in repository
            message: Commit message
            content: New file content, str is encoded as UTF-8
            sha: SHA the caller believes is current (fetched when None)

        Returns:
            The file's new SHA; the supplied one is no longer valid

        Raises:
            RaceDetected: If sha no longer matches the file
            NotFound: If the file does not exist
        """
        path = normalize_path(path)
        sha = await self.get_or_fetch_token(path, sha)
        logger.info("Updating file: %s path=%s sha=%s", self.coordinates.full_name, path, sha)
        request = MutationRequest(
            path=path,
            message=message,
            content=encode_content(content),
            sha=sha,
            branch=self.coordinates.branch,
        )
        data = await self._submit("PUT", request, Operation.UPDATE)
        new_sha = self._new_sha(data, path)
        logger.debug("Updated %s: sha %s -> %s", path, sha, new_sha)
        return new_sha

    async def delete_file(self, path: str, message: str, sha: str | None = None) -> None:
        """
        Delete a file.

        Args:
            path: File path in repository
            message: Commit message
            sha: SHA the caller believes is current (fetched when None)

        Raises:
            RaceDetected: If sha no longer matches the file
            NotFound: If the file does not exist
        """
        path = normalize_path(path)
        sha = await self.get_or_fetch_token(path, sha)
        logger.info("Deleting file: %s path=%s sha=%s", self.coordinates.full_name, path, sha)
        request = MutationRequest(path=path, message=message, sha=sha, branch=self.coordinates.branch)
        await self._submit("DELETE", request, Operation.DELETE)
        logger.debug("Deleted %s", path)

    async def put_file(self, path: str, message: str, content: str | bytes) -> str:
        """
        Create the file, or update it at its current SHA.

        The SHA is read right before the write, so a concurrent writer still
        surfaces as RaceDetected (or Conflict, if the file appears between
        the lookup and the create).

        Returns:
            The file's SHA after the write
        """
        path = normalize_path(path)
        try:
            sha = await self.contents.get_version_token(path)
        except NotFound:
            logger.info("Creating file: %s path=%s", self.coordinates.full_name, path)
            return await self._create(path, message, content)
        return await self.update_file(path, message, content, sha)
