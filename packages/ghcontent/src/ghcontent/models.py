"""Repository content data models."""

import base64
from enum import Enum
from typing import Any
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import MalformedResponse

# GitHub entry types that are neither plain files nor directories
OTHER_TYPES = frozenset({"symlink", "submodule"})


class ContentKind(str, Enum):
    """Kind of a repository entry."""

    FILE = "file"
    DIRECTORY = "dir"
    OTHER = "other"


class ContentItem(BaseModel):
    """One file or directory entry, as returned by a listing or lookup."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    path: str
    sha: str  # Git blob SHA, the version token for updates and deletes
    kind: ContentKind = Field(alias="type")
    size: int = 0
    html_url: str | None = None
    download_url: str | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _resolve_kind(cls, value: Any) -> Any:
        if isinstance(value, ContentKind):
            return value
        if isinstance(value, str) and value in OTHER_TYPES:
            return ContentKind.OTHER
        if value == ContentKind.OTHER.value:
            # "other" is ours, never GitHub's
            raise ValueError("unknown content type: other")
        return value

    @property
    def is_file(self) -> bool:
        return self.kind is ContentKind.FILE

    @property
    def is_dir(self) -> bool:
        return self.kind is ContentKind.DIRECTORY


class FilePayload(ContentItem):
    """Single-file lookup response, including inline content when present."""

    content: str | None = None  # Base64 encoded content
    encoding: str | None = None  # "base64", or "none" for files over 1 MB


class FileContent(ContentItem):
    """File entry with decoded content."""

    content: bytes

    def text(self, encoding: str = "utf-8") -> str:
        """Decode content as text."""
        return self.content.decode(encoding)


class DirectoryTree(BaseModel):
    """Flat listing of a directory walk."""

    model_config = ConfigDict(frozen=True)

    path: str
    items: list[ContentItem] = Field(default_factory=list)

    @property
    def files(self) -> list[ContentItem]:
        return [item for item in self.items if item.is_file]


class RepositoryCoordinates(BaseModel):
    """Which repository, which credential and which branch every request targets."""

    model_config = ConfigDict(frozen=True)

    owner: str = Field(min_length=1)
    repo: str = Field(min_length=1)
    token: str | None = Field(default=None, repr=False)
    branch: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    def contents_endpoint(self, path: str) -> str:
        """API endpoint for a normalized repository path ("" for the root)."""
        return f"/repos/{quote(self.owner)}/{quote(self.repo)}/contents/{quote(path, safe='/')}"


class MutationRequest(BaseModel):
    """One pending write against the contents API."""

    model_config = ConfigDict(frozen=True)

    path: str
    message: str
    content: bytes | None = None
    sha: str | None = None
    branch: str | None = None

    def to_payload(self) -> dict[str, str]:
        """Render the JSON body for a PUT or DELETE."""
        payload = {"message": self.message}
        if self.content is not None:
            payload["content"] = base64.b64encode(self.content).decode("ascii")
        if self.sha is not None:
            payload["sha"] = self.sha
        if self.branch:
            payload["branch"] = self.branch
        return payload


def normalize_path(raw: str, *, allow_root: bool = False) -> str:
    """
    Normalize a repository-relative path.

    Args:
        raw: Path as given by the caller
        allow_root: Accept the empty path (repository root)

    Returns:
        Path without surrounding slashes, empty or "." segments

    Raises:
        ValueError: If the path escapes the repository or is empty when a
            file path is required
    """
    if "\0" in raw:
        raise ValueError(f"Path contains null byte: {raw!r}")
    parts: list[str] = []
    for segment in raw.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            raise ValueError(f"Path contains '..' segment: {raw!r}")
        parts.append(segment)
    if not parts and not allow_root:
        raise ValueError("Path is empty")
    return "/".join(parts)


def encode_content(content: str | bytes) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return content


def parse_item(data: Any, *, path: str, model: type[ContentItem] = ContentItem) -> ContentItem:
    """
    Parse one entry object, rejecting anything that is not a known entry.

    Raises:
        MalformedResponse: If the object lacks required fields or has an
            unknown type
    """
    if not isinstance(data, dict):
        raise MalformedResponse(
            f"Expected a content object, got {type(data).__name__}", path=path
        )
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedResponse(f"Invalid content object: {e}", path=path) from e


def parse_payload(data: Any, *, path: str) -> ContentItem | list[ContentItem]:
    """
    Resolve a lookup response into a single entry or a directory listing.

    A JSON array is a directory listing and a JSON object is a single
    entry. Any other shape is malformed.
    """
    if isinstance(data, list):
        return [parse_item(entry, path=path) for entry in data]
    if isinstance(data, dict):
        return parse_item(data, path=path)
    raise MalformedResponse(
        f"Expected an object or array, got {type(data).__name__}", path=path
    )
