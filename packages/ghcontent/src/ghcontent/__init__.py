"""GitHub repository contents with SHA-checked writes."""

from .client import GitHubRepository
from .contents import ContentAddressing
from .errors import (
    AuthorizationDenied,
    Conflict,
    GitHubContentError,
    MalformedResponse,
    NotFound,
    RaceDetected,
    TransientServiceError,
    UnexpectedShape,
)
from .models import (
    ContentItem,
    ContentKind,
    DirectoryTree,
    FileContent,
    MutationRequest,
    RepositoryCoordinates,
)
from .mutations import MutationOrchestrator
from .transport import GitHubTransport, get_token

__all__ = [
    "GitHubRepository",
    "ContentAddressing",
    "MutationOrchestrator",
    "GitHubTransport",
    "get_token",
    "ContentItem",
    "ContentKind",
    "DirectoryTree",
    "FileContent",
    "MutationRequest",
    "RepositoryCoordinates",
    "GitHubContentError",
    "NotFound",
    "Conflict",
    "RaceDetected",
    "AuthorizationDenied",
    "UnexpectedShape",
    "TransientServiceError",
    "MalformedResponse",
]
