"""Shared fixtures: an in-memory GitHub contents API behind httpx.MockTransport."""

import base64
import hashlib
import json

import httpx
import pytest

from ghcontent import GitHubRepository

OWNER = "octo"
REPO = "notes"
TOKEN = "test-token"
RAW_HOST = "raw.example.test"


def blob_sha(data: bytes) -> str:
    """Git blob SHA of data, as GitHub reports it."""
    return hashlib.sha1(b"blob %d\0" % len(data) + data).hexdigest()


class FakeContentsAPI:
    """GitHub contents endpoint over a dict of path -> bytes.

    Writes are conditional on the blob SHA exactly like GitHub's: a create on
    an existing path is 422, a stale SHA is 409.
    """

    PREFIX = f"/repos/{OWNER}/{REPO}/contents"

    def __init__(self, token: str | None = TOKEN):
        self.token = token
        self.files: dict[str, bytes] = {}
        self.large: set[str] = set()
        self.requests: list[httpx.Request] = []
        self.forced: list[httpx.Response] = []

    def seed(self, path: str, content: str | bytes) -> str:
        data = content.encode() if isinstance(content, str) else content
        self.files[path] = data
        return blob_sha(data)

    def sha(self, path: str) -> str:
        return blob_sha(self.files[path])

    @property
    def writes(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method in ("PUT", "DELETE")]

    def _dirs(self) -> set[str]:
        dirs = set()
        for path in self.files:
            parts = path.split("/")[:-1]
            for i in range(1, len(parts) + 1):
                dirs.add("/".join(parts[:i]))
        return dirs

    def _entry(self, path: str, kind: str) -> dict:
        name = path.rsplit("/", 1)[-1]
        if kind == "file":
            sha = self.sha(path)
            size = len(self.files[path])
            download_url = f"https://{RAW_HOST}/{OWNER}/{REPO}/main/{path}"
        else:
            sha = hashlib.sha1(f"tree {path}".encode()).hexdigest()
            size = 0
            download_url = None
        return {
            "name": name,
            "path": path,
            "sha": sha,
            "size": size,
            "url": f"https://api.github.com{self.PREFIX}/{path}",
            "html_url": f"https://github.com/{OWNER}/{REPO}/blob/main/{path}",
            "git_url": f"https://api.github.com/repos/{OWNER}/{REPO}/git/blobs/{sha}",
            "download_url": download_url,
            "type": kind,
        }

    def _children(self, path: str) -> list[dict]:
        prefix = f"{path}/" if path else ""
        names: dict[str, str] = {}
        for candidate in self.files:
            if candidate.startswith(prefix):
                head = candidate[len(prefix):].split("/", 1)
                names[prefix + head[0]] = "file" if len(head) == 1 else "dir"
        return [self._entry(p, kind) for p, kind in sorted(names.items())]

    @staticmethod
    def _commit() -> dict:
        return {"sha": hashlib.sha1(b"commit").hexdigest(), "message": "ok"}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.forced:
            return self.forced.pop(0)

        if request.url.host == RAW_HOST:
            path = request.url.path.split("/main/", 1)[1]
            if path not in self.files:
                return httpx.Response(404, text="404: Not Found")
            return httpx.Response(200, content=self.files[path])

        if self.token and request.headers.get("Authorization") != f"token {self.token}":
            return httpx.Response(401, json={"message": "Bad credentials"})

        path = request.url.path[len(self.PREFIX):].strip("/")
        if request.method == "GET":
            return self._get(path)
        body = json.loads(request.content)
        if request.method == "PUT":
            return self._put(path, body)
        if request.method == "DELETE":
            return self._delete(path, body)
        return httpx.Response(405, json={"message": "Method Not Allowed"})

    def _get(self, path: str) -> httpx.Response:
        if path in self.files:
            entry = self._entry(path, "file")
            if path in self.large:
                entry.update(content="", encoding="none")
            else:
                entry.update(
                    content=base64.encodebytes(self.files[path]).decode(),
                    encoding="base64",
                )
            return httpx.Response(200, json=entry)
        if path == "" or path in self._dirs():
            return httpx.Response(200, json=self._children(path))
        return httpx.Response(404, json={"message": "Not Found"})

    def _mismatch(self, path: str, sha: str) -> httpx.Response:
        return httpx.Response(
            409, json={"message": f"{path} is at {self.sha(path)} but expected {sha}"}
        )

    def _put(self, path: str, body: dict) -> httpx.Response:
        content = base64.b64decode(body["content"])
        sha = body.get("sha")
        if sha is None:
            if path in self.files:
                return httpx.Response(
                    422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."}
                )
            self.files[path] = content
            return httpx.Response(
                201, json={"content": self._entry(path, "file"), "commit": self._commit()}
            )
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        if sha != self.sha(path):
            return self._mismatch(path, sha)
        self.files[path] = content
        return httpx.Response(
            200, json={"content": self._entry(path, "file"), "commit": self._commit()}
        )

    def _delete(self, path: str, body: dict) -> httpx.Response:
        sha = body.get("sha")
        if path not in self.files:
            return httpx.Response(404, json={"message": "Not Found"})
        if not sha:
            return httpx.Response(
                422, json={"message": "Invalid request.\n\n\"sha\" wasn't supplied."}
            )
        if sha != self.sha(path):
            return self._mismatch(path, sha)
        del self.files[path]
        return httpx.Response(200, json={"content": None, "commit": self._commit()})


@pytest.fixture
def api() -> FakeContentsAPI:
    return FakeContentsAPI()


@pytest.fixture
def repo(api: FakeContentsAPI) -> GitHubRepository:
    return GitHubRepository(
        TOKEN,
        OWNER,
        REPO,
        max_retries=1,
        transport=httpx.MockTransport(api.handler),
    )
