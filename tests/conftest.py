"""Shared fakes for the launcher tests.

Nothing here touches the network or spawns processes: the HTTP session, the
engine runner and the artifact service are all recorded in memory.
"""

from __future__ import annotations

import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from pipeline.config import InputSource, load_config
from pipeline.models import ActionConfig
from tools.core_cmd import CmdResult
from tools.github.artifacts import ArtifactClient, UploadResult
from tools.github.context import GitHubContext
from tools.http import HttpTransport
from tools.platform_info import LINUX, X64, PlatformInfo

NOW = 1_700_000_000.0


class FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self.content = content
        self.headers = headers or {}
        self.closed = False

    def iter_content(self, chunk_size: int = 1):
        for i in range(0, len(self.content), chunk_size):
            yield self.content[i : i + chunk_size]

    def close(self) -> None:
        self.closed = True


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    json: Any
    stream: bool


class FakeSession:
    """Answers requests from per-route queues; the last queued answer repeats.

    Unknown routes answer 404. An exception instance in a queue is raised.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Any]] = {}
        self.calls: List[RecordedRequest] = []

    def add(self, method: str, url: str, *answers: Any) -> "FakeSession":
        self.routes.setdefault((method, url), []).extend(answers)
        return self

    def request(self, method, url, headers=None, json=None, timeout=None, stream=False):
        self.calls.append(RecordedRequest(method, url, dict(headers or {}), json, stream))
        queue = self.routes.get((method, url))
        if not queue:
            return FakeResponse(404, b"not found")
        answer = queue[0] if len(queue) == 1 else queue.pop(0)
        if isinstance(answer, BaseException):
            raise answer
        return answer

    def calls_to(self, method: str, url: str) -> List[RecordedRequest]:
        return [c for c in self.calls if c.method == method and c.url == url]


class FakeRunner:
    """Stands in for :func:`tools.core_cmd.spawn`."""

    def __init__(self, exit_codes: Sequence[int] = (0,)) -> None:
        self.exit_codes = list(exit_codes)
        self.calls: List[Tuple[List[str], Optional[Path]]] = []

    def __call__(self, cmd: List[str], *, cwd: Optional[Path] = None) -> int:
        self.calls.append((list(cmd), cwd))
        if len(self.exit_codes) > 1:
            return self.exit_codes.pop(0)
        return self.exit_codes[0]


class FakeCapture:
    """Stands in for :func:`tools.core_cmd.run_cmd` (``bridge-cli --version``)."""

    def __init__(self, stdout: str = "", exit_code: int = 0) -> None:
        self.stdout = stdout
        self.exit_code = exit_code
        self.calls: List[List[str]] = []

    def __call__(self, cmd: List[str], **_: Any) -> CmdResult:
        self.calls.append(list(cmd))
        return CmdResult(
            exit_code=self.exit_code,
            elapsed_seconds=0.0,
            command_str=" ".join(cmd),
            stdout=self.stdout,
            stderr="",
        )


@dataclass
class RecordingArtifacts(ArtifactClient):
    uploads: List[Dict[str, Any]] = field(default_factory=list)

    def upload_artifact(self, name, files, root_dir, retention_days=None):
        self.uploads.append(
            {"name": name, "files": [Path(f) for f in files], "root_dir": Path(root_dir), "retention_days": retention_days}
        )
        return UploadResult(name=name, location=Path(root_dir), file_count=len(files))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def transport(session: FakeSession, sleeps: List[float]) -> HttpTransport:
    return HttpTransport(session=session, sleep=sleeps.append, clock=lambda: NOW)


@pytest.fixture
def linux_x64() -> PlatformInfo:
    return PlatformInfo(os=LINUX, arch=X64)


@pytest.fixture
def artifacts() -> RecordingArtifacts:
    return RecordingArtifacts()


@pytest.fixture
def make_config() -> Callable[..., ActionConfig]:
    def _make(**inputs: Any) -> ActionConfig:
        return load_config(InputSource(inputs, environ={}))

    return _make


@pytest.fixture
def make_context(tmp_path: Path) -> Callable[..., GitHubContext]:
    def _make(**overrides: Any) -> GitHubContext:
        values: Dict[str, Any] = {
            "repository": "acme/webapp",
            "repository_owner": "acme",
            "sha": "0123abcd",
            "ref": "refs/heads/main",
            "ref_name": "main",
            "event_name": "push",
            "workspace": str(tmp_path / "workspace"),
            "runner_os": "Linux",
            "runner_temp": str(tmp_path / "runner_temp"),
        }
        values.update(overrides)
        Path(values["workspace"]).mkdir(parents=True, exist_ok=True)
        return GitHubContext(**values)

    return _make


@pytest.fixture
def zip_factory() -> Callable[[Path, Dict[str, str]], bytes]:
    """Write a zip with ``{member: text}`` entries and return its bytes."""

    def _make(path: Path, members: Dict[str, str]) -> bytes:
        path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(path, "w") as zf:
            for name, text in members.items():
                info = zipfile.ZipInfo(name)
                info.external_attr = 0o755 << 16
                zf.writestr(info, text)
        return path.read_bytes()

    return _make
