"""tools/github/context.py

The GitHub Actions run context, captured once from the environment.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from pipeline.constants import GITHUB_CLOUD_API_URL, GITHUB_CLOUD_URL, PULL_REQUEST_EVENTS


@dataclass(frozen=True)
class GitHubContext:
    repository: str = ""
    repository_owner: str = ""
    sha: str = ""
    ref: str = ""
    ref_name: str = ""
    head_ref: str = ""
    base_ref: str = ""
    event_name: str = ""
    server_url: str = GITHUB_CLOUD_URL
    api_url: str = GITHUB_CLOUD_API_URL
    workspace: str = ""
    runner_os: str = ""
    runner_temp: str = ""

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "GitHubContext":
        env = os.environ if environ is None else environ
        return cls(
            repository=env.get("GITHUB_REPOSITORY", ""),
            repository_owner=env.get("GITHUB_REPOSITORY_OWNER", ""),
            sha=env.get("GITHUB_SHA", ""),
            ref=env.get("GITHUB_REF", ""),
            ref_name=env.get("GITHUB_REF_NAME", ""),
            head_ref=env.get("GITHUB_HEAD_REF", ""),
            base_ref=env.get("GITHUB_BASE_REF", ""),
            event_name=env.get("GITHUB_EVENT_NAME", ""),
            server_url=(env.get("GITHUB_SERVER_URL") or GITHUB_CLOUD_URL).rstrip("/"),
            api_url=(env.get("GITHUB_API_URL") or GITHUB_CLOUD_API_URL).rstrip("/"),
            workspace=env.get("GITHUB_WORKSPACE", ""),
            runner_os=env.get("RUNNER_OS", ""),
            runner_temp=env.get("RUNNER_TEMP", ""),
        )

    @property
    def is_pull_request(self) -> bool:
        return self.event_name in PULL_REQUEST_EVENTS

    @property
    def is_cloud(self) -> bool:
        return self.server_url == GITHUB_CLOUD_URL

    @property
    def owner(self) -> str:
        if self.repository_owner:
            return self.repository_owner
        return self.repository.split("/", 1)[0] if "/" in self.repository else ""

    @property
    def repo_name(self) -> str:
        """Repository name without the owner (``org/app`` -> ``app``)."""
        return self.repository.split("/", 1)[-1] if self.repository else ""

    @property
    def branch(self) -> str:
        """Source branch: the PR head on pull requests, the ref name otherwise."""
        if self.is_pull_request and self.head_ref:
            return self.head_ref
        if self.ref_name:
            return self.ref_name
        return self.ref.rsplit("/", 1)[-1] if self.ref.startswith("refs/heads/") else self.ref

    @property
    def pull_number(self) -> Optional[int]:
        """``refs/pull/<n>/merge`` -> ``n``."""
        parts = self.ref.split("/")
        if len(parts) >= 3 and parts[0] == "refs" and parts[1] == "pull" and parts[2].isdigit():
            return int(parts[2])
        return None

    def workspace_path(self) -> Path:
        return Path(self.workspace) if self.workspace else Path.cwd()
