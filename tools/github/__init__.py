"""tools/github

GitHub-facing collaborators: run context, SARIF helpers, code-scanning
ingest, issues and artifacts.
"""

from __future__ import annotations

from .artifacts import ArtifactClient, StagingArtifactClient, UploadResult
from .code_scanning import CodeScanningClient
from .context import GitHubContext
from .issues import GitHubIssuesService
from .sarif import issue_from_result, map_severity, rules_by_id

__all__ = [
    "ArtifactClient",
    "CodeScanningClient",
    "GitHubContext",
    "GitHubIssuesService",
    "StagingArtifactClient",
    "UploadResult",
    "issue_from_result",
    "map_severity",
    "rules_by_id",
]
