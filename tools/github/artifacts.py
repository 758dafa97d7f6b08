"""tools/github/artifacts.py

Artifact upload seam.

The workflow artifact service is an external collaborator. Everything in the
launcher talks to :class:`ArtifactClient`; the shipped implementation,
:class:`StagingArtifactClient`, stages files under
``<RUNNER_TEMP>/bridge-artifacts/<name>/`` together with a ``manifest.json``
so a following ``actions/upload-artifact`` step (or any other host tool) can
publish them.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from pipeline.errors import PipelineError
from tools.io import write_json

logger = logging.getLogger(__name__)

STAGING_DIR_NAME = "bridge-artifacts"


@dataclass(frozen=True)
class UploadResult:
    name: str
    location: Path
    file_count: int


class ArtifactClient:
    """Contract for publishing a named set of files."""

    def upload_artifact(
        self,
        name: str,
        files: Sequence[Path],
        root_dir: Path,
        retention_days: Optional[int] = None,
    ) -> UploadResult:
        raise NotImplementedError


class StagingArtifactClient(ArtifactClient):
    def __init__(self, staging_root: Optional[Path] = None, runner_temp: str = "") -> None:
        if staging_root is None:
            base = Path(runner_temp) if runner_temp else Path(tempfile.gettempdir())
            staging_root = base / STAGING_DIR_NAME
        self.staging_root = staging_root

    def upload_artifact(
        self,
        name: str,
        files: Sequence[Path],
        root_dir: Path,
        retention_days: Optional[int] = None,
    ) -> UploadResult:
        target = self.staging_root / name
        target.mkdir(parents=True, exist_ok=True)
        root = root_dir.resolve()

        staged: List[str] = []
        for f in files:
            src = Path(f).resolve()
            if not src.is_file():
                raise PipelineError(f"Artifact file not found: {src}")
            try:
                rel = src.relative_to(root)
            except ValueError:
                rel = Path(src.name)
            dest = target / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(src, dest)
            staged.append(rel.as_posix())

        manifest = {
            "name": name,
            "root_dir": str(root),
            "files": staged,
            "retention_days": retention_days,
            "created_at_ms": int(time.time() * 1000),
        }
        write_json(target / "manifest.json", manifest)
        logger.info("Staged artifact '%s' (%d files) at %s", name, len(staged), target)
        return UploadResult(name=name, location=target, file_count=len(staged))
