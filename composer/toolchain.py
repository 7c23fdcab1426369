"""
toolchain.py

Responsibility: Isolate all interaction with the external build toolchain.

This module must be the only place that:
- Constructs build command lines from an `ArtifactDescription`
- Spawns the builder subprocess
- Passes the artifact name, version and system to the builder as environment
  (`COMPOSER_PKG_NAME`, `COMPOSER_PKG_VERSION`, `COMPOSER_SYSTEM`)
- Interprets builder failures (by wrapping them, never by retrying)

Everything else (composition, CLI behavior) only hands artifacts to this client.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from composer.artifacts import ArtifactDescription

logger = logging.getLogger(__name__)

Runner = Callable[..., Any]


class DownstreamBuildError(RuntimeError):
    def __init__(self, message: str, *, command: Sequence[str] = (), output: str = "") -> None:
        super().__init__(message)
        self.command = tuple(command)
        self.output = output


@dataclass(frozen=True)
class BuildResult:
    artifact: ArtifactDescription
    out_dir: Path

    @property
    def executable(self) -> Path:
        # Conventional layout: <out>/bin/<tool>
        return self.out_dir / self.artifact.exe_path.lstrip("/")


class BuildToolchain:
    def __init__(self, command: Sequence[str] = ("cargo", "build"), runner: Runner = subprocess.run) -> None:
        if not command:
            raise ValueError("Build command must not be empty.")
        self._command = tuple(command)
        self._runner = runner

    def command_for(self, artifact: ArtifactDescription, *, out_dir: str | Path) -> list[str]:
        target_dir = Path(out_dir).resolve() / "target"
        return [*self._command, *artifact.build_options, "--target-dir", str(target_dir)]

    def env_for(self, artifact: ArtifactDescription) -> dict[str, str]:
        env = os.environ.copy()
        env["COMPOSER_PKG_NAME"] = artifact.name
        env["COMPOSER_PKG_VERSION"] = artifact.version
        env["COMPOSER_SYSTEM"] = artifact.system
        return env

    def _profile(self, artifact: ArtifactDescription) -> str:
        return "release" if "--release" in artifact.build_options else "debug"

    def build(self, artifact: ArtifactDescription, *, out_dir: str | Path) -> BuildResult:
        """
        Build `artifact` and install its executable under `<out_dir>/bin/`.

        Raises DownstreamBuildError when the builder fails or produces no executable.
        """
        out = Path(out_dir).resolve()
        cmd = self.command_for(artifact, out_dir=out)
        logger.info("Building %s (%s)", artifact.name, artifact.system)
        logger.debug("Running: %s (cwd=%s)", " ".join(cmd), artifact.root)

        try:
            self._runner(
                cmd,
                cwd=artifact.root,
                env=self.env_for(artifact),
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            raise DownstreamBuildError(
                f"Build failed for {artifact.name}: {' '.join(cmd)}\n\n{e.stdout or ''}",
                command=cmd,
                output=e.stdout or "",
            ) from e
        except OSError as e:
            raise DownstreamBuildError(f"Could not run builder {cmd[0]!r}: {e}", command=cmd) from e

        built = out / "target" / self._profile(artifact) / artifact.tool_name
        if not built.exists():
            raise DownstreamBuildError(f"Builder succeeded but produced no executable at {built}", command=cmd)

        result = BuildResult(artifact=artifact, out_dir=out)
        result.executable.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(built, result.executable)
        logger.info("Installed %s", result.executable)
        return result
