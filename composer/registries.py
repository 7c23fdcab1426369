"""
registries.py

Responsibility: Project the expanded matrix into every consumer-facing registry.

`compose` expands the matrix exactly once per system and derives all views from that
one mapping:
- packages: every artifact plus the hand-authored auxiliary package
- apps:     every artifact wrapped as a runnable reference plus the update script app
- checks:   packages minus the configured exclusion set
- default_package / default_app: fixed keys into packages / apps

Registries are read-only; entries are shared by reference, never copied.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Union

from composer.artifacts import ArtifactDescription
from composer.config import AuxiliaryPackage, MatrixConfig
from composer.matrix import DuplicateKeyError, expand
from composer.renderer import render_update_script

logger = logging.getLogger(__name__)

REGISTRY_KINDS = ("packages", "apps", "checks")


class CompositionError(RuntimeError):
    pass


@dataclass(frozen=True)
class ArtifactApp:
    """Runnable reference to a matrix artifact."""

    key: str
    artifact: ArtifactDescription

    @property
    def program(self) -> str:
        return self.artifact.exe_path


@dataclass(frozen=True)
class ScriptApp:
    """Hand-authored runnable entry carrying its own script body."""

    key: str
    script_name: str
    script: str


PackageEntry = Union[ArtifactDescription, AuxiliaryPackage]
AppEntry = Union[ArtifactApp, ScriptApp]


@dataclass(frozen=True)
class Composition:
    system: str
    matrix: Mapping[str, ArtifactDescription]
    packages: Mapping[str, PackageEntry]
    apps: Mapping[str, AppEntry]
    checks: Mapping[str, PackageEntry]
    default_package: str
    default_app: str

    def registry(self, kind: str) -> Mapping[str, object]:
        if kind not in REGISTRY_KINDS:
            raise KeyError(f"Unknown registry {kind!r} (expected one of: {', '.join(REGISTRY_KINDS)})")
        return getattr(self, kind)

    def package(self, key: str) -> PackageEntry:
        return _lookup(self.packages, key, "package")

    def app(self, key: str) -> AppEntry:
        return _lookup(self.apps, key, "app")

    def artifact(self, key: str) -> ArtifactDescription:
        entry = self.package(key)
        if not isinstance(entry, ArtifactDescription):
            raise CompositionError(f"Package {key!r} is not a build artifact of the matrix")
        return entry


def _lookup(registry: Mapping[str, object], key: str, what: str):
    try:
        return registry[key]
    except KeyError:
        raise KeyError(f"No {what} named {key!r} (known: {', '.join(registry)})") from None


def _with_extra(base: Mapping[str, object], key: str, entry: object) -> dict[str, object]:
    if key in base:
        raise DuplicateKeyError(f"Hand-authored entry {key!r} collides with a derived key")
    return {**base, key: entry}


def package_registry(matrix: Mapping[str, ArtifactDescription], auxiliary: AuxiliaryPackage) -> Mapping[str, PackageEntry]:
    return MappingProxyType(_with_extra(matrix, auxiliary.name, auxiliary))


def app_registry(matrix: Mapping[str, ArtifactDescription], extra: ScriptApp) -> Mapping[str, AppEntry]:
    apps = {key: ArtifactApp(key=key, artifact=artifact) for key, artifact in matrix.items()}
    return MappingProxyType(_with_extra(apps, extra.key, extra))


def check_registry(packages: Mapping[str, PackageEntry], exclusions: frozenset[str]) -> Mapping[str, PackageEntry]:
    """Packages minus `exclusions`; excluding an absent key is a no-op."""
    unknown = sorted(exclusions - set(packages))
    if unknown:
        logger.debug("Check exclusions not present in packages: %s", ", ".join(unknown))
    return MappingProxyType({k: v for k, v in packages.items() if k not in exclusions})


def compose(config: MatrixConfig, system: str, *, workers: int | None = None) -> Composition:
    matrix = expand(config.variants, config.artifact_settings(system), workers=workers)

    packages = package_registry(matrix, config.auxiliary_package)
    update = config.update_app
    apps = app_registry(
        matrix,
        ScriptApp(key=update.name, script_name=update.script_name, script=render_update_script(update)),
    )
    checks = check_registry(packages, config.check_exclusions)

    if config.default_package not in packages:
        raise CompositionError(f"Default package {config.default_package!r} is not in the package registry")
    if config.default_app not in apps:
        raise CompositionError(f"Default app {config.default_app!r} is not in the app registry")

    logger.debug(
        "Composed %s: %d package(s), %d app(s), %d check(s)", system, len(packages), len(apps), len(checks)
    )
    return Composition(
        system=system,
        matrix=matrix,
        packages=packages,
        apps=apps,
        checks=checks,
        default_package=config.default_package,
        default_app=config.default_app,
    )


def compose_all(config: MatrixConfig, *, workers: int | None = None) -> Mapping[str, Composition]:
    """One composition per configured system; any failure aborts all of them."""
    return MappingProxyType({system: compose(config, system, workers=workers) for system in config.systems})


def overlay(config: MatrixConfig, composition: Composition) -> Mapping[str, Mapping[str, PackageEntry]]:
    """The package registry re-exported under `config.overlay_namespace`."""
    namespace = config.overlay_namespace or config.project
    return MappingProxyType({namespace: composition.packages})
