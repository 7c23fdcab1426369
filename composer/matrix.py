"""
matrix.py

Responsibility: Fold the variant registry through `generate` into the canonical mapping.

The returned mapping is the single source of truth for every registry in
`registries.py`. It is read-only and keeps registry order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from types import MappingProxyType

from composer.artifacts import ArtifactDescription, ArtifactSettings, generate

logger = logging.getLogger(__name__)


class DuplicateKeyError(ValueError):
    pass


def expand(
    variants: Iterable[str],
    settings: ArtifactSettings,
    *,
    workers: int | None = None,
) -> Mapping[str, ArtifactDescription]:
    """
    Generate one artifact per variant and key it by derived name.

    With `workers`, generation runs in a thread pool; the collision check still
    only runs once every artifact exists. Any error aborts the whole expansion.
    """
    ordered = list(variants)

    if workers and workers > 1 and len(ordered) > 1:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            artifacts = list(pool.map(lambda v: generate(v, settings), ordered))
    else:
        artifacts = [generate(v, settings) for v in ordered]

    result: dict[str, ArtifactDescription] = {}
    for artifact in artifacts:
        existing = result.get(artifact.key)
        if existing is not None:
            raise DuplicateKeyError(
                f"Variants {existing.variant!r} and {artifact.variant!r} both normalize to {artifact.key!r}"
            )
        result[artifact.key] = artifact

    logger.debug("Expanded %d variant(s) for %s: %s", len(result), settings.system, ", ".join(result))
    return MappingProxyType(result)
