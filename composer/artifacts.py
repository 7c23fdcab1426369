"""
artifacts.py

Responsibility: Map one variant identifier to a concrete build description.

`generate` only *describes* a build; nothing here touches the filesystem or network.
The description is what `toolchain.py` hands to the external builder later on.

Naming rule: the derived name is the variant with `settings.variant_prefix` stripped
(when present), otherwise the variant unchanged. It is used as the key in every registry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

FEATURES_FLAG = "--features"
FEATURES_SHORT = "-F"
MANIFEST_FLAG = "--manifest-path"

# Flags that change the feature set without naming a feature.
FEATURE_SET_FLAGS = ("--all-features", "--no-default-features")

_INVALID_KEY = re.compile(r"[\s/]")


class GenerationError(ValueError):
    pass


@dataclass(frozen=True)
class ArtifactSettings:
    """Everything `generate` needs besides the variant itself."""

    project: str
    tool: str
    version: str
    root: str
    manifest_path: str
    variant_prefix: str
    system: str
    default_build_options: tuple[str, ...] = ()
    native_build_inputs: tuple[str, ...] = ()


@dataclass(frozen=True)
class ArtifactDescription:
    """One buildable output of the matrix (not the built binary)."""

    key: str
    variant: str
    name: str
    version: str
    root: str
    build_options: tuple[str, ...]
    exe_path: str
    system: str
    native_build_inputs: tuple[str, ...] = ()

    @property
    def feature_selectors(self) -> tuple[str, ...]:
        """
        Every feature selection in the build options, in order.

        Covers `--features X`, `--features=X`, `-F X` and `-FX`; `--all-features` and
        `--no-default-features` are reported as the flag itself.
        """
        return _feature_selectors(self.build_options)

    @property
    def tool_name(self) -> str:
        return self.exe_path.rsplit("/", 1)[-1]


def _feature_selectors(options: tuple[str, ...]) -> tuple[str, ...]:
    found: list[str] = []
    it = iter(options)
    for opt in it:
        if opt in (FEATURES_FLAG, FEATURES_SHORT):
            found.append(next(it, ""))
        elif opt.startswith(FEATURES_FLAG + "="):
            found.append(opt[len(FEATURES_FLAG) + 1 :])
        elif opt.startswith(FEATURES_SHORT) and not opt.startswith("--"):
            found.append(opt[len(FEATURES_SHORT) :])
        elif opt in FEATURE_SET_FLAGS:
            found.append(opt)
    return tuple(found)


def derive_name(variant_id: str, prefix: str) -> str:
    """
    Strip `prefix` from `variant_id` if present, else return it unchanged.

    Raises GenerationError when the result cannot serve as a registry key.
    """
    derived = variant_id[len(prefix) :] if prefix and variant_id.startswith(prefix) else variant_id
    if not derived:
        raise GenerationError(f"Variant {variant_id!r} normalizes to an empty name (prefix {prefix!r}).")
    if _INVALID_KEY.search(derived):
        raise GenerationError(f"Variant {variant_id!r} normalizes to an invalid key: {derived!r}")
    return derived


def generate(variant_id: str, settings: ArtifactSettings) -> ArtifactDescription:
    key = derive_name(variant_id, settings.variant_prefix)

    # Exactly one feature selector per artifact.
    if _feature_selectors(settings.default_build_options):
        raise GenerationError(f"Default build options must not select features: {settings.default_build_options}")

    options = (
        *settings.default_build_options,
        MANIFEST_FLAG,
        settings.manifest_path,
        FEATURES_FLAG,
        variant_id,
    )
    return ArtifactDescription(
        key=key,
        variant=variant_id,
        name=f"{settings.project}-{key}",
        version=settings.version,
        root=settings.root,
        build_options=options,
        exe_path=f"/bin/{settings.tool}",
        system=settings.system,
        native_build_inputs=settings.native_build_inputs,
    )
