"""
variants.py

Responsibility: Hold the ordered list of build variants the matrix is expanded from.

A variant is an opaque feature name of the underlying project (e.g. `geoip-maxmind`).
The registry only guarantees order and uniqueness; naming rules live in `artifacts.py`.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence


class VariantError(ValueError):
    pass


class VariantRegistry(Sequence[str]):
    """Immutable, ordered, duplicate-free sequence of variant identifiers."""

    __slots__ = ("_variants",)

    def __init__(self, variants: Iterable[str]) -> None:
        seen: set[str] = set()
        ordered: list[str] = []
        for variant in variants:
            if not isinstance(variant, str):
                raise VariantError(f"Variant identifiers must be strings, got {type(variant).__name__}: {variant!r}")
            if not variant.strip():
                raise VariantError("Variant identifiers must be non-empty.")
            if variant != variant.strip():
                raise VariantError(f"Variant identifier has surrounding whitespace: {variant!r}")
            if variant in seen:
                raise VariantError(f"Duplicate variant identifier: {variant}")
            seen.add(variant)
            ordered.append(variant)
        self._variants: tuple[str, ...] = tuple(ordered)

    def __getitem__(self, index):  # type: ignore[override]
        return self._variants[index]

    def __len__(self) -> int:
        return len(self._variants)

    def __iter__(self) -> Iterator[str]:
        return iter(self._variants)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, VariantRegistry):
            return self._variants == other._variants
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._variants)

    def __repr__(self) -> str:
        return f"VariantRegistry({list(self._variants)!r})"

    def with_variant(self, variant: str) -> VariantRegistry:
        """Return a new registry with `variant` appended."""
        return VariantRegistry([*self._variants, variant])
