"""
composer package

This package implements a declarative build-matrix composer as a CLI-first utility.

Key responsibilities are split across modules:
- `variants.py`: the ordered, duplicate-free list of build variants
- `artifacts.py`: pure mapping from one variant to an artifact description
- `matrix.py`: fold the variants into the canonical name -> artifact mapping
- `registries.py`: project the mapping into packages / apps / checks / defaults / overlay
- `config.py`: load the matrix configuration (YAML or markdown frontmatter)
- `renderer.py`: deterministic rendering of auxiliary script bodies
- `toolchain.py`: isolated interface to the external build toolchain
- `cli.py`: CLI entrypoint and orchestration (load -> compose -> show/build)
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
