"""
renderer.py

Responsibility: Deterministically render script bodies for hand-authored apps.

Rules:
- Templates are Jinja2 with StrictUndefined; a missing variable is an error.
- Output newlines are normalized to "\n" and a trailing newline is kept.
- Rendering never downloads or executes anything; the body is inert text.

This module intentionally does NOT know about registries, builds, or CLI parsing.
"""

from __future__ import annotations

import os
import shlex
import stat
from pathlib import Path
from typing import Any

from jinja2 import Environment, StrictUndefined, TemplateError

from composer.config import UpdateAppSpec

UPDATE_SCRIPT_TEMPLATE = """\
#!/usr/bin/env bash
set -e
for tool in {{ tools | map("shquote") | join(" ") }}; do
  command -v "$tool" >/dev/null || { echo "{{ script_name }}: $tool not found on PATH" >&2; exit 127; }
done
mkdir -p {{ data_dir | shquote }}
{% for d in downloads -%}
wget -O {{ (data_dir ~ "/" ~ d.file) | shquote }} --show-progress {{ d.url | shquote }}
{% endfor -%}
{% for name in compress -%}
gzip -f -k {{ (data_dir ~ "/" ~ name) | shquote }}
{% endfor -%}
"""


class RenderError(RuntimeError):
    pass


def _environment() -> Environment:
    env = Environment(
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
    )
    env.filters["shquote"] = shlex.quote
    return env


def render_script(template_text: str, context: dict[str, Any]) -> str:
    try:
        out = _environment().from_string(template_text).render(**context)
    except TemplateError as e:
        raise RenderError(f"Failed rendering script template: {e}") from e
    return out.replace("\r\n", "\n")


def render_update_script(spec: UpdateAppSpec, template_text: str = UPDATE_SCRIPT_TEMPLATE) -> str:
    """
    Render the data-refresh script body.

    The script keeps the caller's PATH and fails with status 127 before doing
    any work if one of `spec.tools` cannot be found on it.
    """
    context = {
        "script_name": spec.script_name,
        "tools": list(spec.tools),
        "data_dir": spec.data_dir.rstrip("/") or ".",
        "downloads": list(spec.downloads),
        "compress": list(spec.compress),
    }
    return render_script(template_text, context)


def write_script(path: str | Path, body: str) -> Path:
    """Write `body` to `path` and mark it executable."""
    dst = Path(path)
    dst.parent.mkdir(parents=True, exist_ok=True)
    dst.write_text(body, encoding="utf-8", newline="\n")
    mode = os.stat(dst).st_mode
    os.chmod(dst, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return dst
