"""
cli.py

Responsibility: CLI entrypoint for the build-matrix composer.

High-level flow:
1) Load config (file or built-in defaults) -> `MatrixConfig`
2) Compose registries for the requested system -> `Composition`
3) One of:
   - `show`: dump registries / defaults / overlay keys as JSON or YAML
   - `build`: hand one package to the external toolchain
   - `script`: print or write the body of a script app
   - `systems`: list configured systems

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Composition: `registries.py`
- Script rendering: `renderer.py`
- Build toolchain: `toolchain.py`
"""

from __future__ import annotations

import argparse
import json
import logging
import platform
import shlex
import sys
from typing import Any

import yaml

from composer.artifacts import ArtifactDescription, GenerationError
from composer.config import AuxiliaryPackage, ConfigError, MatrixConfig, default_config, load_config
from composer.matrix import DuplicateKeyError
from composer.registries import REGISTRY_KINDS, ArtifactApp, Composition, CompositionError, ScriptApp, compose, overlay
from composer.renderer import RenderError, write_script
from composer.toolchain import BuildToolchain, DownstreamBuildError

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    pass


def _current_system() -> str:
    machine = platform.machine().lower()
    arch = {"amd64": "x86_64", "arm64": "aarch64", "i386": "i686", "i586": "i686"}.get(machine, machine)
    kernel = platform.system().lower()
    return f"{arch}-{kernel}"


def _load(args: argparse.Namespace) -> MatrixConfig:
    return load_config(args.config) if args.config else default_config()


def _resolve_system(config: MatrixConfig, requested: str | None) -> str:
    system = requested or _current_system()
    if system not in config.systems:
        if requested is None:
            # Unknown host; fall back to the first configured system.
            logger.debug("Host system %s not configured, using %s", system, config.systems[0])
            return config.systems[0]
        raise CLIError(f"Unknown system {system!r} (configured: {', '.join(config.systems)})")
    return system


def _entry_to_dict(entry: object) -> dict[str, Any]:
    if isinstance(entry, ArtifactDescription):
        return {
            "type": "artifact",
            "name": entry.name,
            "variant": entry.variant,
            "version": entry.version,
            "root": entry.root,
            "build_options": list(entry.build_options),
            "exe_path": entry.exe_path,
            "native_build_inputs": list(entry.native_build_inputs),
        }
    if isinstance(entry, AuxiliaryPackage):
        return {"type": "auxiliary", "name": entry.name, "description": entry.description}
    if isinstance(entry, ArtifactApp):
        return {"type": "app", "package": entry.artifact.name, "program": entry.program}
    if isinstance(entry, ScriptApp):
        return {"type": "script", "name": entry.script_name, "script": entry.script}
    raise TypeError(f"Unexpected registry entry: {entry!r}")


def _composition_to_dict(config: MatrixConfig, comp: Composition, kinds: list[str]) -> dict[str, Any]:
    out: dict[str, Any] = {"system": comp.system}
    for kind in kinds:
        out[kind] = {key: _entry_to_dict(entry) for key, entry in comp.registry(kind).items()}
    out["default_package"] = comp.default_package
    out["default_app"] = comp.default_app
    out["overlay"] = {ns: list(pkgs) for ns, pkgs in overlay(config, comp).items()}
    return out


def show_cmd(args: argparse.Namespace) -> int:
    config = _load(args)
    comp = compose(config, _resolve_system(config, args.system))
    kinds = list(REGISTRY_KINDS) if args.registry == "all" else [args.registry]
    data = _composition_to_dict(config, comp, kinds)

    if args.format == "yaml":
        sys.stdout.write(yaml.safe_dump(data, sort_keys=False))
    else:
        sys.stdout.write(json.dumps(data, indent=2) + "\n")
    return 0


def build_cmd(args: argparse.Namespace) -> int:
    config = _load(args)
    comp = compose(config, _resolve_system(config, args.system))
    key = args.key or comp.default_package
    artifact = comp.artifact(key)

    toolchain = BuildToolchain(command=shlex.split(args.builder))
    if args.dry_run:
        print(shlex.join(toolchain.command_for(artifact, out_dir=args.out_dir)))
        return 0

    result = toolchain.build(artifact, out_dir=args.out_dir)
    print(result.executable)
    return 0


def script_cmd(args: argparse.Namespace) -> int:
    config = _load(args)
    comp = compose(config, _resolve_system(config, args.system))
    app = comp.app(args.app or config.update_app.name)
    if not isinstance(app, ScriptApp):
        raise CLIError(f"App {app.key!r} is a build reference, not a script")

    if args.output:
        print(write_script(args.output, app.script))
    else:
        sys.stdout.write(app.script)
    return 0


def systems_cmd(args: argparse.Namespace) -> int:
    for system in _load(args).systems:
        print(system)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="composer", description="Declarative build-matrix composer")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    p.add_argument("--config", default=None, help="Matrix config (.yaml or markdown with frontmatter)")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("show", help="Print the composed registries")
    s.add_argument("--system", default=None, help="Target system (default: host system)")
    s.add_argument("--format", choices=("json", "yaml"), default="json")
    s.add_argument("--registry", choices=(*REGISTRY_KINDS, "all"), default="all")
    s.set_defaults(func=show_cmd)

    b = sub.add_parser("build", help="Build one package through the external toolchain")
    b.add_argument("key", nargs="?", default=None, help="Package key (default: the default package)")
    b.add_argument("--system", default=None, help="Target system (default: host system)")
    b.add_argument("--out-dir", default="result", help="Output directory (default: result)")
    b.add_argument("--builder", default="cargo build", help="Builder command (default: 'cargo build')")
    b.add_argument("--dry-run", action="store_true", help="Print the build command without running it")
    b.set_defaults(func=build_cmd)

    sc = sub.add_parser("script", help="Print or write the body of a script app")
    sc.add_argument("app", nargs="?", default=None, help="App key (default: the update app)")
    sc.add_argument("--system", default=None, help="Target system (default: host system)")
    sc.add_argument("--output", default=None, help="Write the script here instead of stdout")
    sc.set_defaults(func=script_cmd)

    sy = sub.add_parser("systems", help="List configured systems")
    sy.set_defaults(func=systems_cmd)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )
    try:
        return int(args.func(args))
    except (
        CLIError,
        ConfigError,
        GenerationError,
        DuplicateKeyError,
        CompositionError,
        RenderError,
        DownstreamBuildError,
        KeyError,
    ) as e:
        msg = e.args[0] if isinstance(e, KeyError) and e.args else e
        print(f"error: {msg}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
