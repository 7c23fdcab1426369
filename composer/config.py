"""
config.py

Responsibility: Load the matrix configuration into a deterministic, typed model.

Two input shapes are accepted:
- A plain YAML mapping (`.yaml` / `.yml`).
- A markdown file whose YAML frontmatter holds the same mapping.

Every key is optional; anything missing falls back to `default_config()`.
The resulting `MatrixConfig` is built once and passed explicitly to every consumer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from composer.artifacts import ArtifactSettings, GenerationError, derive_name
from composer.variants import VariantError, VariantRegistry

# flake-utils `defaultSystems`
DEFAULT_SYSTEMS: tuple[str, ...] = (
    "aarch64-linux",
    "aarch64-darwin",
    "i686-linux",
    "x86_64-darwin",
    "x86_64-linux",
)


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class AuxiliaryPackage:
    """Hand-authored package entry that is not derived from any variant."""

    name: str
    description: str = ""


@dataclass(frozen=True)
class Download:
    url: str
    file: str


@dataclass(frozen=True)
class UpdateAppSpec:
    """The data-refresh app: a script body, not a build reference."""

    name: str = "update"
    script_name: str = "dcompass-update-data"
    data_dir: str = "./data"
    tools: tuple[str, ...] = ("wget", "gzip")
    downloads: tuple[Download, ...] = ()
    compress: tuple[str, ...] = ()


@dataclass(frozen=True)
class MatrixConfig:
    """Parsed matrix configuration; the only input of `registries.compose`."""

    project: str
    tool: str
    version: str
    root: str
    manifest_path: str
    variant_prefix: str
    variants: VariantRegistry
    default_package: str
    default_app: str
    systems: tuple[str, ...] = DEFAULT_SYSTEMS
    check_exclusions: frozenset[str] = frozenset()
    overlay_namespace: str = ""
    default_build_options: tuple[str, ...] = ()
    native_build_inputs: tuple[str, ...] = ()
    auxiliary_package: AuxiliaryPackage = field(default_factory=lambda: AuxiliaryPackage(name="commit"))
    update_app: UpdateAppSpec = field(default_factory=UpdateAppSpec)

    def artifact_settings(self, system: str) -> ArtifactSettings:
        return ArtifactSettings(
            project=self.project,
            tool=self.tool,
            version=self.version,
            root=self.root,
            manifest_path=self.manifest_path,
            variant_prefix=self.variant_prefix,
            system=system,
            default_build_options=self.default_build_options,
            native_build_inputs=self.native_build_inputs,
        )


def default_config() -> MatrixConfig:
    """The dcompass matrix: two GeoIP backends, `maxmind` as the default."""
    return MatrixConfig(
        project="dcompass",
        tool="dcompass",
        version="git",
        root=".",
        manifest_path="./dcompass/Cargo.toml",
        variant_prefix="geoip-",
        variants=VariantRegistry(["geoip-maxmind", "geoip-cn"]),
        default_package="maxmind",
        default_app="maxmind",
        check_exclusions=frozenset({"commit"}),
        overlay_namespace="dcompass",
        default_build_options=("--release",),
        # required for vendoring
        native_build_inputs=("gnumake", "perl"),
        auxiliary_package=AuxiliaryPackage(
            name="commit",
            description="Pre-commit toolchain environment (not a standard build artifact).",
        ),
        update_app=UpdateAppSpec(
            downloads=(
                Download(
                    url="https://github.com/Dreamacro/maxmind-geoip/releases/latest/download/Country.mmdb",
                    file="full.mmdb",
                ),
                Download(url="https://github.com/Hackl0us/GeoIP2-CN/raw/release/Country.mmdb", file="cn.mmdb"),
                Download(url="https://github.com/17mon/china_ip_list/raw/master/china_ip_list.txt", file="ipcn.txt"),
            ),
            compress=("ipcn.txt",),
        ),
    )


def _parse_yaml_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """
    If the markdown begins with YAML frontmatter delimited by '---', parse it.
    Returns (frontmatter_dict_or_none, remaining_markdown_text).
    """
    if not text.startswith("---\n"):
        return None, text

    end = text.find("\n---\n", 4)
    if end == -1:
        raise ConfigError("YAML frontmatter starts with '---' but no closing '---' was found.")

    fm_text = text[4:end]
    rest = text[end + len("\n---\n") :]
    data = _safe_load(fm_text)
    return data, rest


def _safe_load(text: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping/object at the top level.")
    return data


def _str(data: dict[str, Any], key: str, default: str) -> str:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, (str, int, float)) or isinstance(raw, bool):
        raise ConfigError(f"`{key}` must be a string.")
    return str(raw).strip()


def _str_list(data: dict[str, Any], key: str, default: tuple[str, ...], *, strip: bool = True) -> tuple[str, ...]:
    raw = data.get(key)
    if raw is None:
        return default
    if not isinstance(raw, list) or not all(isinstance(x, str) for x in raw):
        raise ConfigError(f"`{key}` must be a list of strings.")
    return tuple(x.strip() if strip else x for x in raw)


def _mapping(data: dict[str, Any], key: str) -> dict[str, Any]:
    raw = data.get(key) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"`{key}` must be an object/mapping when provided.")
    return raw


def _parse_update_app(raw: dict[str, Any], base: UpdateAppSpec) -> UpdateAppSpec:
    downloads = base.downloads
    if raw.get("downloads") is not None:
        items = raw["downloads"]
        if not isinstance(items, list):
            raise ConfigError("`update_app.downloads` must be a list.")
        parsed: list[Download] = []
        for item in items:
            if not isinstance(item, dict) or not item.get("url") or not item.get("file"):
                raise ConfigError("Each `update_app.downloads` entry needs `url` and `file`.")
            parsed.append(Download(url=str(item["url"]).strip(), file=str(item["file"]).strip()))
        downloads = tuple(parsed)

    return UpdateAppSpec(
        name=_str(raw, "name", base.name),
        script_name=_str(raw, "script_name", base.script_name),
        data_dir=_str(raw, "data_dir", base.data_dir),
        tools=_str_list(raw, "tools", base.tools),
        downloads=downloads,
        compress=_str_list(raw, "compress", base.compress),
    )


def _app_keys(variants: VariantRegistry, prefix: str, update_app: UpdateAppSpec) -> set[str]:
    try:
        keys = {derive_name(v, prefix) for v in variants}
    except GenerationError as e:
        raise ConfigError(str(e)) from e
    return keys | {update_app.name}


def config_from_mapping(data: dict[str, Any], base: MatrixConfig | None = None) -> MatrixConfig:
    """Overlay `data` on `base` (default: `default_config()`)."""
    base = base or default_config()

    try:
        variants = VariantRegistry(_str_list(data, "variants", tuple(base.variants), strip=False))
    except VariantError as e:
        raise ConfigError(str(e)) from e
    if not variants:
        raise ConfigError("`variants` must list at least one variant.")

    systems = _str_list(data, "systems", base.systems)
    if not systems:
        raise ConfigError("`systems` must list at least one system.")

    aux_raw = _mapping(data, "auxiliary_package")
    auxiliary = AuxiliaryPackage(
        name=_str(aux_raw, "name", base.auxiliary_package.name),
        description=_str(aux_raw, "description", base.auxiliary_package.description),
    )

    default_package = _str(data, "default_package", base.default_package)
    variant_prefix = _str(data, "variant_prefix", base.variant_prefix)
    update_app = _parse_update_app(_mapping(data, "update_app"), base.update_app)

    if "default_app" in data:
        default_app = _str(data, "default_app", base.default_app)
    elif "default_package" in data and default_package in _app_keys(variants, variant_prefix, update_app):
        # The default app follows the default package when that package is runnable.
        default_app = default_package
    else:
        default_app = base.default_app

    config = replace(
        base,
        project=_str(data, "project", base.project),
        tool=_str(data, "tool", base.tool),
        version=_str(data, "version", base.version),
        root=_str(data, "root", base.root),
        manifest_path=_str(data, "manifest_path", base.manifest_path),
        variant_prefix=variant_prefix,
        variants=variants,
        systems=systems,
        default_package=default_package,
        default_app=default_app,
        check_exclusions=frozenset(_str_list(data, "check_exclusions", tuple(sorted(base.check_exclusions)))),
        overlay_namespace=_str(data, "overlay_namespace", base.overlay_namespace),
        default_build_options=_str_list(data, "default_build_options", base.default_build_options),
        native_build_inputs=_str_list(data, "native_build_inputs", base.native_build_inputs),
        auxiliary_package=auxiliary,
        update_app=update_app,
    )

    for key in ("project", "tool", "default_package", "default_app"):
        if not getattr(config, key):
            raise ConfigError(f"`{key}` must not be empty.")
    return config


def load_config(config_path: str | Path) -> MatrixConfig:
    """
    Load a matrix configuration file.

    Recognised keys mirror `MatrixConfig` fields; nested `auxiliary_package` and
    `update_app` are mappings. Unknown keys are ignored.
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Config file does not exist: {path}")
    text = path.read_text(encoding="utf-8")

    if path.suffix in (".yaml", ".yml"):
        data = _safe_load(text)
    else:
        frontmatter, _rest = _parse_yaml_frontmatter(text)
        if frontmatter is None:
            raise ConfigError(f"{path} has no YAML frontmatter.")
        data = frontmatter

    return config_from_mapping(data)
