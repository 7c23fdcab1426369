from dataclasses import replace

import pytest

from composer.artifacts import ArtifactSettings, GenerationError, derive_name, generate


def _settings(**overrides) -> ArtifactSettings:
    values = dict(
        project="dcompass",
        tool="dcompass",
        version="git",
        root=".",
        manifest_path="./dcompass/Cargo.toml",
        variant_prefix="geoip-",
        system="x86_64-linux",
        default_build_options=("--release",),
        native_build_inputs=("gnumake", "perl"),
    )
    values.update(overrides)
    return ArtifactSettings(**values)


def test_derive_name_strips_prefix() -> None:
    assert derive_name("geoip-maxmind", "geoip-") == "maxmind"


def test_derive_name_without_prefix_is_identity() -> None:
    assert derive_name("maxmind", "geoip-") == "maxmind"
    assert derive_name("geoip-cn", "") == "geoip-cn"


def test_derive_name_rejects_empty_result() -> None:
    with pytest.raises(GenerationError, match="empty"):
        derive_name("geoip-", "geoip-")


def test_derive_name_rejects_invalid_key() -> None:
    with pytest.raises(GenerationError):
        derive_name("geoip-a b", "geoip-")


def test_generate_describes_build() -> None:
    a = generate("geoip-cn", _settings())
    assert a.key == "cn"
    assert a.name == "dcompass-cn"
    assert a.version == "git"
    assert a.root == "."
    assert a.exe_path == "/bin/dcompass"
    assert a.tool_name == "dcompass"
    assert a.system == "x86_64-linux"
    assert a.build_options == (
        "--release",
        "--manifest-path",
        "./dcompass/Cargo.toml",
        "--features",
        "geoip-cn",
    )
    assert a.native_build_inputs == ("gnumake", "perl")


def test_generate_selects_exactly_one_feature() -> None:
    for variant in ("geoip-maxmind", "geoip-cn", "plain"):
        assert generate(variant, _settings()).feature_selectors == (variant,)


def test_generate_is_deterministic() -> None:
    assert generate("geoip-cn", _settings()) == generate("geoip-cn", _settings())


def test_generate_rejects_feature_in_default_options() -> None:
    with pytest.raises(GenerationError):
        generate("geoip-cn", _settings(default_build_options=("--features", "x")))


@pytest.mark.parametrize(
    "options",
    [
        ("--features", "geoip-cn"),
        ("--features=geoip-cn",),
        ("-F", "geoip-cn"),
        ("-Fgeoip-cn",),
        ("--all-features",),
        ("--no-default-features",),
    ],
)
def test_generate_rejects_every_feature_form_in_defaults(options) -> None:
    with pytest.raises(GenerationError, match="must not select features"):
        generate("geoip-maxmind", _settings(default_build_options=("--release", *options)))


def test_feature_selectors_parse_all_forms() -> None:
    a = generate("geoip-cn", _settings())
    a = replace(
        a,
        build_options=("--features=x", "-F", "y", "-Fz", "--all-features", "--release", *a.build_options),
    )
    assert a.feature_selectors == ("x", "y", "z", "--all-features", "geoip-cn")


def test_non_feature_options_are_allowed() -> None:
    a = generate("geoip-cn", _settings(default_build_options=("--release", "-j", "4", "--locked")))
    assert a.feature_selectors == ("geoip-cn",)
