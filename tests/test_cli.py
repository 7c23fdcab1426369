import json

import yaml

from composer.cli import main


def test_show_json(capsys) -> None:
    assert main(["show", "--system", "x86_64-linux"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["system"] == "x86_64-linux"
    assert list(data["packages"]) == ["maxmind", "cn", "commit"]
    assert list(data["checks"]) == ["maxmind", "cn"]
    assert list(data["apps"]) == ["maxmind", "cn", "update"]
    assert data["default_package"] == "maxmind"
    assert data["overlay"] == {"dcompass": ["maxmind", "cn", "commit"]}
    assert data["packages"]["cn"]["build_options"][-2:] == ["--features", "geoip-cn"]
    assert data["apps"]["update"]["type"] == "script"


def test_show_single_registry_yaml(capsys) -> None:
    assert main(["show", "--system", "x86_64-linux", "--registry", "checks", "--format", "yaml"]) == 0
    data = yaml.safe_load(capsys.readouterr().out)
    assert "packages" not in data
    assert list(data["checks"]) == ["maxmind", "cn"]


def test_show_unknown_system(capsys) -> None:
    assert main(["show", "--system", "riscv64-plan9"]) == 1
    assert "Unknown system" in capsys.readouterr().err


def test_show_with_config_collision(tmp_path, capsys) -> None:
    cfg = tmp_path / "matrix.yaml"
    cfg.write_text("variants: [geoip-x, x]\ndefault_package: x\n", encoding="utf-8")
    assert main(["--config", str(cfg), "show", "--system", "x86_64-linux"]) == 1
    captured = capsys.readouterr()
    assert captured.out == ""
    assert "both normalize to 'x'" in captured.err


def test_build_dry_run(tmp_path, capsys) -> None:
    out = tmp_path / "out"
    assert main(["build", "cn", "--system", "x86_64-linux", "--out-dir", str(out), "--dry-run"]) == 0
    line = capsys.readouterr().out.strip()
    assert line.startswith("cargo build --release --manifest-path ./dcompass/Cargo.toml --features geoip-cn")
    assert not out.exists()


def test_build_rejects_auxiliary_package(tmp_path, capsys) -> None:
    assert main(["build", "commit", "--system", "x86_64-linux", "--out-dir", str(tmp_path), "--dry-run"]) == 1
    assert "not a build artifact" in capsys.readouterr().err


def test_build_unknown_key(capsys) -> None:
    assert main(["build", "full", "--system", "x86_64-linux", "--dry-run"]) == 1
    assert "No package named 'full'" in capsys.readouterr().err


def test_script_stdout(capsys) -> None:
    assert main(["script"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("#!/usr/bin/env bash\nset -e\n")


def test_script_output_file(tmp_path, capsys) -> None:
    target = tmp_path / "update.sh"
    assert main(["script", "update", "--output", str(target)]) == 0
    assert target.read_text(encoding="utf-8").startswith("#!/usr/bin/env bash")


def test_script_rejects_artifact_app(capsys) -> None:
    assert main(["script", "maxmind"]) == 1
    assert "build reference" in capsys.readouterr().err


def test_systems(capsys) -> None:
    assert main(["systems"]) == 0
    assert "x86_64-linux" in capsys.readouterr().out.split()
