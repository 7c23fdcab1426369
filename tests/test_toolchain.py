import os
import subprocess
from pathlib import Path

import pytest

from composer.config import default_config
from composer.registries import compose
from composer.toolchain import BuildToolchain, DownstreamBuildError


def _artifact():
    return compose(default_config(), "x86_64-linux").artifact("cn")


class FakeRunner:
    def __init__(self, *, produce: bool = True, returncode: int = 0) -> None:
        self.produce = produce
        self.returncode = returncode
        self.calls: list[tuple[list[str], dict]] = []

    def __call__(self, cmd, **kwargs):
        self.calls.append((cmd, kwargs))
        if self.returncode:
            raise subprocess.CalledProcessError(self.returncode, cmd, output="boom")
        if self.produce:
            target = cmd[cmd.index("--target-dir") + 1]
            exe = Path(target) / "release" / "dcompass"
            exe.parent.mkdir(parents=True, exist_ok=True)
            exe.write_text("binary", encoding="utf-8")
        return subprocess.CompletedProcess(cmd, 0, stdout="")


def test_command_for(tmp_path) -> None:
    cmd = BuildToolchain().command_for(_artifact(), out_dir=tmp_path)
    assert cmd == [
        "cargo",
        "build",
        "--release",
        "--manifest-path",
        "./dcompass/Cargo.toml",
        "--features",
        "geoip-cn",
        "--target-dir",
        str(tmp_path.resolve() / "target"),
    ]


def test_build_installs_executable(tmp_path) -> None:
    runner = FakeRunner()
    result = BuildToolchain(runner=runner).build(_artifact(), out_dir=tmp_path)
    assert result.executable == tmp_path.resolve() / "bin" / "dcompass"
    assert result.executable.read_text(encoding="utf-8") == "binary"
    (_cmd, kwargs), = runner.calls
    assert kwargs["cwd"] == "."
    assert kwargs["check"] is True


def test_build_failure_propagates(tmp_path) -> None:
    with pytest.raises(DownstreamBuildError, match="boom") as exc:
        BuildToolchain(runner=FakeRunner(returncode=101)).build(_artifact(), out_dir=tmp_path)
    assert exc.value.output == "boom"
    assert exc.value.command[:2] == ("cargo", "build")


def test_build_without_executable_fails(tmp_path) -> None:
    with pytest.raises(DownstreamBuildError, match="no executable"):
        BuildToolchain(runner=FakeRunner(produce=False)).build(_artifact(), out_dir=tmp_path)


def test_missing_builder(tmp_path) -> None:
    def runner(cmd, **kwargs):
        raise FileNotFoundError(cmd[0])

    with pytest.raises(DownstreamBuildError, match="Could not run"):
        BuildToolchain(runner=runner).build(_artifact(), out_dir=tmp_path)


def test_build_passes_name_version_and_system(tmp_path) -> None:
    runner = FakeRunner()
    BuildToolchain(runner=runner).build(_artifact(), out_dir=tmp_path)
    (_cmd, kwargs), = runner.calls
    assert kwargs["env"]["COMPOSER_PKG_NAME"] == "dcompass-cn"
    assert kwargs["env"]["COMPOSER_PKG_VERSION"] == "git"
    assert kwargs["env"]["COMPOSER_SYSTEM"] == "x86_64-linux"
    assert kwargs["env"].get("PATH") == os.environ.get("PATH")
