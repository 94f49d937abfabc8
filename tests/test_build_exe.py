import os
import sys
from pathlib import Path
from types import ModuleType

import pytest

from upcscan.tools import build_exe
from upcscan.tools.build_exe import BuildOptions, pyinstaller_args


def test_default_build_is_windowed_onefile_with_zbar_binaries() -> None:
    args = pyinstaller_args(BuildOptions(), entry_point=Path("launcher.py"))

    assert args[:3] == ["--noconfirm", "--name=upcscan-gui", "--windowed"]
    assert "--collect-binaries=pyzbar" in args
    assert "--onefile" in args
    assert "--clean" in args
    assert not any(arg.startswith("--add-data") for arg in args)
    assert args[-1] == "launcher.py"


def test_env_file_is_shipped_at_bundle_root(tmp_path: Path) -> None:
    env_file = tmp_path / ".env"
    env_file.write_text("UPCSCAN_LOOKUP_URL=https://example.test/lookup\n", encoding="utf-8")

    args = pyinstaller_args(BuildOptions(env_file=env_file, console=True, onefile=False, clean=False))

    assert f"--add-data={env_file.resolve()}{os.pathsep}." in args
    assert "--console" in args
    assert "--windowed" not in args
    assert "--onefile" not in args
    assert "--clean" not in args


def test_env_file_must_exist_and_be_named_dotenv(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        pyinstaller_args(BuildOptions(env_file=tmp_path / ".env"))

    renamed = tmp_path / "prod.env"
    renamed.write_text("", encoding="utf-8")
    with pytest.raises(ValueError, match="'.env'"):
        pyinstaller_args(BuildOptions(env_file=renamed))


def test_build_executable_runs_pyinstaller_on_the_package_launcher(monkeypatch, tmp_path: Path) -> None:
    recorded: dict[str, list[str]] = {}

    stub_parent = ModuleType("PyInstaller")
    stub_main = ModuleType("PyInstaller.__main__")
    stub_main.run = lambda args: recorded.update(args=list(args))  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "PyInstaller", stub_parent)
    monkeypatch.setitem(sys.modules, "PyInstaller.__main__", stub_main)

    returned = build_exe.build_executable(BuildOptions(name="scanner", dist_path=tmp_path))

    args = recorded["args"]
    assert returned == args
    assert "--name=scanner" in args
    assert f"--distpath={tmp_path.resolve()}" in args
    assert Path(args[-1]).parts[-2:] == ("upcscan", "__main__.py")


def test_build_executable_without_pyinstaller_explains_the_extra(monkeypatch) -> None:
    monkeypatch.setitem(sys.modules, "PyInstaller.__main__", None)

    with pytest.raises(RuntimeError, match="'build' extra"):
        build_exe.build_executable()


def test_main_maps_cli_flags_to_build_options(monkeypatch, tmp_path: Path) -> None:
    captured: list[BuildOptions] = []
    monkeypatch.setattr(build_exe, "build_executable", captured.append)
    env_file = tmp_path / ".env"

    build_exe.main(
        ["--dist", str(tmp_path), "--onedir", "--no-clean", "--name", "demo", "--console", "--env-file", str(env_file)]
    )

    assert captured == [
        BuildOptions(name="demo", dist_path=tmp_path, onefile=False, clean=False, console=True, env_file=env_file)
    ]


def test_main_reports_a_bad_env_file_as_usage_error(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setitem(sys.modules, "PyInstaller", ModuleType("PyInstaller"))
    stub_main = ModuleType("PyInstaller.__main__")
    stub_main.run = lambda args: None  # type: ignore[attr-defined]
    monkeypatch.setitem(sys.modules, "PyInstaller.__main__", stub_main)

    with pytest.raises(SystemExit) as excinfo:
        build_exe.main(["--env-file", str(tmp_path / "missing.env")])

    assert excinfo.value.code == 2
