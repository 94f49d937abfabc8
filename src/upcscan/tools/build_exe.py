"""Bundle the scanner GUI into a standalone executable.

The deployment lookup endpoint is not baked into the code: pass the ``.env``
that defines ``UPCSCAN_LOOKUP_URL`` with ``--env-file`` and it is shipped at the
root of the bundle, where :func:`upcscan.config.bundled_env_file` finds it.
"""

from __future__ import annotations

import argparse
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..config import ENV_FILE_NAME

ENTRY_POINT = Path(__file__).resolve().parents[1] / "__main__.py"
# libzbar is loaded through ctypes, so PyInstaller's import analysis never sees it.
COLLECTED_BINARIES = ("pyzbar",)


@dataclass(frozen=True)
class BuildOptions:
    name: str = "upcscan-gui"
    dist_path: Optional[Path] = None
    onefile: bool = True
    clean: bool = True
    console: bool = False
    env_file: Optional[Path] = None


def pyinstaller_args(options: BuildOptions, entry_point: Path = ENTRY_POINT) -> List[str]:
    """Translate build options into a PyInstaller command line.

    Raises ``FileNotFoundError`` for a missing env file and ``ValueError`` when it
    is not named ``.env``, since the frozen app only looks for that name.
    """

    args = ["--noconfirm", f"--name={options.name}", "--console" if options.console else "--windowed"]
    args.extend(f"--collect-binaries={package}" for package in COLLECTED_BINARIES)
    if options.env_file is not None:
        env_file = Path(options.env_file).resolve()
        if not env_file.is_file():
            raise FileNotFoundError(f"env file not found: {env_file}")
        if env_file.name != ENV_FILE_NAME:
            raise ValueError(f"env file must be named {ENV_FILE_NAME!r}, got {env_file.name!r}")
        args.append(f"--add-data={env_file}{os.pathsep}.")
    if options.clean:
        args.append("--clean")
    if options.onefile:
        args.append("--onefile")
    if options.dist_path is not None:
        args.append(f"--distpath={Path(options.dist_path).resolve()}")
    args.append(str(entry_point))
    return args


def build_executable(options: Optional[BuildOptions] = None) -> List[str]:
    """Run PyInstaller on the GUI launcher and return the arguments it was given."""

    try:
        import PyInstaller.__main__ as pyinstaller_main
    except ImportError as exc:
        raise RuntimeError(
            "PyInstaller is required to build the executable. Install the 'build' extra first."
        ) from exc

    args = pyinstaller_args(options or BuildOptions())
    pyinstaller_main.run(args)
    return args


def main(argv: Sequence[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Bundle the upcscan GUI into an executable.")
    parser.add_argument("--dist", type=Path, default=None, help="Output directory (defaults to PyInstaller's dist)")
    parser.add_argument("--name", default=BuildOptions.name, help="Name of the generated executable.")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help=f"{ENV_FILE_NAME} file with the lookup endpoint to ship inside the bundle.",
    )
    parser.add_argument("--console", action="store_true", help="Keep a console window for log output.")
    parser.add_argument("--onedir", action="store_true", help="Create a folder-based distribution.")
    parser.add_argument("--no-clean", action="store_true", help="Reuse PyInstaller's cache between builds.")

    args = parser.parse_args(argv)
    options = BuildOptions(
        name=args.name,
        dist_path=args.dist,
        onefile=not args.onedir,
        clean=not args.no_clean,
        console=args.console,
        env_file=args.env_file,
    )
    try:
        build_executable(options)
    except (FileNotFoundError, ValueError) as exc:
        parser.error(str(exc))


if __name__ == "__main__":  # pragma: no cover - CLI convenience
    main()


__all__ = ["BuildOptions", "build_executable", "main", "pyinstaller_args"]
