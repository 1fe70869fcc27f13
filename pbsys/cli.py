# SPDX-License-Identifier: MIT
"""Command-line interface for pbsys.

Usage:
    pbsys [options] [KEY=value ...] <project> [<project> ...]

The build script (``build.py`` by default) defines the projects; the
named projects and their dependencies are then built, cleaned or
installed. A build script may also call ``pbsys.main()`` itself, in which
case it is not loaded a second time.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import runpy
import sys
from pathlib import Path

from pbsys.core.engine import BuildEngine
from pbsys.core.errors import ConfigureError, LoadError, PbsysError
from pbsys.core.install import Installer, clean
from pbsys.core.options import BuildOptions, _reset_vars
from pbsys.core.project import project_registry
from pbsys.toolchains.registry import toolchain_registry

# Set up logging
logger = logging.getLogger("pbsys")


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Configure logging based on verbosity level."""
    if debug:
        level = logging.DEBUG
        fmt = "%(levelname)s: %(name)s: %(message)s"
    elif verbose:
        level = logging.INFO
        fmt = "%(message)s"
    else:
        level = logging.WARNING
        fmt = "%(levelname)s: %(message)s"

    logging.basicConfig(level=level, format=fmt)


def find_script(name: str, search_dir: Path | None = None) -> Path | None:
    """Find a build script by name.

    Args:
        name: Script name (e.g., 'build.py')
        search_dir: Directory to search in (default: current dir)

    Returns:
        Path to script if found, None otherwise.
    """
    if search_dir is None:
        search_dir = Path.cwd()

    script_path = search_dir / name
    if script_path.exists() and script_path.is_file():
        return script_path

    return None


def parse_variables(args: list[str]) -> tuple[dict[str, str], list[str]]:
    """Parse KEY=value arguments from a list.

    Args:
        args: List of arguments.

    Returns:
        Tuple of (variables dict, remaining args).
    """
    variables: dict[str, str] = {}
    remaining: list[str] = []

    for arg in args:
        if "=" in arg and not arg.startswith("-"):
            key, _, value = arg.partition("=")
            if key:  # Valid KEY=value
                variables[key] = value
            else:
                remaining.append(arg)
        else:
            remaining.append(arg)

    return variables, remaining


def run_script(script_path: Path, variables: dict[str, str] | None = None) -> int:
    """Execute a build script in this process so its projects register here.

    Args:
        script_path: Path to the script to run.
        variables: Build variables made visible through get_var().

    Returns:
        0 on success, 1 if the script raised an error.
    """
    if variables:
        os.environ["PBSYS_VARS"] = json.dumps(variables)
        _reset_vars()

    logger.info("Running %s", script_path)
    try:
        runpy.run_path(str(script_path), run_name="__pbsys__")
    except PbsysError as e:
        logger.error("%s: %s", script_path, e)
        return 1
    return 0


def build_options(args: argparse.Namespace) -> BuildOptions:
    """Combine environment defaults with command-line overrides."""
    options = BuildOptions.from_env()
    if args.build_dir:
        options.build_root = Path(args.build_dir)
    if args.prefix:
        options.install_root = Path(args.prefix)
    if args.release:
        options.debug = False
    if args.build_clean:
        options.clean_build = True
        options.clean_dependencies = True
    if args.timeout is not None:
        options.command_timeout = args.timeout
    return options


def cmd_clean(names: list[str], options: BuildOptions) -> int:
    """Remove the build directories of the named projects."""
    for name in names:
        clean(project_registry[name], options)
    return 0


def cmd_build(names: list[str], options: BuildOptions, install: bool) -> int:
    """Build the named projects, then install them if requested."""
    engine = BuildEngine(options)
    report = engine.build(names)

    for name in report.failed:
        error = report.outcomes[name].error
        if error is not None:
            print(f"{name}: {error.kind}: {error}", file=sys.stderr)

    if not report.success:
        return 1
    if report.commands == 0:
        logger.info("Nothing to do, everything is up to date")

    if install:
        installer = Installer(options)
        try:
            for name in names:
                project = project_registry[name]
                installer.install(project, toolchain_registry.lookup(project.toolchain))
        except (PbsysError, OSError) as e:
            logger.error("Install failed: %s", e)
            return 1
    return 0


def create_parser() -> argparse.ArgumentParser:
    from pbsys import __version__

    parser = argparse.ArgumentParser(
        prog="pbsys",
        description="Incremental build orchestrator for C and C++ projects.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--debug", action="store_true", help="Debug output")
    parser.add_argument("-r", "--release", action="store_true", help="Build for release")
    parser.add_argument(
        "-b", "--build-clean", action="store_true", help="Make a clean build"
    )
    parser.add_argument(
        "-c", "--clean", action="store_true", help="Clean the projects' build dirs"
    )
    parser.add_argument(
        "-i",
        "--install",
        action="store_true",
        help="Install the project(s) that are installable",
    )
    parser.add_argument("-B", "--build-dir", help="Build directory (default: build)")
    parser.add_argument("--prefix", help="Install root")
    parser.add_argument(
        "-t",
        "--toolchain",
        action="append",
        default=[],
        metavar="FILE",
        help="Load an additional toolchain definition (repeatable)",
    )
    parser.add_argument(
        "--no-builtin-toolchains",
        action="store_true",
        help="Only load toolchains given with --toolchain",
    )
    parser.add_argument("-f", "--build-script", help="Path to build.py script")
    parser.add_argument(
        "--timeout", type=float, help="Seconds before a compiler command is killed"
    )
    parser.add_argument(
        "projects", nargs="*", help="Projects to build, or build variables (KEY=value)"
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the pbsys CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.debug)

    variables, names = parse_variables(args.projects)

    # Toolchain errors are fatal before anything is built
    try:
        if args.no_builtin_toolchains:
            for path in args.toolchain:
                toolchain_registry.load(path)
        else:
            toolchain_registry.load_all(args.toolchain)
    except LoadError as e:
        logger.error("%s", e)
        return 1

    if len(project_registry) == 0:
        script: Path | None
        if args.build_script:
            script = Path(args.build_script)
            if not script.is_file():
                logger.error("Build script not found: %s", args.build_script)
                return 1
        else:
            script = find_script("build.py")
            if script is None:
                logger.error("No build.py found in current directory")
                return 1
        result = run_script(script, variables)
        if result != 0:
            return result

    if not names:
        parser.print_usage()
        return 1

    unknown = [n for n in names if n not in project_registry]
    if unknown:
        logger.error("Unknown project(s): %s", ", ".join(unknown))
        logger.info("Defined projects: %s", ", ".join(project_registry.names()))
        return 1

    try:
        options = build_options(args)
    except ConfigureError as e:
        logger.error("%s", e)
        return 1
    if args.clean:
        return cmd_clean(names, options)
    return cmd_build(names, options, args.install)


if __name__ == "__main__":
    sys.exit(main())
