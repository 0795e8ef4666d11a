"""Command-line interface for ctfixture.

This module handles argument parsing, command routing, and user interaction.
"""

import argparse
import logging
import sys
from pathlib import Path

from .version import __version__
from .config import FixtureConfig
from .context import create_build_context
from .environment import FixtureEnvironment
from .errors import ContainerError


def setup_logging(verbose, quiet):
    """Configure logging based on verbosity flags."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(message)s", stream=sys.stderr)
    elif quiet:
        logging.basicConfig(level=logging.ERROR, stream=sys.stderr)
    else:
        logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)


def load_config(args):
    explicit_configs = [Path(c) for c in args.config] if args.config else None
    project_dir = Path(args.project_dir) if args.project_dir else Path.cwd()
    return FixtureConfig.load(project_dir, explicit_config_files=explicit_configs)


def cmd_digest(args):
    """Print the build context digest of a directory."""
    try:
        context = create_build_context(Path(args.directory))
    except ContainerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    print(context.digest)


def cmd_build(args):
    """Build an image unless its build context is unchanged."""
    try:
        config = load_config(args)
        with FixtureEnvironment.setup(config) as environment:
            built = environment.build_image(
                Path(args.directory),
                args.name,
                tag=args.tag,
                dockerfile=args.dockerfile,
                force=args.force,
            )
    except ContainerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not args.quiet:
        status = "built" if built else "up to date"
        print(f"[ctfixture] {args.name}:{args.tag} {status}", file=sys.stderr)


def cmd_clean(args):
    """Remove test containers left by previous runs."""
    try:
        config = load_config(args)
        # setup() sweeps leftover test containers
        with FixtureEnvironment.setup(config):
            pass
    except ContainerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def cmd_config_show(args):
    """Show the computed configuration."""
    try:
        config = load_config(args)
    except ContainerError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"# {config.path or 'built-in defaults'}")
    for section, values in config.to_dict().items():
        print(f"[{section}]")
        for key, value in values.items():
            print(f"  {key} = {repr(value)}")
        print()


def create_parser():
    """Create the main argument parser."""
    parser = argparse.ArgumentParser(
        prog="ctfixture",
        description="ctfixture provisions ephemeral containers for integration tests",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        allow_abbrev=False,  # Require full option names
    )

    parser.add_argument("--version", action="version", version=f"ctfixture {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress non-essential output")
    parser.add_argument(
        "--config",
        action="append",
        help="Path to configuration file (can be used multiple times, order matters)",
    )
    parser.add_argument(
        "-p",
        "--project-dir",
        help="Project directory, where .ctfixture.toml is searched from (default: cwd)",
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Available commands")

    digest_parser = subparsers.add_parser(
        "digest", help="Print the build context digest of a directory"
    )
    digest_parser.add_argument("directory", help="Build directory")

    build_parser = subparsers.add_parser(
        "build",
        help="Build a container image",
        description="""Build a container image from a build directory

The build is skipped when the directory content matches the digest recorded
by the previous build.

Examples:
    ctfixture build containers/server server           # Build server:latest if changed
    ctfixture build containers/server server --force   # Always build""",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    build_parser.add_argument("directory", help="Build directory")
    build_parser.add_argument("name", help="Image name")
    build_parser.add_argument("--tag", default="latest", help="Image tag (default: latest)")
    build_parser.add_argument(
        "--dockerfile", help="Dockerfile path relative to the build directory"
    )
    build_parser.add_argument(
        "--force", action="store_true", help="Build even if the content is unchanged"
    )

    subparsers.add_parser("clean", help="Remove test containers left by previous runs")

    config_parser = subparsers.add_parser("config", help="Configuration management commands")
    config_subparsers = config_parser.add_subparsers(
        dest="config_command", help="Config subcommands"
    )
    config_subparsers.add_parser("show", help="Show the computed configuration")

    return parser


def main(argv=None):
    """Main entry point."""
    if argv is None:
        argv = sys.argv[1:]

    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)

    if args.subcommand == "digest":
        cmd_digest(args)
    elif args.subcommand == "build":
        cmd_build(args)
    elif args.subcommand == "clean":
        cmd_clean(args)
    elif args.subcommand == "config":
        if args.config_command == "show" or args.config_command is None:
            cmd_config_show(args)
        else:
            parser.parse_args(["config", "--help"])
    else:
        parser.print_help()
        sys.exit(1)
