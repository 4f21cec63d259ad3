"""Command-line interface for wrapperize."""

import sys
import argparse
import logging
from pathlib import Path

from ._config import Settings
from ._exceptions import (
    NotFoundError,
    StateError,
    ValidationError,
    WrapperizeError,
    WriteError,
)
from ._models import WrapSpec
from ._orchestrator import InstallOrchestrator


log = logging.getLogger(__name__)


EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_NOT_FOUND = 3
EXIT_PERMISSION = 4
EXIT_STATE = 5
EXIT_HOOK_WARNING = 6
EXIT_INTERRUPTED = 130

# Most specific first.
_EXIT_CODES: list[tuple[type[WrapperizeError], int]] = [
    (ValidationError, EXIT_USAGE),
    (NotFoundError, EXIT_NOT_FOUND),
    (WriteError, EXIT_PERMISSION),
    (StateError, EXIT_STATE),
]


def exit_code_for(error: WrapperizeError) -> int:
    """Map an exception to the process exit code."""
    for error_type, code in _EXIT_CODES:
        if isinstance(error, error_type):
            return code
    return EXIT_FAILURE


def setup_logging(verbose: bool = False) -> None:
    """Setup logging configuration.

    Args:
        verbose: Enable verbose logging

    """
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def wrap_command(orchestrator: InstallOrchestrator, args: argparse.Namespace) -> int:
    """Wrap a program.

    Returns:
        Exit code

    """
    spec = WrapSpec.build(
        args.target,
        args=args.args,
        env=args.env,
        trailing_args=args.trailing_args,
    )
    outcome = orchestrator.wrap(spec, update=args.update, install_hooks=not args.no_hooks)

    verb = "updated" if outcome.updated else "created"
    print(f"wrapper successfully {verb} for `{outcome.original_path}`")
    print(f"  original moved to: {outcome.relocated_path}")
    for hook in outcome.hooks:
        print(f"  pacman {hook.verb} hook: {hook.path}")

    if outcome.warnings:
        for warning in outcome.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        if args.strict_hooks:
            return EXIT_HOOK_WARNING
    return EXIT_OK


def unwrap_command(orchestrator: InstallOrchestrator, args: argparse.Namespace) -> int:
    """Restore a wrapped program."""
    target = orchestrator.unwrap(args.target, remove_hooks=not args.keep_hooks)
    print(f"restored original executable at `{target.original_path}`")
    return EXIT_OK


def clean_command(orchestrator: InstallOrchestrator, args: argparse.Namespace) -> int:
    """Remove traces of a wrap whose package was removed."""
    removed = orchestrator.clean(args.path)
    for path in removed:
        print(f"removed {path}")
    if not removed:
        print(f"nothing to clean for `{args.path}`")
    return EXIT_OK


def info_command(orchestrator: InstallOrchestrator, args: argparse.Namespace) -> int:
    """Show what wrapperize knows about a program."""
    target = orchestrator.resolver.resolve(args.target)

    print(f"Program: {target.original_path}")
    print(f"Wrapped: {'yes' if target.is_wrapped else 'no'}")
    print(f"Relocated path: {target.relocated_path}"
          + ("" if target.relocated_exists else " (not present)"))

    spec = target.record.spec if target.record else None
    if spec:
        if spec.args:
            print(f"Args: {' '.join(spec.args)}")
        if spec.trailing_args:
            print(f"Trailing args: {' '.join(spec.trailing_args)}")
        if spec.env:
            print("Environment:")
            for assignment in spec.env:
                print(f"  - {assignment}")

    hooks = [p for p in orchestrator.hooks.hook_paths(target.original_path) if p.exists()]
    if hooks:
        print("Hooks:")
        for path in hooks:
            print(f"  - {path}")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='wrapperize',
        description='Wrap an executable to always execute with additional arguments '
                    'or environment variables.'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Enable verbose logging'
    )
    parser.add_argument(
        '--store-dir',
        type=Path,
        help='Directory relocated originals are kept in (default: /var/lib/wrapperize/originals)'
    )
    parser.add_argument(
        '--hook-dir',
        type=Path,
        help='pacman hook directory (default: /etc/pacman.d/hooks)'
    )
    parser.add_argument(
        '--config',
        type=Path,
        help='JSON settings file (default: $WRAPPERIZE_CONFIG or /etc/wrapperize.json)'
    )

    commands = parser.add_subparsers(dest='command', metavar='COMMAND')

    wrap = commands.add_parser('wrap', help='Wrap a program')
    wrap.add_argument('target', help='Program name or path')
    wrap.add_argument(
        '--arg', '-a',
        dest='args',
        action='append',
        default=[],
        metavar='ARG',
        help='An argument placed before the caller\'s arguments; can be used multiple times'
    )
    wrap.add_argument(
        '--trailing-arg', '-A',
        dest='trailing_args',
        action='append',
        default=[],
        metavar='ARG',
        help='An argument placed after the caller\'s arguments; can be used multiple times'
    )
    wrap.add_argument(
        '--env', '-e',
        action='append',
        default=[],
        metavar='[OP]NAME=VALUE',
        help='An environment variable to launch with; OP is ^= (prepend), += (append) '
             'or ?= (only if unset); can be used multiple times'
    )
    wrap.add_argument(
        '--update', '-u',
        action='store_true',
        help='Replace the arguments of an existing wrapper'
    )
    wrap.add_argument(
        '--no-hooks',
        action='store_true',
        help='Do not generate pacman hooks; for paths not managed by pacman (such as /home)'
    )
    wrap.add_argument(
        '--strict-hooks',
        action='store_true',
        help='Exit with a non-zero code when pacman hooks could not be written'
    )
    wrap.set_defaults(handler=wrap_command)

    unwrap = commands.add_parser('unwrap', help='Restore a wrapped program')
    unwrap.add_argument('target', help='Program name or path')
    unwrap.add_argument(
        '--keep-hooks',
        action='store_true',
        help='Leave the pacman hooks in place; the next package upgrade will wrap the program again'
    )
    unwrap.set_defaults(handler=unwrap_command)

    clean = commands.add_parser(
        'clean',
        help='Remove the relocated original, leftover wrapper and hooks (pacman removal hook action)'
    )
    clean.add_argument('path', type=Path, help='Absolute path of the removed program')
    clean.set_defaults(handler=clean_command)

    info = commands.add_parser('info', help='Show the wrap state of a program')
    info.add_argument('target', help='Program name or path')
    info.set_defaults(handler=info_command)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code

    """
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return EXIT_USAGE

    try:
        settings = Settings.load(
            config_file=args.config,
            store_dir=args.store_dir,
            hook_dir=args.hook_dir,
        )
        orchestrator = InstallOrchestrator(settings)
        return args.handler(orchestrator, args)

    except WrapperizeError as e:
        log.debug('%s failed', args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return exit_code_for(e)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED


if __name__ == '__main__':
    sys.exit(main())
