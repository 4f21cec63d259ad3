"""pacman hook generation.

Every wrapped file gets two hooks in pacman's hook directory:

``<name>-<digest>-wrapperize-install.hook``
    Fires after the file is installed or upgraded and re-runs
    ``wrapperize wrap --update`` with the same arguments, wrapping the
    fresh original pacman just wrote.

``<name>-<digest>-wrapperize-remove.hook``
    Fires after the file is removed and runs ``wrapperize clean``, which
    deletes the relocated original, any leftover wrapper, and both hooks.

``<digest>`` is derived from the full target path, so regenerating hooks
for the same target overwrites them and same-named programs in different
directories do not collide.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shlex
import subprocess
import tempfile
from pathlib import Path
from typing import Callable, Sequence

from ._exceptions import HookError, UnownedFileError
from ._models import HookDefinition, HookEvent, WrapSpec


log = logging.getLogger(__name__)


PROGRAM_NAME = 'wrapperize'

INSTALL_VERB = 'install'
REMOVE_VERB = 'remove'

#: Callable answering "which packages own this path".
OwnerLookup = Callable[[Path], Sequence[str]]


class PacmanOwnerLookup:
    """Ask pacman which installed package owns a file.

    Args:
        pacman: pacman executable name or path

    """

    def __init__(self, pacman: str = 'pacman'):
        self.pacman = pacman

    def __call__(self, path: Path) -> tuple[str, ...]:
        command = [self.pacman, '-Qqo', str(path)]
        log.debug('Querying owner: %s', ' '.join(command))
        try:
            result = subprocess.run(command, capture_output=True, text=True, check=False)
        except OSError as e:
            raise UnownedFileError(f"cannot query package ownership with `{self.pacman}`: {e}",
                                   path=path) from e

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit code {result.returncode}"
            raise UnownedFileError(f"`{path}` is not owned by any package ({detail})", path=path)

        packages = tuple(line.strip() for line in result.stdout.splitlines() if line.strip())
        if not packages:
            raise UnownedFileError(f"`{path}` is not owned by any package", path=path)
        return packages


def hook_path(hook_dir: Path, target_path: Path, verb: str) -> Path:
    """Return the hook file location for *target_path* and *verb*."""
    digest = hashlib.sha1(str(target_path).encode('utf-8', errors='surrogateescape')).hexdigest()[:10]
    return hook_dir / f"{target_path.name}-{digest}-{PROGRAM_NAME}-{verb}.hook"


def trim_path_root(path: Path) -> str:
    """pacman hook targets are written without the leading slash."""
    return str(path).lstrip('/')


class HookGenerator:
    """Produces, writes and removes the hooks that keep a wrap alive.

    Args:
        hook_dir: pacman hook directory
        executable: wrapperize command used in ``Exec`` lines
        owner_lookup: Ownership query; defaults to :class:`PacmanOwnerLookup`
        global_args: Global flags placed before the subcommand in ``Exec``
            lines, see :meth:`Settings.to_cli_args`

    """

    def __init__(
        self,
        hook_dir: str | Path,
        executable: str,
        owner_lookup: OwnerLookup | None = None,
        global_args: Sequence[str] = (),
    ):
        self.hook_dir = Path(hook_dir)
        self.executable = executable
        self.owner_lookup = owner_lookup or PacmanOwnerLookup()
        self.global_args = list(global_args)

    def owner_of(self, path: str | Path) -> tuple[str, ...]:
        """Return the packages owning *path*.

        Raises:
            UnownedFileError: No package owns it

        """
        packages = tuple(self.owner_lookup(Path(path)))
        if not packages:
            raise UnownedFileError(f"`{path}` is not owned by any package", path=path)
        return packages

    def hook_paths(self, original_path: str | Path) -> list[Path]:
        target = Path(original_path)
        return [hook_path(self.hook_dir, target, verb) for verb in (INSTALL_VERB, REMOVE_VERB)]

    def generate(
        self,
        original_path: str | Path,
        owning_packages: Sequence[str],
        spec: WrapSpec,
    ) -> tuple[HookDefinition, HookDefinition]:
        """Build the install/upgrade and removal hooks for a wrapped target.

        Args:
            original_path: Path pacman installs the program at
            owning_packages: Packages owning ``original_path``
            spec: Wrap spec re-applied by the install hook

        Returns:
            ``(install_hook, remove_hook)``

        """
        original = Path(original_path)
        packages = tuple(owning_packages)
        command = [self.executable, *self.global_args]

        wrap_command = command + ['wrap', '--update', '--no-hooks']
        wrap_command += spec.to_cli_args()
        wrap_command.append(str(original))
        clean_command = command + ['clean', str(original)]

        for part in wrap_command + clean_command:
            if '\n' in part:
                raise HookError(f"line breaks cannot be written to a hook: {part!r}", path=original)

        install = HookDefinition(
            target_path=original,
            packages=packages,
            events=(HookEvent.INSTALL, HookEvent.UPGRADE),
            action=shlex.join(wrap_command),
            path=hook_path(self.hook_dir, original, INSTALL_VERB),
            description=f"Wrapping {original.name}...",
            verb=INSTALL_VERB,
        )
        remove = HookDefinition(
            target_path=original,
            packages=packages,
            events=(HookEvent.REMOVE,),
            action=shlex.join(clean_command),
            path=hook_path(self.hook_dir, original, REMOVE_VERB),
            description=f"Removing traces of wrapper for {original.name}...",
            verb=REMOVE_VERB,
        )
        return install, remove

    @staticmethod
    def render(hook: HookDefinition) -> str:
        """Render *hook* in pacman's ``alpm-hooks(5)`` format."""
        lines = [
            f"# Generated by {PROGRAM_NAME} for /{trim_path_root(hook.target_path)} "
            f"(owned by {', '.join(hook.packages)}); do not edit.",
            '[Trigger]',
            'Type = Path',
        ]
        lines += [f"Operation = {event.value}" for event in hook.events]
        lines += [
            f"Target = {trim_path_root(hook.target_path)}",
            '',
            '[Action]',
            f"Description = {hook.description}",
            'When = PostTransaction',
            f"Exec = {hook.action}",
        ]
        return '\n'.join(lines) + '\n'

    def write(self, hooks: Sequence[HookDefinition]) -> list[Path]:
        """Write hook files, replacing earlier versions for the same target.

        Raises:
            HookError: The hook directory or a hook file cannot be written

        """
        try:
            self.hook_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise HookError(f"failed to create pacman hook directory `{self.hook_dir}`: {e}",
                            path=self.hook_dir) from e

        written = []
        for hook in hooks:
            try:
                _atomic_write(hook.path, self.render(hook))
            except OSError as e:
                raise HookError(f"failed to write pacman {hook.verb} hook `{hook.path}`: {e}",
                                path=hook.path) from e
            log.info('Wrote pacman %s hook %s', hook.verb, hook.path)
            written.append(hook.path)
        return written

    def remove(self, original_path: str | Path) -> list[Path]:
        """Delete the hooks for *original_path*; missing files are ignored.

        Returns:
            Hook files that were actually removed

        Raises:
            HookError: A hook file exists but cannot be removed

        """
        removed = []
        for path in self.hook_paths(original_path):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as e:
                raise HookError(f"failed to remove pacman hook `{path}`: {e}", path=path) from e
            log.info('Removed pacman hook %s', path)
            removed.append(path)
        return removed


def _atomic_write(path: Path, content: str) -> None:
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', errors='surrogateescape') as f:
            f.write(content)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        Path(tmp_path).unlink(missing_ok=True)
        raise
