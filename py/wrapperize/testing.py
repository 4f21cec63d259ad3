"""wrapperize.testing -- Test helpers for code that drives wrapperize.

Provides context managers and fakes that keep tests away from the real
``/var/lib/wrapperize``, ``/etc/pacman.d/hooks`` and pacman database.

Usage example::

    import wrapperize.testing as wrapperize_testing

    def test_my_tool(tmp_path):
        with wrapperize_testing.patch_settings(tmp_path / 'store', tmp_path / 'hooks'):
            settings = Settings.load()

    def test_owned(tmp_path):
        lookup = wrapperize_testing.fake_owner_lookup({'/usr/bin/foo': 'foo'})
        orchestrator = InstallOrchestrator(settings, owner_lookup=lookup)
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Mapping

from ._config import ENV_VARS
from ._exceptions import UnownedFileError


@contextmanager
def patch_settings(
    store_dir: str | Path,
    hook_dir: str | Path,
    executable: str | None = None,
    pacman: str | None = None,
):
    """Context manager that temporarily overrides the ``WRAPPERIZE_*`` variables.

    ``WRAPPERIZE_CONFIG`` is cleared for the duration so a config file on
    the host does not leak into the test.

    Args:
        store_dir: Directory to keep relocated originals in
        hook_dir: Directory to write hooks to
        executable: Command written into hook ``Exec`` lines
        pacman: pacman executable for ownership queries

    Example::

        with wrapperize_testing.patch_settings(tmp_path / 'store', tmp_path / 'hooks'):
            assert Settings.load().store_dir == tmp_path / 'store'
    """
    values = {
        'WRAPPERIZE_STORE_DIR': str(store_dir),
        'WRAPPERIZE_HOOK_DIR': str(hook_dir),
        'WRAPPERIZE_EXECUTABLE': executable,
        'WRAPPERIZE_PACMAN': pacman,
        'WRAPPERIZE_CONFIG': None,
    }
    saved = {name: os.environ.get(name) for name in [*ENV_VARS, 'WRAPPERIZE_CONFIG']}

    for name, value in values.items():
        if value is None:
            os.environ.pop(name, None)
        else:
            os.environ[name] = value
    try:
        yield
    finally:
        for name, value in saved.items():
            if value is None:
                os.environ.pop(name, None)
            else:
                os.environ[name] = value


def fake_owner_lookup(owners: Mapping[str | Path, str | tuple[str, ...]]):
    """Return an ownership query answering from *owners* instead of pacman.

    Paths missing from *owners* raise :class:`UnownedFileError`, the same
    way an unowned file does with the real query.

    Args:
        owners: Mapping of absolute path -> package name(s)

    """
    table = {
        str(path): (packages,) if isinstance(packages, str) else tuple(packages)
        for path, packages in owners.items()
    }

    def lookup(path: Path) -> tuple[str, ...]:
        try:
            return table[str(path)]
        except KeyError:
            raise UnownedFileError(f"`{path}` is not owned by any package", path=path) from None

    return lookup
