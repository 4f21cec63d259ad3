"""Deterministic storage for relocated original executables.

An original at ``/usr/bin/foo`` is kept at ``<store_dir>/usr/bin/foo``.
The mapping is a pure function of the path, so a hook firing days later
finds the original without any saved state, and the inverse mapping
recovers the original location from the relocated path alone.
"""

from __future__ import annotations

import errno
import filecmp
import logging
import os
import shutil
import tempfile
from pathlib import Path, PurePosixPath

from ._exceptions import ConflictError, ValidationError, WriteError


log = logging.getLogger(__name__)


class RelocationStore:
    """Owns the original-path <-> relocated-path convention.

    Args:
        store_dir: Absolute root directory for relocated originals

    """

    def __init__(self, store_dir: str | Path):
        self.store_dir = Path(store_dir)
        if not self.store_dir.is_absolute():
            raise ValidationError(f"store directory must be absolute: {store_dir}", path=store_dir)

    # ------------------------------------------------------------------
    # Path mapping
    # ------------------------------------------------------------------

    def contains(self, path: str | Path) -> bool:
        """Return ``True`` if *path* lies inside the store directory."""
        path = Path(path)
        return path == self.store_dir or self.store_dir in path.parents

    def relocated_path_for(self, original_path: str | Path) -> Path:
        """Map an original executable path to its relocated path.

        Raises:
            ValidationError: Relative, non-normalized, or in-store path

        """
        original = _check_absolute(original_path)
        if self.contains(original):
            raise ValidationError(
                f"`{original}` is inside the store directory `{self.store_dir}`",
                path=original,
            )
        return self.store_dir / original.relative_to('/')

    def original_path_for(self, relocated_path: str | Path) -> Path:
        """Map a relocated path back to the original executable path.

        Raises:
            ValidationError: Path is not a file location inside the store

        """
        relocated = _check_absolute(relocated_path)
        if relocated == self.store_dir or not self.contains(relocated):
            raise ValidationError(
                f"`{relocated}` is not inside the store directory `{self.store_dir}`",
                path=relocated,
            )
        return Path('/') / relocated.relative_to(self.store_dir)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def claim(self, original_path: str | Path) -> Path:
        """Reserve the relocated path for *original_path*.

        Returns:
            The relocated path, with its parent directories created

        Raises:
            ConflictError: Something already occupies the relocated path
            WriteError: The parent directories cannot be created

        """
        relocated = self.relocated_path_for(original_path)
        if os.path.lexists(relocated):
            raise ConflictError(
                f"relocated path `{relocated}` is already occupied; a previous wrap of "
                f"`{original_path}` did not finish, or the package was reinstalled "
                "(re-run with --update to wrap the new original)",
                path=relocated,
            )
        try:
            relocated.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise WriteError(f"failed to create store directory `{relocated.parent}`: {e}",
                             path=relocated.parent) from e
        return relocated

    def relocate(self, original_path: str | Path, relocated_path: str | Path) -> None:
        """Move the original executable into the store."""
        log.debug('Relocating %s -> %s', original_path, relocated_path)
        move_file(Path(original_path), Path(relocated_path))

    def restore(self, relocated_path: str | Path, original_path: str | Path) -> None:
        """Move a relocated original back, replacing whatever is at *original_path*."""
        log.debug('Restoring %s -> %s', relocated_path, original_path)
        move_file(Path(relocated_path), Path(original_path))
        self.prune(relocated_path)

    def discard(self, relocated_path: str | Path) -> None:
        """Delete a stale relocated copy.

        Raises:
            WriteError: The file exists but cannot be removed

        """
        relocated = Path(relocated_path)
        if not self.contains(relocated):
            raise ValidationError(f"refusing to delete `{relocated}` outside the store", path=relocated)
        try:
            relocated.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise WriteError(f"failed to remove `{relocated}`: {e}", path=relocated) from e
        log.info('Removed relocated original %s', relocated)
        self.prune(relocated)

    def prune(self, relocated_path: str | Path) -> None:
        """Remove empty store directories left above *relocated_path*."""
        for parent in Path(relocated_path).parents:
            if parent == self.store_dir or not self.contains(parent):
                break
            try:
                parent.rmdir()
            except OSError:
                # Not empty (or already gone); nothing further up can be empty either.
                break


def _check_absolute(path: str | Path) -> Path:
    path = Path(path)
    if not path.is_absolute():
        raise ValidationError(f"path must be absolute: `{path}`", path=path)
    if '..' in PurePosixPath(path).parts or os.path.normpath(path) != str(path):
        raise ValidationError(f"path must be normalized: `{path}`", path=path)
    return path


def move_file(src: Path, dst: Path) -> None:
    """Move *src* to *dst*, replacing *dst* if it exists.

    Uses an atomic rename when both paths share a filesystem. Across
    filesystems the file is copied to a temporary sibling of *dst*,
    verified byte for byte, renamed into place, and only then is *src*
    deleted.

    Raises:
        WriteError: The move failed; *src* is left in place

    """
    try:
        os.replace(src, dst)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise WriteError(f"failed to move `{src}` to `{dst}`: {e}", path=src) from e

    log.debug('%s and %s are on different filesystems, copying', src, dst)
    try:
        fd, tmp_name = tempfile.mkstemp(dir=dst.parent, prefix=f".{dst.name}.", suffix='.tmp')
    except OSError as e:
        raise WriteError(f"failed to create a temporary file next to `{dst}`: {e}", path=dst) from e
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        shutil.copy2(src, tmp_path)
        if not filecmp.cmp(src, tmp_path, shallow=False):
            raise WriteError(f"copy of `{src}` to `{tmp_path}` does not match the source", path=src)
        os.replace(tmp_path, dst)
    except WriteError:
        tmp_path.unlink(missing_ok=True)
        raise
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise WriteError(f"failed to copy `{src}` to `{dst}`: {e}", path=src) from e

    try:
        src.unlink()
    except OSError as e:
        raise WriteError(
            f"copied `{src}` to `{dst}` but could not remove the source: {e}",
            path=src,
        ) from e
