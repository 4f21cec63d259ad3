"""Locating the real executable behind a program name or path."""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path

from ._exceptions import NotFoundError, ValidationError
from ._models import ResolvedTarget
from ._relocation import RelocationStore
from ._writer import read_wrapper_record


log = logging.getLogger(__name__)


class PathResolver:
    """Resolves identifiers to :class:`ResolvedTarget` instances.

    Pure inspection: nothing is moved, written, or executed.

    Args:
        store: Relocation store used to derive and reverse relocated paths
        search_path: ``os.pathsep`` separated directories for bare names
            (``None`` means the current ``$PATH``)

    """

    def __init__(self, store: RelocationStore, search_path: str | None = None):
        self.store = store
        self.search_path = search_path

    def locate(self, identifier: str | Path) -> Path:
        """Find the absolute path an identifier refers to, without canonicalising.

        Identifiers containing a ``/`` are treated as paths; bare names are
        searched for on the search path.

        Raises:
            NotFoundError: A bare name is not on the search path

        """
        spec = str(identifier)
        if '/' in spec:
            return Path(os.path.abspath(spec))

        search_path = self.search_path if self.search_path is not None else os.environ.get('PATH', os.defpath)
        found = shutil.which(spec, path=search_path)
        if found is None:
            raise NotFoundError(f"executable `{spec}` not found in search path", path=spec)
        return Path(os.path.abspath(found))

    def resolve(self, identifier: str | Path) -> ResolvedTarget:
        """Resolve *identifier* to the program's current on-disk state.

        A wrapper resolves to itself with ``is_wrapped`` set and the
        relocated path read from its marker. A path inside the store
        resolves as the original location it was relocated from.

        Raises:
            NotFoundError: Missing, not a regular file, not executable, or
                a wrapper whose relocated original is gone

        """
        located = self.locate(identifier)

        if self.store.contains(located):
            try:
                located = self.store.original_path_for(located)
            except ValidationError as e:
                raise NotFoundError(str(e), path=located) from e
            log.debug('%s is a relocated original, resolving %s instead', identifier, located)

        original = Path(os.path.realpath(located))
        if not original.is_file():
            raise NotFoundError(f"`{original}` does not exist or is not a file", path=original)

        try:
            record = read_wrapper_record(original)
        except OSError as e:
            raise NotFoundError(f"cannot inspect `{original}`: {e}", path=original) from e

        if record is not None:
            relocated = record.relocated_path
            if not relocated.is_file():
                raise NotFoundError(
                    f"`{original}` is a wrapper but its original `{relocated}` is missing",
                    path=relocated,
                )
            expected = self.store.relocated_path_for(original)
            if relocated != expected:
                log.warning('Wrapper %s points at %s, not the store location %s',
                            original, relocated, expected)
            return ResolvedTarget(
                original_path=original,
                relocated_path=relocated,
                is_wrapped=True,
                relocated_exists=True,
                record=record,
            )

        if not os.access(original, os.X_OK):
            raise NotFoundError(f"`{original}` is not executable", path=original)

        relocated = self.store.relocated_path_for(original)
        return ResolvedTarget(
            original_path=original,
            relocated_path=relocated,
            is_wrapped=False,
            relocated_exists=os.path.lexists(relocated),
        )
