"""Exception classes for wrapperize.

Hierarchy::

    WrapperizeError
    ├── ValidationError
    ├── NotFoundError
    ├── StateError
    │   ├── AlreadyWrappedError
    │   ├── NotWrappedError
    │   └── ConflictError
    ├── WriteError
    └── HookError
        └── UnownedFileError

This module is re-exported as the public ``wrapperize.exceptions``
submodule.
"""

from __future__ import annotations

from os import PathLike


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------

class WrapperizeError(Exception):
    """Root base class for all wrapperize exceptions.

    Every error carries the filesystem ``path`` it concerns (when there is
    one) and the orchestration ``step`` that was running when it was
    raised, so an administrator can recover by hand.
    """

    def __init__(self, message: str, path: str | PathLike | None = None, step: str | None = None):
        super().__init__(message)
        self.path = path
        self.step = step

    def __str__(self) -> str:
        message = super().__str__()
        if self.step:
            return f"[{self.step}] {message}"
        return message


class ValidationError(WrapperizeError):
    """A value provided to a wrapperize API failed validation."""


class NotFoundError(WrapperizeError):
    """The target program could not be resolved to an executable file."""


# ---------------------------------------------------------------------------
# State mismatches
# ---------------------------------------------------------------------------

class StateError(WrapperizeError):
    """The on-disk state does not allow the requested operation."""


class AlreadyWrappedError(StateError):
    """The target is already a wrapper and no update was requested."""


class NotWrappedError(StateError):
    """The target is not a wrapper, so there is nothing to unwrap."""


class ConflictError(StateError):
    """The relocated path is already occupied.

    Signals a prior partial install that needs manual cleanup, or a fresh
    original delivered by the package manager that should be re-wrapped
    with ``update``.
    """


# ---------------------------------------------------------------------------
# I/O and hooks
# ---------------------------------------------------------------------------

class WriteError(WrapperizeError):
    """A file could not be written, moved or removed."""


class HookError(WrapperizeError):
    """Package-manager hook files could not be generated or written."""


class UnownedFileError(HookError):
    """No installed package owns the target file.

    Wrapping still succeeds, but no hook is written, so the wrapper will
    not survive an upgrade.
    """
