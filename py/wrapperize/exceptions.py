"""wrapperize.exceptions -- Public exception module.

All wrapperize exceptions are accessible here::

    from wrapperize.exceptions import WrapperizeError, NotFoundError

    try:
        orchestrator.wrap(spec)
    except NotFoundError as e:
        print(f'No such program: {e.path}')
    except WrapperizeError as e:
        print(f'wrapperize error: {e}')
"""

from ._exceptions import (
    WrapperizeError,
    ValidationError,
    NotFoundError,
    StateError,
    AlreadyWrappedError,
    NotWrappedError,
    ConflictError,
    WriteError,
    HookError,
    UnownedFileError,
)

__all__ = [
    "WrapperizeError",
    "ValidationError",
    "NotFoundError",
    "StateError",
    "AlreadyWrappedError",
    "NotWrappedError",
    "ConflictError",
    "WriteError",
    "HookError",
    "UnownedFileError",
]
