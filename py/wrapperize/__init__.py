"""
wrapperize -- Make an installed executable always run with extra arguments
or environment variables, and keep it that way across pacman upgrades.

The real binary is moved to a deterministic location under the store
directory, a small launcher script takes its place, and pacman hooks
recreate the launcher whenever pacman writes a fresh copy of the binary.

Can be used as a Python library or as a CLI tool::

    python -m wrapperize wrap /usr/bin/foo --arg=--verbose --env=^=PATH=/opt/foo/bin

Quickstart (Python API)::

    import wrapperize

    orchestrator = wrapperize.InstallOrchestrator(wrapperize.Settings.load())
    spec = wrapperize.WrapSpec.build('foo', args=['--verbose'], env=['FOO=bar'])
    outcome = orchestrator.wrap(spec)
    for warning in outcome.warnings:
        print(warning)

    orchestrator.unwrap('foo')

Submodules:
    testing    -- test helpers (patch_settings, fake_owner_lookup)
    exceptions -- all wrapperize exception classes
"""

from __future__ import annotations

import logging

#: The version of wrapperize.
__version__: str = '0.1.0'

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
from ._models import (
    EnvAssignment,
    EnvPolicy,
    HookDefinition,
    HookEvent,
    ResolvedTarget,
    WrapperRecord,
    WrapSpec,
)
from ._config import Settings
from ._relocation import RelocationStore
from ._resolver import PathResolver
from ._writer import WrapperWriter, read_wrapper_record, is_wrapper
from ._hooks import HookGenerator, PacmanOwnerLookup
from ._orchestrator import InstallOrchestrator, Stage, WrapOutcome
from ._cli import main as cli_main

from . import testing    # noqa: E402
from . import exceptions # noqa: E402


def set_api_verbosity(level: int | str) -> None:
    """Set the logging verbosity for the ``wrapperize`` logger.

    Args:
        level: A :mod:`logging` level constant or its name (``'DEBUG'``, ...)

    """
    logging.getLogger('wrapperize').setLevel(level)


__all__ = [
    '__version__',

    # ---- Core classes ----
    'InstallOrchestrator',
    'PathResolver',
    'RelocationStore',
    'WrapperWriter',
    'HookGenerator',
    'PacmanOwnerLookup',
    'Settings',
    'Stage',
    'WrapOutcome',

    # ---- Data model ----
    'WrapSpec',
    'EnvAssignment',
    'EnvPolicy',
    'ResolvedTarget',
    'WrapperRecord',
    'HookDefinition',
    'HookEvent',

    # ---- Exceptions ----
    'WrapperizeError',
    'ValidationError',
    'NotFoundError',
    'StateError',
    'AlreadyWrappedError',
    'NotWrappedError',
    'ConflictError',
    'WriteError',
    'HookError',
    'UnownedFileError',

    # ---- Functions ----
    'read_wrapper_record',
    'is_wrapper',
    'set_api_verbosity',
    'cli_main',

    # ---- Submodules ----
    'testing',
    'exceptions',
]
