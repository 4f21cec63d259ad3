"""End-to-end wrap, unwrap and clean operations.

Wrap runs ``RESOLVING -> RELOCATING -> WRITING -> HOOKING -> DONE``.
Relocation is the first step that touches the filesystem; when writing the
wrapper fails afterwards the original is moved back before the error is
raised. Hook failures never undo a wrap, they are reported as warnings.

Concurrent invocations against the same target are not coordinated; the
caller must run them one at a time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ._config import Settings
from ._exceptions import (
    AlreadyWrappedError,
    HookError,
    NotWrappedError,
    ValidationError,
    WrapperizeError,
    WriteError,
)
from ._hooks import HookGenerator, OwnerLookup, PacmanOwnerLookup
from ._models import HookDefinition, ResolvedTarget, WrapSpec
from ._relocation import RelocationStore
from ._resolver import PathResolver
from ._writer import WrapperWriter, read_wrapper_record


log = logging.getLogger(__name__)


class Stage(Enum):
    RESOLVING = 'resolving'
    RELOCATING = 'relocating'
    WRITING = 'writing'
    HOOKING = 'hooking'
    UNWRAPPING = 'unwrapping'
    CLEANING = 'cleaning'
    DONE = 'done'
    FAILED = 'failed'


@dataclass
class WrapOutcome:
    """Result of a successful :meth:`InstallOrchestrator.wrap`.

    Attributes:
        target: State of the target before the wrap
        updated: An existing wrapper was rewritten in place
        hooks: Hook definitions written (empty when hooks were skipped or failed)
        warnings: Non-fatal problems, e.g. no owning package

    """

    target: ResolvedTarget
    updated: bool = False
    hooks: tuple[HookDefinition, ...] = ()
    warnings: list[str] = field(default_factory=list)

    @property
    def original_path(self) -> Path:
        return self.target.original_path

    @property
    def relocated_path(self) -> Path:
        return self.target.relocated_path


class InstallOrchestrator:
    """Composes resolver, store, writer and hook generator.

    Collaborators default to instances built from *settings*; tests pass
    their own.

    Example:
        >>> orchestrator = InstallOrchestrator(Settings.load())
        >>> spec = WrapSpec.build('/usr/bin/foo', args=['--verbose'])
        >>> outcome = orchestrator.wrap(spec)

    """

    def __init__(
        self,
        settings: Settings | None = None,
        store: RelocationStore | None = None,
        resolver: PathResolver | None = None,
        writer: WrapperWriter | None = None,
        hooks: HookGenerator | None = None,
        owner_lookup: OwnerLookup | None = None,
    ):
        self.settings = settings or Settings.load()
        self.store = store or RelocationStore(self.settings.store_dir)
        self.resolver = resolver or PathResolver(self.store, self.settings.search_path)
        self.writer = writer or WrapperWriter()
        if hooks is None:
            hooks = HookGenerator(
                self.settings.hook_dir,
                self.settings.executable,
                owner_lookup or PacmanOwnerLookup(self.settings.pacman),
                global_args=self.settings.to_cli_args(),
            )
        self.hooks = hooks
        self.stage: Stage | None = None

    def _fail(self, error: WrapperizeError) -> WrapperizeError:
        if error.step is None and self.stage is not None:
            error.step = self.stage.value
        self.stage = Stage.FAILED
        return error

    # ------------------------------------------------------------------
    # wrap
    # ------------------------------------------------------------------

    def wrap(self, spec: WrapSpec, update: bool = False, install_hooks: bool = True) -> WrapOutcome:
        """Wrap the program named by ``spec.target``.

        Args:
            spec: What to inject
            update: Rewrite an existing wrapper in place, and treat a plain
                binary at the original path as authoritative over a stale
                relocated copy (the state pacman leaves after an upgrade)
            install_hooks: Generate pacman hooks

        Returns:
            Outcome including any hook warnings

        Raises:
            NotFoundError: Target cannot be resolved; nothing was changed
            AlreadyWrappedError: Target is a wrapper and ``update`` is false
            ConflictError: Relocated path occupied and ``update`` is false
            WriteError: Relocation or writing failed (after rollback)

        """
        try:
            return self._wrap(spec, update, install_hooks)
        except WrapperizeError as e:
            raise self._fail(e)

    def _wrap(self, spec: WrapSpec, update: bool, install_hooks: bool) -> WrapOutcome:
        self.stage = Stage.RESOLVING
        spec.validate()
        target = self.resolver.resolve(spec.target)
        original = target.original_path
        log.debug('Resolved %s to %s', spec.target, target)

        if target.is_wrapped:
            if not update:
                raise AlreadyWrappedError(
                    f"`{original}` is already wrapped (original at `{target.relocated_path}`); "
                    "use --update to change its arguments",
                    path=original,
                )
            self.stage = Stage.WRITING
            self.writer.write(original, target.relocated_path, spec.retarget(original), update=True)
            log.info('Updated wrapper %s', original)
            outcome = WrapOutcome(target=target, updated=True)
        else:
            self.stage = Stage.RELOCATING
            if target.relocated_exists and update:
                log.warning('Replacing stale relocated copy %s with the current %s',
                            target.relocated_path, original)
                self.store.discard(target.relocated_path)
            relocated = self.store.claim(original)
            self.store.relocate(original, relocated)

            self.stage = Stage.WRITING
            try:
                self.writer.write(original, relocated, spec.retarget(original), update=update)
            except BaseException as e:
                self._rollback(relocated, original, e)
                raise
            outcome = WrapOutcome(target=target)

        if install_hooks:
            self.stage = Stage.HOOKING
            outcome.hooks = self._install_hooks(original, spec, outcome.warnings)

        self.stage = Stage.DONE
        return outcome

    def _rollback(self, relocated: Path, original: Path, cause: BaseException) -> None:
        log.error('Writing the wrapper failed, moving %s back to %s', relocated, original)
        try:
            self.store.restore(relocated, original)
        except WrapperizeError as e:
            raise WriteError(
                f"{cause or type(cause).__name__}; rollback also failed ({e}). The original executable is at "
                f"`{relocated}` and must be moved back to `{original}` by hand",
                path=relocated,
                step=Stage.WRITING.value,
            ) from cause

    def _install_hooks(
        self,
        original: Path,
        spec: WrapSpec,
        warnings: list[str],
    ) -> tuple[HookDefinition, ...]:
        try:
            packages = self.hooks.owner_of(original)
            hooks = self.hooks.generate(original, packages, spec.retarget(original))
            self.hooks.write(hooks)
        except (HookError, OSError) as e:
            message = f"{e}; no pacman hook was written, the wrapper will not survive an upgrade"
            log.warning(message)
            warnings.append(message)
            return ()
        return hooks

    # ------------------------------------------------------------------
    # unwrap / clean
    # ------------------------------------------------------------------

    def unwrap(self, identifier: str | Path, remove_hooks: bool = True) -> ResolvedTarget:
        """Restore the original executable and delete its hooks.

        With ``remove_hooks=False`` the install hook stays behind and wraps
        the program again on the next upgrade of its package.

        Raises:
            NotFoundError: Target cannot be resolved
            NotWrappedError: Target is not a wrapper
            WriteError: The original could not be moved back

        """
        try:
            self.stage = Stage.RESOLVING
            target = self.resolver.resolve(identifier)
            if not target.is_wrapped:
                raise NotWrappedError(f"`{target.original_path}` is not wrapped", path=target.original_path)

            self.stage = Stage.UNWRAPPING
            self.store.restore(target.relocated_path, target.original_path)
            log.info('Restored %s', target.original_path)

            if remove_hooks:
                self.stage = Stage.HOOKING
                self.hooks.remove(target.original_path)
            else:
                log.warning('Kept pacman hooks for %s; the next upgrade of its package will wrap it again',
                            target.original_path)
        except WrapperizeError as e:
            raise self._fail(e)

        self.stage = Stage.DONE
        return target

    def clean(self, original_path: str | Path) -> list[Path]:
        """Remove every trace of a wrap after the owning package is gone.

        This is the removal hook's action: pacman has already deleted the
        file at *original_path*, so nothing is resolved. The relocated
        original, a leftover wrapper (only if it carries the marker) and
        both hook files are deleted; pieces that are already gone are
        skipped.

        Returns:
            Paths that were removed

        """
        original = Path(original_path)
        if not original.is_absolute():
            raise self._fail(ValidationError(f"clean needs an absolute path, got `{original}`", path=original))

        removed: list[Path] = []
        try:
            self.stage = Stage.CLEANING
            if read_wrapper_record(original) is not None:
                try:
                    original.unlink()
                except OSError as e:
                    raise WriteError(f"failed to remove leftover wrapper `{original}`: {e}",
                                     path=original) from e
                removed.append(original)

            relocated = self.store.relocated_path_for(original)
            if relocated.exists():
                self.store.discard(relocated)
                removed.append(relocated)

            removed += self.hooks.remove(original)
        except WrapperizeError as e:
            raise self._fail(e)

        self.stage = Stage.DONE
        return removed
