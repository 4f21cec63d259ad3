"""Data model for wrapperize: wrap specs, resolved targets, and hooks."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from ._exceptions import ValidationError


_ENV_NAME_PATTERN = re.compile(r'[A-Za-z_][A-Za-z0-9_]*')


class EnvPolicy(Enum):
    """How an injected variable combines with the inherited environment.

    The values are the operator prefixes accepted on the command line,
    e.g. ``^=PATH=/opt/tool/bin``.
    """

    OVERRIDE = ''
    PREPEND = '^='
    APPEND = '+='
    DEFAULT = '?='

    @classmethod
    def split_prefix(cls, text: str) -> tuple[EnvPolicy, str]:
        """Strip an operator prefix from *text* and return ``(policy, rest)``."""
        for policy in (cls.PREPEND, cls.APPEND, cls.DEFAULT):
            if text.startswith(policy.value):
                return policy, text[len(policy.value):]
        return cls.OVERRIDE, text


@dataclass(frozen=True)
class EnvAssignment:
    """A single environment variable injected by a wrapper.

    Attributes:
        name: Variable name
        value: Value to inject
        policy: Merge policy against the inherited value

    """

    name: str
    value: str
    policy: EnvPolicy = EnvPolicy.OVERRIDE

    def __post_init__(self):
        if not is_valid_env_name(self.name):
            raise ValidationError(f"invalid name for environment variable `{self.name}`")

    @classmethod
    def parse(cls, text: str) -> EnvAssignment:
        """Parse ``[OP]NAME=value``.

        Args:
            text: Assignment string, e.g. ``FOO=bar`` or ``^=PATH=/opt/bin``

        Returns:
            Parsed assignment

        Raises:
            ValidationError: If the separator is missing or the name is invalid

        """
        policy, rest = EnvPolicy.split_prefix(text)
        name, sep, value = rest.partition('=')
        if not sep:
            raise ValidationError(f"missing '=' separator in environment assignment `{text}`")
        return cls(name=name, value=value, policy=policy)

    def to_cli(self) -> str:
        """Render back to the ``[OP]NAME=value`` form accepted by :meth:`parse`."""
        return f"{self.policy.value}{self.name}={self.value}"

    def __str__(self) -> str:
        return self.to_cli()


def is_valid_env_name(name: str) -> bool:
    """Return ``True`` if *name* is usable as a shell environment variable."""
    return bool(_ENV_NAME_PATTERN.fullmatch(name))


@dataclass(frozen=True)
class WrapSpec:
    """The administrator's intent for one wrap operation.

    Attributes:
        target: Program name (looked up on the search path) or path
        args: Arguments placed before the caller's own arguments
        trailing_args: Arguments placed after the caller's own arguments
        env: Environment assignments, applied in order

    """

    target: str
    args: tuple[str, ...] = ()
    trailing_args: tuple[str, ...] = ()
    env: tuple[EnvAssignment, ...] = ()

    @classmethod
    def build(
        cls,
        target: str | Path,
        args: Iterable[str] = (),
        env: Iterable[str | EnvAssignment] = (),
        trailing_args: Iterable[str] = (),
    ) -> WrapSpec:
        """Create a validated spec from CLI-style input.

        Raises:
            ValidationError: If nothing would be injected, or any value
                contains a newline (wrapper and hook files are line based)

        """
        assignments = tuple(
            item if isinstance(item, EnvAssignment) else EnvAssignment.parse(item)
            for item in env
        )
        spec = cls(
            target=str(target),
            args=tuple(args),
            trailing_args=tuple(trailing_args),
            env=assignments,
        )
        spec.validate()
        return spec

    def validate(self) -> None:
        if not self.target:
            raise ValidationError("no target program given")
        if not (self.args or self.trailing_args or self.env):
            raise ValidationError("no arguments or environment variables provided to wrap")

        values = [self.target, *self.args, *self.trailing_args]
        values += [a.value for a in self.env]
        for value in values:
            if '\n' in value or '\r' in value or '\0' in value:
                raise ValidationError(f"line breaks and NUL are not allowed: {value!r}")

    def retarget(self, target: str | Path) -> WrapSpec:
        """Return a copy of this spec pointing at *target*."""
        return WrapSpec(
            target=str(target),
            args=self.args,
            trailing_args=self.trailing_args,
            env=self.env,
        )

    def to_cli_args(self) -> list[str]:
        """Render as ``wrapperize wrap`` options (target excluded)."""
        cli: list[str] = []
        cli += [f"--arg={arg}" for arg in self.args]
        cli += [f"--trailing-arg={arg}" for arg in self.trailing_args]
        cli += [f"--env={assignment.to_cli()}" for assignment in self.env]
        return cli

    def to_dict(self) -> dict[str, Any]:
        return {
            'target': self.target,
            'args': list(self.args),
            'trailing_args': list(self.trailing_args),
            'env': [a.to_cli() for a in self.env],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WrapSpec:
        try:
            return cls(
                target=str(data['target']),
                args=tuple(data.get('args', ())),
                trailing_args=tuple(data.get('trailing_args', ())),
                env=tuple(EnvAssignment.parse(item) for item in data.get('env', ())),
            )
        except (KeyError, TypeError) as e:
            raise ValidationError(f"malformed wrap spec: {e}") from e


@dataclass(frozen=True)
class WrapperRecord:
    """What a wrapper file says about itself.

    Reconstructed from the marker lines at the top of the wrapper; never
    stored anywhere else.
    """

    wrapper_path: Path
    relocated_path: Path
    spec: WrapSpec | None = None


@dataclass(frozen=True)
class ResolvedTarget:
    """Ground truth about a target, derived from disk on every run.

    Attributes:
        original_path: Canonical location the program is invoked from
        relocated_path: Where the real binary lives (or would live) once wrapped
        is_wrapped: ``original_path`` currently holds a wrapper
        relocated_exists: Something occupies ``relocated_path``
        record: Parsed wrapper marker when ``is_wrapped``

    """

    original_path: Path
    relocated_path: Path
    is_wrapped: bool = False
    relocated_exists: bool = False
    record: WrapperRecord | None = None


class HookEvent(Enum):
    """pacman transaction operations a hook can trigger on."""

    INSTALL = 'Install'
    UPGRADE = 'Upgrade'
    REMOVE = 'Remove'


@dataclass(frozen=True)
class HookDefinition:
    """One pacman hook file.

    Attributes:
        target_path: Absolute path of the wrapped file the hook watches
        packages: Packages that own ``target_path``
        events: Operations that fire the hook
        action: Command line pacman runs (``Exec``)
        path: Location of the hook file
        description: Human readable ``Description``

    """

    target_path: Path
    packages: tuple[str, ...]
    events: tuple[HookEvent, ...]
    action: str
    path: Path
    description: str = ''
    verb: str = field(default='install', compare=False)
