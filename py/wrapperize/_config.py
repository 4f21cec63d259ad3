"""Settings loading for wrapperize.

Values are layered, later sources overriding earlier ones:

1. Built-in defaults
2. JSON config file (``WRAPPERIZE_CONFIG`` or ``/etc/wrapperize.json``)
3. ``WRAPPERIZE_*`` environment variables
4. Explicit keyword overrides (the CLI's ``--store-dir`` / ``--hook-dir``)
"""

from __future__ import annotations

import json
import logging
import os
import shutil
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from ._exceptions import ValidationError


log = logging.getLogger(__name__)


#: Where relocated originals are kept. Outside every package-managed tree.
DEFAULT_STORE_DIR = Path('/var/lib/wrapperize/originals')

#: pacman's user hook directory.
DEFAULT_HOOK_DIR = Path('/etc/pacman.d/hooks')

#: Config file read when ``WRAPPERIZE_CONFIG`` is not set.
DEFAULT_CONFIG_FILE = Path('/etc/wrapperize.json')

#: Environment variable name -> settings field.
ENV_VARS: dict[str, str] = {
    'WRAPPERIZE_STORE_DIR': 'store_dir',
    'WRAPPERIZE_HOOK_DIR': 'hook_dir',
    'WRAPPERIZE_EXECUTABLE': 'executable',
    'WRAPPERIZE_PACMAN': 'pacman',
}

_PATH_FIELDS = ('store_dir', 'hook_dir')


def _default_executable() -> str:
    return shutil.which('wrapperize') or '/usr/bin/wrapperize'


@dataclass(frozen=True)
class Settings:
    """Runtime configuration shared by every component.

    Attributes:
        store_dir: Root under which relocated originals are kept
        hook_dir: Directory pacman reads hook files from
        executable: wrapperize command written into hook ``Exec`` lines
        pacman: pacman executable used for ownership queries
        search_path: Directories searched for bare program names
            (``None`` means the current ``$PATH``)

    """

    store_dir: Path = DEFAULT_STORE_DIR
    hook_dir: Path = DEFAULT_HOOK_DIR
    executable: str = '/usr/bin/wrapperize'
    pacman: str = 'pacman'
    search_path: str | None = None

    def __post_init__(self):
        for name in _PATH_FIELDS:
            value = Path(getattr(self, name))
            if not value.is_absolute():
                raise ValidationError(f"{name} must be an absolute path, got `{value}`", path=value)
            object.__setattr__(self, name, value)

    @classmethod
    def load(cls, config_file: str | Path | None = None, **overrides: Any) -> Settings:
        """Build settings from defaults, config file, environment and overrides.

        Args:
            config_file: Explicit JSON config file. Falls back to
                ``WRAPPERIZE_CONFIG`` and then ``/etc/wrapperize.json``.
            **overrides: Field values that win over every other source;
                ``None`` values are ignored.

        Returns:
            The merged settings

        Raises:
            ValidationError: Missing explicit config file, invalid JSON,
                or a relative directory

        """
        values: dict[str, Any] = {'executable': _default_executable()}

        explicit = config_file or os.environ.get('WRAPPERIZE_CONFIG')
        if explicit:
            values.update(_read_config_file(Path(explicit), required=True))
        elif DEFAULT_CONFIG_FILE.is_file():
            values.update(_read_config_file(DEFAULT_CONFIG_FILE, required=False))

        for var, name in ENV_VARS.items():
            if os.environ.get(var):
                log.debug('%s=%s overrides %s', var, os.environ[var], name)
                values[name] = os.environ[var]

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def with_overrides(self, **overrides: Any) -> Settings:
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def to_cli_args(self) -> list[str]:
        """Global CLI flags that reproduce the directories of these settings.

        pacman runs hooks without the caller's environment or flags, so hook
        ``Exec`` lines carry these explicitly.
        """
        return ['--store-dir', str(self.store_dir), '--hook-dir', str(self.hook_dir)]


def _read_config_file(path: Path, required: bool) -> dict[str, Any]:
    """Read the JSON config file and keep only known keys."""
    if not path.is_file():
        if required:
            raise ValidationError(f"Config file not found: {path}", path=path)
        return {}

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValidationError(f"Invalid JSON in config file {path}: {e}", path=path) from e

    if not isinstance(data, dict):
        raise ValidationError(f"Config file must contain a JSON object: {path}", path=path)

    known = {f.name for f in fields(Settings)}
    unknown = set(data) - known
    if unknown:
        log.warning('Unknown keys in config file %s: %s', path, ', '.join(sorted(unknown)))

    log.info('Loaded settings from %s', path)
    return {k: v for k, v in data.items() if k in known}
