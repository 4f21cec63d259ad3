"""Wrapper script generation and detection.

A wrapper is a POSIX shell script. Its first lines identify it::

    #!/bin/sh
    # wrapperize: generated wrapper, do not edit
    # wrapperize-original: /var/lib/wrapperize/originals/usr/bin/foo
    # wrapperize-spec: {"target": "/usr/bin/foo", "args": ["--verbose"], ...}

followed by the environment statements and a final ``exec`` of the
relocated original. Detection only reads these header lines; a wrapper is
never executed to find out what it is.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import stat
import tempfile
from pathlib import Path

from ._exceptions import AlreadyWrappedError, ValidationError, WriteError
from ._models import EnvAssignment, EnvPolicy, WrapperRecord, WrapSpec


log = logging.getLogger(__name__)


SHEBANG = '#!/bin/sh'
MARKER = '# wrapperize: generated wrapper, do not edit'
ORIGINAL_PREFIX = '# wrapperize-original: '
SPEC_PREFIX = '# wrapperize-spec: '

# Upper bound for a single header line; real binaries have no short first line.
_MAX_HEADER_LINE = 64 * 1024

_PATH_SEP = ':'


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def render_env_line(assignment: EnvAssignment) -> str:
    """Render one environment statement for the wrapper script.

    Prepending puts the injected value first so that, for search-path
    style variables, the injected entries take precedence over inherited
    ones: ``FOO=bar`` prepended to an inherited ``baz`` yields ``bar:baz``.
    """
    name = assignment.name
    value = shlex.quote(assignment.value)

    if assignment.policy is EnvPolicy.PREPEND:
        return f'{name}={value}"${{{name}:+{_PATH_SEP}${{{name}}}}}"; export {name}'
    if assignment.policy is EnvPolicy.APPEND:
        return f'{name}="${{{name}:+${{{name}}}{_PATH_SEP}}}"{value}; export {name}'
    if assignment.policy is EnvPolicy.DEFAULT:
        return f'if [ -z "${{{name}+x}}" ]; then {name}={value}; export {name}; fi'
    return f'export {name}={value}'


def render_wrapper(relocated_path: str | Path, spec: WrapSpec) -> str:
    """Render the full wrapper script.

    Args:
        relocated_path: Where the real executable now lives
        spec: Arguments and environment to inject

    Returns:
        Script text

    """
    relocated = str(relocated_path)
    if '\n' in relocated:
        raise ValidationError(f"line breaks are not allowed in paths: {relocated!r}", path=relocated)

    lines = [
        SHEBANG,
        MARKER,
        f'{ORIGINAL_PREFIX}{relocated}',
        f'{SPEC_PREFIX}{json.dumps(spec.to_dict(), sort_keys=True)}',
    ]
    lines += [render_env_line(assignment) for assignment in spec.env]

    command = ['exec', shlex.quote(relocated)]
    command += [shlex.quote(arg) for arg in spec.args]
    command.append('"$@"')
    command += [shlex.quote(arg) for arg in spec.trailing_args]
    lines.append(' '.join(command))

    return '\n'.join(lines) + '\n'


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------

def read_wrapper_record(path: str | Path) -> WrapperRecord | None:
    """Parse the wrapper header of *path*.

    Returns:
        The record, or ``None`` when *path* is not a wrapper (including
        when it cannot be read as one)

    """
    path = Path(path)
    try:
        with open(path, 'rb') as f:
            header = [f.readline(_MAX_HEADER_LINE) for _ in range(4)]
    except (IsADirectoryError, FileNotFoundError):
        return None

    shebang, marker, original, spec_line = (
        line.decode('utf-8', errors='surrogateescape').rstrip('\n') for line in header
    )
    if shebang != SHEBANG or marker != MARKER or not original.startswith(ORIGINAL_PREFIX):
        return None

    relocated = Path(original[len(ORIGINAL_PREFIX):])
    spec = None
    if spec_line.startswith(SPEC_PREFIX):
        try:
            spec = WrapSpec.from_dict(json.loads(spec_line[len(SPEC_PREFIX):]))
        except (json.JSONDecodeError, ValidationError) as e:
            log.warning('Wrapper %s has an unreadable spec line: %s', path, e)

    return WrapperRecord(wrapper_path=path, relocated_path=relocated, spec=spec)


def is_wrapper(path: str | Path) -> bool:
    """Return ``True`` if *path* carries the wrapper marker."""
    return read_wrapper_record(path) is not None


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

class WrapperWriter:
    """Writes wrapper scripts at original executable locations."""

    def write(
        self,
        original_path: str | Path,
        relocated_path: str | Path,
        spec: WrapSpec,
        update: bool = False,
    ) -> Path:
        """Write the wrapper for *relocated_path* at *original_path*.

        The wrapper takes the permission bits (and, when running as root,
        the ownership) of the real executable at *relocated_path*, plus read
        permission for every class that may execute it. The file is written
        to a temporary sibling and renamed into place.

        Args:
            original_path: Location the wrapper is written to
            relocated_path: Real executable the wrapper execs
            spec: Arguments and environment to inject
            update: Allow replacing an existing wrapper in place

        Returns:
            The wrapper path

        Raises:
            AlreadyWrappedError: A wrapper exists and ``update`` is false
            WriteError: The directory is not writable or the write failed

        """
        original = Path(original_path)
        relocated = Path(relocated_path)

        if not update and is_wrapper(original):
            raise AlreadyWrappedError(f"`{original}` is already wrapped", path=original)

        parent = original.parent
        if not os.access(parent, os.W_OK):
            raise WriteError(f"directory `{parent}` is not writable", path=parent)

        try:
            source_stat = relocated.stat()
        except OSError as e:
            raise WriteError(f"cannot read permissions of `{relocated}`: {e}", path=relocated) from e

        mode = stat.S_IMODE(source_stat.st_mode)
        # sh must read the script, so whoever may execute it may also read it
        mode |= (mode & 0o111) << 2
        if mode & (stat.S_ISUID | stat.S_ISGID):
            log.warning(
                'Original %s is setuid/setgid; the kernel ignores these bits on the '
                'wrapper script, so the program will run with the caller\'s privileges',
                relocated,
            )

        content = render_wrapper(relocated, spec)

        try:
            fd, tmp_name = tempfile.mkstemp(dir=parent, prefix=f'.{original.name}.', suffix='.tmp')
        except OSError as e:
            raise WriteError(f"failed to create wrapper next to `{original}`: {e}", path=original) from e

        try:
            with os.fdopen(fd, 'w', encoding='utf-8', errors='surrogateescape') as f:
                f.write(content)
                if os.geteuid() == 0:
                    os.fchown(f.fileno(), source_stat.st_uid, source_stat.st_gid)
                os.fchmod(f.fileno(), mode)
            os.replace(tmp_name, original)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise WriteError(f"failed to write wrapper `{original}`: {e}", path=original) from e

        log.info('Wrote wrapper %s -> %s', original, relocated)
        return original
