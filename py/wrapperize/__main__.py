"""Main entry point for running wrapperize as a module.

Usage:
    python -m wrapperize wrap <target> [--arg ARG]... [--env NAME=VALUE]...
    python -m wrapperize unwrap <target>
    python -m wrapperize info <target>

"""

import sys
from ._cli import main


if __name__ == '__main__':
    sys.exit(main())
