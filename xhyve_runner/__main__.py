"""Entrypoint for ``python -m xhyve_runner``."""

from __future__ import annotations

import sys

from xhyve_runner import cli

if __name__ == "__main__":
    sys.exit(cli.main())
