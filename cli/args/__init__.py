"""CLI argument builder modules.

The top-level :mod:`bridge_cli` is intentionally kept thin. Flags are
registered by small "arg builder" functions housed here:

- :func:`cli.args.base.add_base_args`
- :func:`cli.args.base.add_logging_args`
"""

from __future__ import annotations

from .base import add_base_args, add_logging_args

__all__ = [
    "add_base_args",
    "add_logging_args",
]
