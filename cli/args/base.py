from __future__ import annotations

import argparse


def add_base_args(parser: argparse.ArgumentParser) -> None:
    """Register the input flags.

    Action inputs normally arrive as ``INPUT_<KEY>`` environment variables.
    These flags let the same run be driven from a terminal:

    - ``--config``: YAML file mapping input keys to values
    - ``--input``: one ``key=value`` pair, repeatable (wins over ``--config``)
    - ``--env-file``: ``.env`` file loaded before inputs are read
    - ``--workspace``: directory the engine runs in (default: ``$GITHUB_WORKSPACE`` or cwd)
    """

    parser.add_argument(
        "--config",
        dest="config_file",
        default=None,
        help="YAML file with action inputs (e.g. polaris_server_url: https://...).",
    )
    parser.add_argument(
        "--input",
        dest="inputs",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Set one action input. Repeatable; overrides --config and the environment.",
    )
    parser.add_argument(
        "--env-file",
        dest="env_file",
        default=None,
        help="Load environment variables from this .env file (default: ./.env when present).",
    )
    parser.add_argument(
        "--workspace",
        default=None,
        help="Working directory for the engine and the SARIF/diagnostics lookups.",
    )


def add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Emit debug logs (also enabled by RUNNER_DEBUG=1).",
    )
