#!/usr/bin/env python3
"""
CLI entrypoint for the Black Duck security scan launcher.

Inputs come from the GitHub Actions environment (``INPUT_<KEY>``), a YAML
file, or ``--input`` flags.

Usage:
  python bridge_cli.py
  python bridge_cli.py --config inputs.yml
  python bridge_cli.py --input polaris_server_url=https://polaris.example --input polaris_access_token=...
  python bridge_cli.py --env-file .env.local --workspace ../my-repo --debug
"""

from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from cli.args import add_base_args, add_logging_args
from cli.dispatch import run_action
from cli.ui import configure_logging


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Provision the Bridge CLI, run Polaris/Coverity/Black Duck SCA/SRM scans and publish results."
    )
    add_base_args(parser)
    add_logging_args(parser)
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    configure_logging(args.debug)

    code = run_action(args)
    if code == 0:
        print("\n✅ Black Duck security scan completed.")
    else:
        print(f"\n⚠️ Black Duck security scan finished with exit code {code}")
    sys.exit(code)


if __name__ == "__main__":
    main()
