"""Shared CLI helpers."""

from __future__ import annotations

import argparse


def base_parser(name: str, description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=name, description=description)
    parser.add_argument("--config", default=None, help="Instance config file (overrides CVISIO_CONFIG_FILE)")
    parser.add_argument("--env-file", default=".env", help="Env file loaded before reading the config")
    return parser
