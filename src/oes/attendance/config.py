"""Config module."""
import argparse
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

from attrs import frozen
from oes.attendance.models.config import Config
from oes.attendance.serialization import get_config_converter
from ruamel.yaml import YAML

yaml = YAML(typ="safe")


@frozen(kw_only=True)
class CommandLineConfig:
    """Command line config settings."""

    port: int = 8000
    bind: str = "127.0.0.1"
    root_path: str = ""
    debug: bool = False
    reload: bool = False
    insecure: bool = False
    """Allow settings that must not be used in production."""

    no_auth: bool = False
    """Grant every scope to any valid token. Requires ``insecure``."""

    config: Path = Path("config.yml")


def load_config(path: Path) -> Config:
    """Load the main configuration."""
    doc = yaml.load(path)
    return get_config_converter().structure(doc, Config)


def parse_args(argv: Optional[Sequence[str]] = None) -> CommandLineConfig:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="OES Attendance HTTP API server")
    parser.add_argument("-p", "--port", type=int, help="the port to listen on")
    parser.add_argument("-b", "--bind", help="the address to bind to")
    parser.add_argument("--root-path", help="the URL root path")
    parser.add_argument(
        "-d", "--debug", action="store_true", help="enable debug logging"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="watch file changes and reload the server for development",
    )
    parser.add_argument(
        "--insecure", action="store_true", help="enable insecure settings"
    )
    parser.add_argument(
        "--no-auth", action="store_true", help="grant every scope to any valid token"
    )
    parser.add_argument("-c", "--config", type=Path, help="path to the config file")

    args = parser.parse_args(argv)
    # unset options keep the defaults
    return CommandLineConfig(
        **{k: v for k, v in vars(args).items() if v is not None}
    )
