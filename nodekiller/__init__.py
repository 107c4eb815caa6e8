"""nodekiller: find and kill local node, vite and bun servers listening on TCP ports."""
from .cli import _get_app_version, cli_entry

__version__ = _get_app_version()

__all__ = ["cli_entry", "__version__"]
