"""CLI entry point."""

import os
import sys
from pathlib import Path

from common.logging_config import setup_logging
from cli.config import Config
from cli.repl import repl_loop


def _apply_server_flag(logger) -> None:
    """
    Handle '--server host:port', which updates the saved config before the REPL starts.
    """
    if '--server' not in sys.argv:
        return

    index = sys.argv.index('--server')
    try:
        host, _, port = sys.argv[index + 1].rpartition(':')
        Config(Path.home() / '.vault' / 'config.json').set_server(host or 'localhost', int(port))
        logger.info(f"Server set to {host or 'localhost'}:{port}")
    except (IndexError, ValueError):
        print("Usage: vault-cli [--debug] [--server host:port]")
        sys.exit(2)
    del sys.argv[index:index + 2]


def main() -> None:
    """Entry point for CLI."""
    log_level = 'DEBUG' if '--debug' in sys.argv else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if '--debug' in sys.argv:
        logger.info("Debug logging enabled")
        sys.argv.remove('--debug')

    _apply_server_flag(logger)

    logger.info("CLI starting...")
    try:
        repl_loop()
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise
    finally:
        logger.info("CLI exiting")


if __name__ == "__main__":
    main()
