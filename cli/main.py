"""CLI entry point."""

import os
import sys

from common.logging_config import setup_logging
from cli.constants import HELP_TEXT
from cli.parser import ParseError, parse_tokens
from cli.repl import dispatch_command, repl_loop


def run_once(argv: list[str]) -> int:
    """
    Run a single command given on the command line (e.g. `docupload upload a.pdf THESIS`).

    Returns:
        Process exit code
    """
    if argv[0] in ("help", "--help", "-h"):
        print(HELP_TEXT)
        return 0

    try:
        cmd_obj = parse_tokens(argv)
    except ParseError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    result = dispatch_command(cmd_obj)
    print(result)
    failed = any(line.startswith(("Error:", "Upload failed:")) for line in result.splitlines())
    return 1 if failed else 0


def main() -> None:
    """Entry point for CLI."""
    args = sys.argv[1:]
    debug = '--debug' in args
    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')

    logger = setup_logging('cli', log_level=log_level)

    if debug:
        logger.info("Debug logging enabled")
        args.remove('--debug')

    if args:
        sys.exit(run_once(args))

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
