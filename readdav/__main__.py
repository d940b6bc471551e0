"""
readdav - Main Entry Point

This module provides the CLI interface and wires up the configuration,
logging, WSGI application and HTTP server.
"""

import argparse
import logging
import sys

from .app import DavApplication
from .config import load_config
from .logger import setup_logging
from .server import DavServer

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_BIND_ERROR = 6


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="readdav - read-only WebDAV file server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  readdav serve --base /srv/files --port 8080
  readdav serve --address 127.0.0.1 --dircache 60 --verbose
  readdav serve --config readdav.ini
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    serve_parser = subparsers.add_parser("serve", help="Serve a directory over WebDAV")
    serve_parser.add_argument("--config", help="Path to configuration file")
    serve_parser.add_argument("--address", help="The address the dav server should listen to")
    serve_parser.add_argument("--port", type=int, help="The port the dav server should listen to")
    serve_parser.add_argument("--base", help="The start directory for the files to be served")
    serve_parser.add_argument("--threads", type=int, help="Number of request worker threads")
    serve_parser.add_argument("--dircache", type=int, help="Seconds to cache dir results")
    serve_parser.add_argument("--verbose", action="store_true", help="Display verbose info")
    serve_parser.add_argument(
        "--debug", action="store_true", help="Display debug info and re-raise internal errors"
    )

    return parser.parse_args(argv)


def cmd_serve(args):
    """
    Handle the serve command.

    Loads configuration, builds the application and serves until Ctrl+C.
    """
    try:
        config = load_config(
            config_path=args.config,
            address=args.address,
            port=args.port,
            base=args.base,
            threads=args.threads,
            dircache=args.dircache,
            verbose=args.verbose,
            debug=args.debug,
        )
    except (ValueError, FileNotFoundError) as e:
        print(f"[ERROR] Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(config.logging)
    from . import __version__

    logger.info("Starting readdav v%s", __version__)
    logger.info("Serving %s", config.server.base_dir)

    app = DavApplication(config)
    server = DavServer(
        app,
        address=config.server.address,
        port=config.server.port,
        threads=config.server.threads,
    )
    try:
        server.start()
    except OSError as e:
        logger.error("Could not bind %s:%d: %s", config.server.address, config.server.port, e)
        print("Could not get listening address. Exiting", file=sys.stderr)
        return EXIT_BIND_ERROR
    return EXIT_OK


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    if args.command == "serve":
        return cmd_serve(args)
    print("Usage: readdav <command> [options]")
    print()
    print("Commands:")
    print("  serve    Serve a directory over WebDAV")
    print()
    print("Run 'readdav <command> --help' for more information.")
    return EXIT_CONFIG_ERROR


if __name__ == "__main__":
    sys.exit(main() or 0)
