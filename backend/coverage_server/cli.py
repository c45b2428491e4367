"""Command-line interface: ``coverage-server serve`` and ``coverage-server build``."""

import argparse
import logging
import subprocess
import sys
import time
from typing import Optional

from coverage_server import bundler
from coverage_server.main import create_server_factory


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="coverage-server",
        description="Serve and build the test code coverage report viewer.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Start the HTTP server")
    serve.add_argument("--address", help="Server address")
    serve.add_argument("--hostname", help="Server hostname (defaults to the address)")
    serve.add_argument("--port", type=int, help="Server port (0 picks a free port)")
    serve.add_argument("--prefix", action="append", help="URL prefix for static files (repeatable)")
    serve.add_argument("--root", help="Directory containing index.html")
    serve.add_argument("--static", action="append", help="Static file directory (repeatable)")
    serve.add_argument("--log-level", help="Log level, e.g. info or debug")
    serve.add_argument("--trust-proxy", action="store_true", help="Trust X-Forwarded-* headers")
    serve.add_argument(
        "--strict-trailing-slash",
        action="store_true",
        help="Do not redirect between paths with and without a trailing slash",
    )

    build = sub.add_parser("build", help="Bundle the front end with esbuild")
    build.add_argument("--esbuild", default="esbuild", help="Path to the esbuild executable")
    return parser


def _one_or_many(values: list):
    return values[0] if len(values) == 1 else values


def options_from_args(args: argparse.Namespace) -> dict:
    """Map parsed ``serve`` arguments onto server options."""
    options = {}
    for key in ("address", "hostname", "port", "root"):
        value = getattr(args, key)
        if value is not None:
            options[key] = value
    if args.prefix:
        options["prefix"] = _one_or_many(args.prefix)
    if args.static:
        options["static"] = _one_or_many(args.static)
    if args.log_level:
        options["logger"] = args.log_level
    if args.trust_proxy:
        options["trust_proxy"] = True
    if args.strict_trailing_slash:
        options["ignore_trailing_slash"] = False
    return options


def serve(args: argparse.Namespace) -> int:
    try:
        create_server = create_server_factory(options_from_args(args))
    except (TypeError, ValueError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2

    result = {}

    def done(error, server=None):
        result["error"] = error
        result["server"] = server

    create_server(done)
    if result["error"]:
        print(f"error: {result['error']}", file=sys.stderr)
        return 1

    server = result["server"]
    print(f"Serving coverage reports on {server.url} (Ctrl+C to stop)")
    try:
        while server.running:
            time.sleep(0.5)
    except KeyboardInterrupt:
        print("\nShutting down server...")
    finally:
        server.close()
    return 0


def build(args: argparse.Namespace) -> int:
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    try:
        bundler.build(esbuild=args.esbuild)
    except FileNotFoundError:
        print(f"error: esbuild executable not found: {args.esbuild}", file=sys.stderr)
        return 127
    except subprocess.CalledProcessError as exc:
        return exc.returncode
    return 0


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "build":
        return build(args)
    return serve(args)


if __name__ == "__main__":
    sys.exit(main())
