"""Command line entry point that serves the pet store over HTTP."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Sequence
from wsgiref.simple_server import WSGIServer, make_server as _wsgi_make_server

from .petstore import PetStore
from .petstore_http import PetStoreApp

DEFAULT_PORT = 8080
LISTEN_HOST = "0.0.0.0"


def _port(text: str) -> int:
    try:
        value = int(text)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port {text!r}") from None
    if not 0 <= value <= 65535:
        raise argparse.ArgumentTypeError(f"port {value} is out of range")
    return value


def build_parser() -> argparse.ArgumentParser:
    """Return the argument parser for the pet store server."""
    parser = argparse.ArgumentParser(
        prog="specserve",
        description="Serve the in-memory pet store API over HTTP.",
    )
    parser.add_argument(
        "--port",
        type=_port,
        default=DEFAULT_PORT,
        help="Port for test HTTP server",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Answer a successful pet creation with 200 instead of 201.",
    )
    return parser


def make_server(
    port: int = DEFAULT_PORT,
    store: PetStore | None = None,
    strict: bool = False,
) -> WSGIServer:
    """Create a WSGI server for the pet store, listening on all interfaces."""
    app = PetStoreApp(store if store is not None else PetStore(), strict=strict)
    return _wsgi_make_server(LISTEN_HOST, port, app)


def main(argv: Sequence[str] | None = None) -> int:
    """Run the pet store server until interrupted."""
    args = build_parser().parse_args(argv)
    with make_server(args.port, strict=args.strict) as server:
        host, port = server.server_address[:2]
        print(f"serving pet store on {host}:{port}", file=sys.stderr)
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            pass
    return 0