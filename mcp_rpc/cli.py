#!/usr/bin/env python3
# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
MCP RPC Server Command Line Interface

Runs the server with the built-in operations over stdio or HTTP.
"""

import argparse
import sys
from typing import List, Optional

from .config import SUPPORTED_PROTOCOL_VERSIONS, TRANSPORT_TYPES, configure_logging, load_config_from_env
from .server import create_server, run_server


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run an MCP RPC server with the built-in operations."
    )

    parser.add_argument(
        "--transport",
        choices=TRANSPORT_TYPES,
        default=None,
        help="Transport to serve on (default: MCP_TRANSPORT or stdio)"
    )

    parser.add_argument(
        "--host",
        default=None,
        help="Host to bind for the HTTP transport"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind for the HTTP transport"
    )

    parser.add_argument(
        "--name",
        default=None,
        help="Server name reported to clients"
    )

    parser.add_argument(
        "--protocol-version",
        choices=SUPPORTED_PROTOCOL_VERSIONS,
        default=None,
        help="Protocol version offered when the client asks for an unsupported one"
    )

    parser.add_argument(
        "--concurrent",
        action="store_true",
        default=None,
        help="Handle stdio requests concurrently"
    )

    parser.add_argument(
        "--require-initialize",
        action="store_true",
        default=None,
        help="Reject operation calls made before initialize"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Enable debug logging"
    )

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config_from_env(
            transport_type=args.transport,
            host=args.host,
            port=args.port,
            server_name=args.name,
            protocol_version=args.protocol_version,
            concurrent=args.concurrent,
            require_initialize=args.require_initialize,
            debug=args.debug,
        )
    except ValueError as e:
        print(f"Error: {str(e)}", file=sys.stderr)
        return 2

    configure_logging(config.debug)
    run_server(create_server(config=config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
