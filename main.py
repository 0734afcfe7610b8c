#!/usr/bin/env python3
"""
Session Gateway - cookie sessions in front of an upstream identity service.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)


def main():
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Run the session gateway between the SPA and the upstream identity service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve with settings from the environment (PORT, UPSTREAM_API_URL, ...)
  python main.py

  # Override the listener
  python main.py --host 127.0.0.1 --port 4000
        """,
    )
    parser.add_argument("--host", default=None, help="Bind host (default: $HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Listen port (default: $PORT or 3001)")

    args = parser.parse_args()

    try:
        from gateway.api.server import run

        run(host=args.host, port=args.port)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
