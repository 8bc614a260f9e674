#!/usr/bin/env python3
"""
Script to run the Book Review API server.

Settings come from the environment (see api/config.py); the options below
override them for a single run.
"""

import argparse
import sys
from pathlib import Path

import uvicorn

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from api.config import config


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run the Book Review API server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Serve with settings from the environment
  python run_api.py

  # Serve on another port with auto-reload
  python run_api.py --port 8000 --reload
        """
    )
    parser.add_argument("--host", default=config.host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=config.port, help="Port to listen on")
    parser.add_argument("--reload", action="store_true", default=config.debug, help="Reload on code changes")
    return parser.parse_args(argv)


def main(argv=None):
    """Run the API server."""
    args = parse_args(argv)

    print("📚 Starting Book Review API Server")
    print(f"📡 Listening on: http://{args.host}:{args.port}/api")
    print(f"🗄️  Database: {config.mongodb_database}")
    print(f"🔁 Reload: {args.reload}")
    print("=" * 50)

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=config.log_level.lower(),
        access_log=False
    )


if __name__ == "__main__":
    main()
