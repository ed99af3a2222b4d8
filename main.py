#!/usr/bin/env python3
"""
Regulatory Review Explorer: launch the web GUI.

Usage:
    python main.py                              # http://localhost:8000
    python main.py --port 9000                  # http://localhost:9000
    python main.py --host 127.0.0.1             # bind to localhost only
    python main.py --data-dir /path/to/data     # folder with reg_list.json + sched.json
    python main.py --data-url https://example.org --base-path /scdar
    python main.py --reload                     # auto-reload on code changes
"""

from __future__ import annotations

import argparse
import os
import sys
import webbrowser
from pathlib import Path


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Launch the Regulatory Review Explorer web interface.",
    )
    parser.add_argument(
        "--host", default="0.0.0.0",
        help="Bind address (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port", type=int, default=int(os.getenv("APP_PORT", "8000")),
        help="Port to listen on (default: 8000 or APP_PORT env var)",
    )
    parser.add_argument(
        "--data-dir", type=Path, default=None,
        help="Directory holding reg_list.json and sched.json (default: data or APP_DATA_DIR)",
    )
    parser.add_argument(
        "--data-url", default=None,
        help="Fetch the documents from this origin instead of --data-dir (APP_DATA_URL)",
    )
    parser.add_argument(
        "--base-path", default=None,
        help="Deployment base path, e.g. /scdar (APP_BASE_PATH)",
    )
    parser.add_argument(
        "--reload", action="store_true",
        help="Enable auto-reload on file changes (development mode)",
    )
    parser.add_argument(
        "--no-browser", action="store_true",
        help="Don't open a browser window automatically",
    )
    args = parser.parse_args()

    # CLI flags win over the environment; create_app() reads the environment.
    if args.data_dir is not None:
        os.environ["APP_DATA_DIR"] = str(args.data_dir)
    if args.data_url is not None:
        os.environ["APP_DATA_URL"] = args.data_url
    if args.base_path is not None:
        os.environ["APP_BASE_PATH"] = args.base_path

    data_url = os.getenv("APP_DATA_URL", "")
    data_dir = Path(os.getenv("APP_DATA_DIR", "data"))
    if not data_url:
        missing = [n for n in ("reg_list.json", "sched.json") if not (data_dir / n).is_file()]
        if missing:
            print(f"Warning: {', '.join(missing)} not found in {data_dir}")
            print("  The page will report the load failure until the files are in place,")
            print("  or pass --data-dir /path/to/data / --data-url https://host")
            print()

    try:
        import uvicorn
    except ImportError:
        print("Error: uvicorn is not installed.")
        print("  pip install uvicorn[standard]")
        sys.exit(1)

    base_path = os.getenv("APP_BASE_PATH", "").strip().strip("/")
    host = "localhost" if args.host == "0.0.0.0" else args.host
    url = f"http://{host}:{args.port}/{base_path}"
    print(f"Starting Regulatory Review Explorer at {url}")
    print(f"Data: {data_url or data_dir}")
    print()

    if not args.no_browser:
        # Open browser after a short delay to let the server start
        import threading
        threading.Timer(1.5, webbrowser.open, args=(url,)).start()

    uvicorn.run(
        "api.app:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
