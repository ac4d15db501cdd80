#!/usr/bin/env python
"""
Stats Dashboard API launcher

Usage:
    python run_server.py --dev              # auto-reload, console logs
    python run_server.py                    # uvicorn, settings-driven
    python run_server.py --gunicorn         # gunicorn.conf.py

Host, port and worker count default to API_HOST / API_PORT / API_WORKERS.
"""

import argparse
import os
import subprocess
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

APP = "stats_dashboard.main:app"


def run_uvicorn(host: str, port: int, workers: int, dev: bool) -> None:
    import uvicorn

    if dev:
        # must be set before the app module reads its settings
        os.environ.setdefault("LOG_FORMAT", "text")
        uvicorn.run(APP, host=host, port=port, reload=True, reload_dirs=["stats_dashboard"], log_level="debug")
        return

    # every worker holds its own aggregation service and product batch
    uvicorn.run(
        APP,
        host=host,
        port=port,
        workers=workers,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
        server_header=False,
    )


def run_gunicorn(port: int) -> None:
    os.environ.setdefault("BIND", f"0.0.0.0:{port}")
    subprocess.run(["gunicorn", APP, "-c", "gunicorn.conf.py"], check=True)


def main() -> None:
    from stats_dashboard.config import get_settings

    settings = get_settings()

    parser = argparse.ArgumentParser(description="Stats Dashboard API Server")
    parser.add_argument("--dev", action="store_true", help="Auto-reload with console logs")
    parser.add_argument("--gunicorn", action="store_true", help="Serve through Gunicorn")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    parser.add_argument("--workers", type=int, default=settings.api_workers)
    args = parser.parse_args()

    if args.gunicorn:
        print(f"Starting Stats Dashboard with Gunicorn on port {args.port}")
        run_gunicorn(args.port)
    else:
        mode = "development" if args.dev else "production"
        print(f"Starting Stats Dashboard ({mode}) on {args.host}:{args.port}")
        run_uvicorn(args.host, args.port, args.workers, args.dev)


if __name__ == "__main__":
    main()
