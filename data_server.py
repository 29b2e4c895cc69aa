#!/usr/bin/env python3
"""
Static file + CSV server for the pickup flow map.

GET /      -> files under the public directory
GET /data  -> the flow CSV, or 404 "CSV file not found"
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from flask import Flask, send_file, send_from_directory
from werkzeug.exceptions import HTTPException

from flow_config import CSV_PATH, LOG_FORMAT, LOG_LEVEL, PUBLIC_DIR, SERVER_HOST, SERVER_PORT

log = logging.getLogger(__name__)


def log_startup_checks(public_dir: Path, csv_path: Path) -> None:
    log.info("Checking directories...")
    log.info("Public directory exists: %s", public_dir.is_dir())
    log.info("Data directory exists: %s", csv_path.parent.is_dir())
    log.info("CSV file exists: %s", csv_path.is_file())


def create_app(public_dir: Optional[Path] = None, csv_path: Optional[Path] = None) -> Flask:
    public_dir = Path(public_dir or PUBLIC_DIR).resolve()
    csv_path = Path(csv_path or CSV_PATH).resolve()

    app = Flask(__name__, static_folder=None)
    app.config["PUBLIC_DIR"] = public_dir
    app.config["CSV_PATH"] = csv_path

    @app.route("/")
    def index():
        return send_from_directory(str(public_dir), "index.html")

    @app.route("/data")
    def data():
        log.info("CSV request, file path: %s", csv_path)
        if not csv_path.is_file():
            return "CSV file not found", 404, {"Content-Type": "text/plain; charset=utf-8"}
        return send_file(str(csv_path))

    @app.route("/<path:filename>")
    def static_files(filename):
        return send_from_directory(str(public_dir), filename)

    @app.errorhandler(Exception)
    def server_error(err):
        if isinstance(err, HTTPException):
            return err
        log.exception("Server error: %s", err)
        return "Something went wrong!", 500, {"Content-Type": "text/plain; charset=utf-8"}

    return app


def _log_uncaught(exc_type, exc, tb):
    # the interpreter still exits with status 1 after the hook returns
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc, tb)
        return
    log.critical("Uncaught Exception", exc_info=(exc_type, exc, tb))


def main(argv=None):
    parser = argparse.ArgumentParser(description="Pickup/dropoff flow data server")
    parser.add_argument("--host", default=SERVER_HOST)
    parser.add_argument("--port", type=int, default=SERVER_PORT)
    parser.add_argument("--csv", type=Path, default=CSV_PATH, help="flow CSV served at /data")
    parser.add_argument("--public", type=Path, default=PUBLIC_DIR, help="static directory served at /")
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
    sys.excepthook = _log_uncaught

    log_startup_checks(args.public, args.csv)
    app = create_app(public_dir=args.public, csv_path=args.csv)

    log.info("Server running at http://localhost:%d", args.port)
    log.info("Press Ctrl+C to stop the server")
    app.run(host=args.host, port=args.port, debug=False)


if __name__ == "__main__":
    main()
