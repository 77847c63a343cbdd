#
# Copyright 2025 The TadoLocal and AmpScm contributors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#    http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Command-line interface for Renogy Local."""

import asyncio
import argparse
import logging
import logging.handlers
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import uvicorn

from .cache import ResponseCache
from .cloud import RenogyCloudAPI
from .config import Settings
from .routes import create_app, register_routes
from .viewmodel import default_roles

# Logger will be configured in main() based on daemon/console mode
logger = logging.getLogger(__name__)

# Global variables
cloud_api: Optional[RenogyCloudAPI] = None
server: Optional[uvicorn.Server] = None


def build_log_config(syslog: bool, daemon: bool) -> dict:
    """Uvicorn log_config matching the root logger format."""
    if syslog:
        # Syslog mode: disable uvicorn's default logging, use root logger
        return {
            "version": 1,
            "disable_existing_loggers": False,
            "loggers": {
                "uvicorn": {"handlers": [], "level": "INFO", "propagate": True},
                "uvicorn.error": {"handlers": [], "level": "INFO", "propagate": True},
                "uvicorn.access": {"handlers": [], "level": "WARNING", "propagate": True},
            },
        }

    if daemon:
        # Daemon mode: simple format without timestamps
        formatter = {"format": "%(levelname)-8s %(message)s"}
    else:
        # Console mode: timestamp + message
        formatter = {"format": "%(asctime)s %(levelname)s %(message)s", "datefmt": "%Y-%m-%d %H:%M:%S"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": dict(formatter),
            "access": dict(formatter),
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "formatter": "access",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
        },
    }


async def run_server(args, settings: Settings):
    """Run the Renogy Local server."""
    global cloud_api, server

    def handle_signal(signum, frame):
        """Handle shutdown signals gracefully."""
        logger.info(f"Received signal {signum}, shutting down...")
        if server:
            server.should_exit = True

    # Register signal handlers
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        missing = settings.missing_credentials()
        if missing:
            logger.warning(f"WARNING: {' and '.join(missing)} not set - upstream calls will fail")
            logger.warning("Check /api/test once credentials are configured")

        cloud_api = RenogyCloudAPI(
            settings.access_key,
            settings.secret_key,
            base_url=settings.base_url,
            cache=ResponseCache(ttl=settings.cache_ttl),
            timeout=settings.request_timeout
        )

        # Create the FastAPI app
        app = create_app()
        register_routes(
            app,
            lambda: cloud_api,
            roles=default_roles(settings.house_controller, settings.shed_controller),
            max_concurrency=settings.max_concurrency
        )

        logger.info(f"*** Renogy Local ready! ***")
        logger.info(f"Kiosk display: http://{args.host}:{settings.port}/")
        logger.info(f"Documentation: http://{args.host}:{settings.port}/docs")
        logger.info(f"Dashboard: http://{args.host}:{settings.port}/api/dashboard")

        # Start the FastAPI server
        config = uvicorn.Config(
            app,
            host=args.host,
            port=settings.port,
            log_config=build_log_config(bool(args.syslog), args.daemon),
            access_log=True
        )
        server = uvicorn.Server(config)
        await server.serve()

    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down gracefully...")
    except Exception as e:
        logger.error(f"ERROR: Failed to start Renogy Local: {e}")
        raise
    finally:
        if cloud_api:
            await cloud_api.close()

        # Clean up PID file
        if args.pid_file:
            pid_path = Path(args.pid_file)
            try:
                if pid_path.exists():
                    pid_path.unlink()
                    logger.info(f"PID file removed: {pid_path}")
            except OSError as e:
                logger.warning(f"Failed to remove PID file: {e}")


def configure_logging(args):
    """Configure the root logger for console, daemon or syslog output."""
    if args.syslog:
        # Parse syslog address
        syslog_address = args.syslog
        if ':' in syslog_address and not syslog_address.startswith('/'):
            # Network address (host:port)
            host, port = syslog_address.rsplit(':', 1)
            syslog_address = (host, int(port))
        # else: Unix socket path (e.g., /dev/log)

        try:
            syslog_handler = logging.handlers.SysLogHandler(
                address=syslog_address,
                facility=logging.handlers.SysLogHandler.LOG_DAEMON
            )
            syslog_handler.setFormatter(logging.Formatter(
                'renogy-local[%(process)d]: %(levelname)s %(message)s'
            ))

            root_logger = logging.getLogger()
            root_logger.setLevel(logging.INFO)
            root_logger.handlers = [syslog_handler]

            logger.info("Logging to syslog: %s", args.syslog)
        except OSError as e:
            # Fall back to console if syslog fails
            logging.basicConfig(
                level=logging.INFO,
                format='%(asctime)s %(levelname)s %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S',
                stream=sys.stdout,
                force=True
            )
            logger.error(f"Failed to connect to syslog ({args.syslog}): {e}")
            logger.info("Falling back to console logging")
    elif args.daemon:
        # Daemon mode: no timestamp - syslog adds it
        logging.basicConfig(
            level=logging.INFO,
            format='%(levelname)s %(message)s',
            stream=sys.stdout,
            force=True
        )
    else:
        # Console mode: timestamp + message
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s %(levelname)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S',
            stream=sys.stdout,
            force=True
        )

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.info("Verbose logging enabled")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Renogy Local - proxy and kiosk display for the Renogy Open API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment:
  RENOGY_ACCESS_KEY        Renogy Open API access key
  RENOGY_SECRET_KEY        Renogy Open API secret key
  PORT                     Listening port (default: 3000)
  RENOGY_CACHE_TTL         Response cache lifetime in seconds (default: 60)
  RENOGY_REQUEST_TIMEOUT   Upstream call timeout in seconds (default: 10)
  RENOGY_MAX_CONCURRENCY   Parallel upstream calls per dashboard (default: 8)
  RENOGY_HOUSE_CONTROLLER  Name of the house controller (default: Controller House)
  RENOGY_SHED_CONTROLLER   Name of the shed controller (default: Controller Shed)

Examples:
  # Start the server (console mode)
  python -m renogy_local
  renogy-local --port 8080

  # Run as system daemon
  renogy-local --daemon --pid-file /var/run/renogy-local.pid

  # Send logs to local syslog
  renogy-local --syslog /dev/log

API Endpoints:
  GET  /                          - Kiosk display
  GET  /api/test                  - Verify credentials
  GET  /api/devices               - Device list
  GET  /api/devices/{id}/latest   - Latest readings
  GET  /api/dashboard             - Aggregated device tree
  GET  /api/view/{location}       - Display values for house/shed
        """
    )
    parser.add_argument("--port", type=int,
                       help="Port for the HTTP server (default: $PORT or 3000)")
    parser.add_argument("--host", default="0.0.0.0",
                       help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--verbose", action="store_true",
                       help="Enable verbose logging (DEBUG level)")
    parser.add_argument("--daemon", action="store_true",
                       help="Run in daemon mode (structured logging for syslog)")
    parser.add_argument("--syslog",
                       help="Send logs to syslog instead of stdout (e.g., /dev/log or logserver:514)")
    parser.add_argument("--pid-file",
                       help="Write process ID to specified file")
    return parser


def main():
    """Main entry point for the CLI."""
    args = build_parser().parse_args()
    configure_logging(args)

    settings = Settings.from_env()
    if args.port:
        settings.port = args.port

    # Write PID file if requested
    if args.pid_file:
        pid_path = Path(args.pid_file)
        try:
            pid_path.write_text(str(os.getpid()))
            logger.info(f"PID file written: {pid_path}")
        except OSError as e:
            logger.error(f"Failed to write PID file: {e}")
            sys.exit(1)

    try:
        asyncio.run(run_server(args, settings))
    except KeyboardInterrupt:
        logger.info("*** Shutdown complete ***")
    except Exception as e:
        logger.error(f"ERROR: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
