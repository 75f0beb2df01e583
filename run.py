"""
Start the ML pipeline API server.

Usage:
    python run.py [--host HOST] [--port PORT] [--reload] [--database-url URL]

Command-line options override the environment / .env settings for this run.
"""
import argparse
import os
import sys

import uvicorn

from ml_pipeline.config import settings
from ml_pipeline.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the ML pipeline API server")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")
    parser.add_argument("--reload", action="store_true", default=settings.reload, help="Reload on code changes")
    parser.add_argument(
        "--database-url",
        default=None,
        help=f"SQLite database URL (default: {settings.database_url})"
    )
    return parser


def apply_overrides(args) -> None:
    """Push command-line overrides into the settings the app reads at startup."""
    settings.host = args.host
    settings.port = args.port
    settings.reload = args.reload
    if args.database_url:
        settings.database_url = args.database_url
        # Reload workers import the app in a fresh process
        os.environ["DATABASE_URL"] = args.database_url


def main(argv=None):
    """Run the FastAPI application."""
    args = build_parser().parse_args(argv)
    apply_overrides(args)
    setup_logging(settings.log_level)

    try:
        logger.info("=" * 60)
        logger.info("ML Pipeline API - Starting Server")
        logger.info("=" * 60)
        logger.info(f"Address: http://{settings.host}:{settings.port}{settings.api_prefix}/ml")
        logger.info(f"Reload: {settings.reload}")
        logger.info(f"Database: {settings.database_url}")
        logger.info(f"Default tenant: {settings.default_tenant_id} (max {settings.max_tenants} in memory)")
        logger.info(f"Training deadline: {settings.training_timeout_seconds:g}s per job")
        logger.info(
            f"Artifact cache: {settings.artifact_cache_size} entries, "
            f"{settings.artifact_cache_ttl_seconds:g}s TTL"
        )
        logger.info("=" * 60)

        # Shutdown cancels running training jobs; give them time to be marked FAILED
        config = uvicorn.Config(
            "ml_pipeline.main:app",
            host=settings.host,
            port=settings.port,
            reload=settings.reload,
            log_level=settings.log_level.lower(),
            timeout_graceful_shutdown=10.0,
        )
        uvicorn.Server(config).run()
    except KeyboardInterrupt:
        logger.info("Server shutdown requested by user (Ctrl+C)")
        sys.exit(0)
    except Exception as e:
        logger.error(f"Fatal error starting server: {str(e)}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
