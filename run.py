#!/usr/bin/env python3
"""
Production startup script for the Blood Bank API
"""
import uvicorn
import sys
from app.core.config import settings
from app.core.logging import logger

def main():
    """Start the FastAPI application."""

    logger.info(f"Starting {settings.APP_NAME} Server")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug Mode: {settings.DEBUG}")
    logger.info(f"Database: {'SQLite' if settings.is_sqlite else 'server database'}")
    if settings.SIMULATE_DONOR_DISTANCES:
        logger.warning("Donor distances are simulated; do not use this mode in production")

    config = {
        "app": "app.main:app",
        "host": settings.HOST,
        "port": settings.PORT,
        "reload": settings.DEBUG,
        "log_level": settings.LOG_LEVEL.lower(),
        "access_log": True,
        "use_colors": settings.DEBUG,
    }

    if not settings.DEBUG:
        # In-process stock locks only cover one worker; the batch version
        # column guards writers across workers.
        config.update({
            "workers": settings.WORKERS,
            "lifespan": "on",
        })

    logger.info(f"Starting server on {config['host']}:{config['port']}")

    try:
        uvicorn.run(**config)
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)

if __name__ == "__main__":
    main()
