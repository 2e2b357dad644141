#!/usr/bin/env python3
"""
NGO Donation Ledger - Production Startup Script
Run this script to start the API in production mode
"""

import uvicorn
import os
import sys
from pathlib import Path


def main():
    """Start the NGO donation ledger API."""

    app_dir = Path(__file__).parent
    os.chdir(app_dir)

    port = int(os.getenv("PORT", 8000))
    host = os.getenv("HOST", "0.0.0.0")
    workers = int(os.getenv("WEB_CONCURRENCY", 1))

    print("Starting NGO Donation Ledger...")
    print(f"Host: {host}")
    print(f"Port: {port}")
    print(f"Workers: {workers}")

    if not os.getenv("DATABASE_URL"):
        print("Warning: DATABASE_URL not set. Falling back to a local SQLite file.")
    if not os.getenv("SECRET_KEY"):
        print("Warning: SECRET_KEY not set. Tokens will not survive a restart or be shared across workers.")

    try:
        uvicorn.run(
            "main:app",
            host=host,
            port=port,
            reload=False,
            access_log=True,
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
            workers=workers,
            server_header=False,
            timeout_keep_alive=30,
        )
    except KeyboardInterrupt:
        print("\nShutting down gracefully...")
    except Exception as e:
        print(f"Error starting server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
