#!/usr/bin/env python3
"""
Economy Ledger Entry Point

Starts the FastAPI server for the world configured through LEDGER_* settings.
"""

import sys

import uvicorn

from economy_ledger.api import create_app
from economy_ledger.config import get_config
from economy_ledger.logging_config import setup_logging
from economy_ledger.system import LedgerSystem


def run_server(host: str, port: int, debug: bool = False) -> None:
    """Run the FastAPI server"""
    config = get_config()
    app = create_app(LedgerSystem.from_config(config))
    uvicorn.run(app, host=host, port=port, log_level="debug" if debug else "info")


if __name__ == "__main__":
    config = get_config()
    logger = setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    print("Starting Economy Ledger...")
    print(f"World: {config.world_id} ({config.storage_backend} storage at {config.storage_path})")
    print(f"API available at: http://localhost:{config.api_port}")
    print(f"Documentation at: http://localhost:{config.api_port}/docs")
    print()

    try:
        run_server(host=config.api_host, port=config.api_port)
    except KeyboardInterrupt:
        print("\nShutting down Economy Ledger...")
    except Exception as e:
        logger.exception("Error starting server")
        print(f"Error starting server: {e}")
        sys.exit(1)
