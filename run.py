#!/usr/bin/env python3
"""
Run the comp sync development stub API.
"""

import uvicorn

from utils.config import Config


def main():
    """Start the stub server."""
    config = Config.load()

    print(f"Starting comp sync stub API on http://{config.host}:{config.port}/v1")
    print("Press Ctrl+C to stop")

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
