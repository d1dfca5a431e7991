"""
Entry point — start the focus engine.

Usage:
    python -m focus_engine.main
    uvicorn focus_engine.api.app:app --host 127.0.0.1 --port 8765 --reload
"""

import uvicorn

from .config import config
from .logging_config import setup_logging


def main():
    setup_logging(config.log_level, config.log_file)
    uvicorn.run(
        "focus_engine.api.app:app",
        host=config.api_host,
        port=config.api_port,
        reload=False,
        log_level=config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
