"""`python -m adwhois` / `adwhois`: serve the API with uvicorn."""
from __future__ import annotations

import uvicorn

from .env_settings import get_env


def main() -> None:
    env = get_env()
    uvicorn.run(
        "adwhois.main:app",
        host=env.app_host,
        port=env.app_port,
        log_config=None,  # setup_logging owns the root logger
    )


if __name__ == "__main__":
    main()
