from __future__ import annotations

from fastapi import FastAPI

from .env_settings import get_env
from .log_config import setup_logging
from .routers.whois import router as whois_router


app = FastAPI(title="AD Whois")
app.include_router(whois_router)


@app.on_event("startup")
def _startup():
    env = get_env()
    setup_logging(level=env.log_level, log_dir=env.log_dir, retention_days=env.log_retention_days)


@app.get("/health")
def health():
    return {"status": "ok"}
