from __future__ import annotations

import json
import logging

from fastapi import Depends, HTTPException, Request, status

from .ad import ADClient
from .env_settings import EnvSettings, get_env
from .services import ad_cfg_from_env

log = logging.getLogger(__name__)


def get_ad_client(env: EnvSettings = Depends(get_env)) -> ADClient:
    cfg = ad_cfg_from_env(env)
    if not cfg:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Directory is not configured (AD_DC, AD_DOMAIN, AD_BIND_USERNAME).",
        )
    try:
        return ADClient(cfg)
    except ValueError as e:
        # malformed AD_CA_PEM
        log.error("Directory client setup failed: %s", e)
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))


def get_default_group(env: EnvSettings = Depends(get_env)) -> str:
    return (env.ad_default_group or "").strip()


async def read_group_name(request: Request) -> str:
    """Group name from the request body.

    Accepts plain text or a JSON string ("Engineers"), the latter being what
    older clients send with Content-Type: application/json.
    """
    raw = (await request.body()).decode("utf-8", errors="replace").strip()
    ctype = (request.headers.get("content-type") or "").lower()

    value = raw
    if raw and ("json" in ctype or raw.startswith('"')):
        try:
            parsed = json.loads(raw)
        except ValueError:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Malformed JSON body.")
        if not isinstance(parsed, str):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="Body must be a group name string.",
            )
        value = parsed.strip()

    if not value:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Group name is required.")
    return value
