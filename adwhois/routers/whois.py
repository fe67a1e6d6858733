from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from ..ad import ADClient
from ..deps import get_ad_client, get_default_group, read_group_name

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/whois", tags=["whois"])


# v1


@router.get("/v1/GetGroupMembers", response_model=list[str])
def get_members_default(
    client: ADClient = Depends(get_ad_client),
    group: str = Depends(get_default_group),
):
    """Display names of the members of the configured default group."""
    if not group:
        log.warning("AD_DEFAULT_GROUP is empty, v1/GetGroupMembers returns nothing")
        return []
    return client.resolve_group_members(group)


@router.post("/v1/GetAdGroupUsers", response_model=list[str])
def get_ad_group_users(
    group: str = Depends(read_group_name),
    client: ADClient = Depends(get_ad_client),
):
    """Raw member DNs of the group whose cn equals the body."""
    return client.group_member_dns(group)


# v2


@router.post("/v2/GetGroupMembers", response_model=list[str])
def get_members(
    group: str = Depends(read_group_name),
    client: ADClient = Depends(get_ad_client),
):
    return client.resolve_group_members(group)
