from __future__ import annotations

from ..ad import ADConfig
from ..ad.utils import split_values
from ..env_settings import EnvSettings


def _conn_params(mode: str, port_override: int) -> tuple[int, bool, bool]:
    """(port, use_ssl, starttls) for a connection mode."""
    mode = (mode or "ldaps").strip().lower()
    if mode == "ldaps":
        port, use_ssl, starttls = 636, True, False
    elif mode == "starttls":
        port, use_ssl, starttls = 389, False, True
    else:
        port, use_ssl, starttls = 389, False, False
    if port_override and port_override > 0:
        port = int(port_override)
    return port, use_ssl, starttls


def ad_cfg_from_env(env: EnvSettings) -> ADConfig | None:
    """Build ADConfig from environment settings; None when AD is not configured."""
    if not env.ad_dc or not env.ad_domain or not env.ad_bind_username:
        return None

    port, use_ssl, starttls = _conn_params(env.ad_conn_mode, env.ad_port)

    return ADConfig(
        dc_short=env.ad_dc,
        domain=env.ad_domain,
        port=port,
        use_ssl=use_ssl,
        starttls=starttls,
        bind_username=env.ad_bind_username,
        bind_password=env.ad_bind_password,
        tls_validate=env.ad_tls_validate,
        ca_pem=env.ad_ca_pem or "",
        base_dn_override=env.ad_base_dn or "",
        connect_timeout=float(env.ad_connect_timeout or 5.0),
        prefix_categories=split_values(env.ad_prefix_categories),
        prefix_search_legacy_invert=env.ad_prefix_search_legacy_invert,
        membership_name_fallback=env.ad_membership_name_fallback,
    )
