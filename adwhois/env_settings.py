from functools import lru_cache

from pydantic_settings import BaseSettings
from pydantic import Field


class EnvSettings(BaseSettings):
    ad_dc: str = Field("", alias="AD_DC")
    ad_domain: str = Field("", alias="AD_DOMAIN")
    ad_conn_mode: str = Field("ldaps", alias="AD_CONN_MODE")
    ad_port: int = Field(0, alias="AD_PORT")
    ad_bind_username: str = Field("", alias="AD_BIND_USERNAME")
    ad_bind_password: str = Field("", alias="AD_BIND_PASSWORD")
    ad_tls_validate: bool = Field(False, alias="AD_TLS_VALIDATE")
    ad_ca_pem: str = Field("", alias="AD_CA_PEM")
    ad_base_dn: str = Field("", alias="AD_BASE_DN")
    ad_connect_timeout: float = Field(5.0, alias="AD_CONNECT_TIMEOUT")

    ad_default_group: str = Field("", alias="AD_DEFAULT_GROUP")
    ad_prefix_categories: str = Field("DSHS;Intern;Contractor", alias="AD_PREFIX_CATEGORIES")
    ad_prefix_search_legacy_invert: bool = Field(False, alias="AD_PREFIX_SEARCH_LEGACY_INVERT")
    ad_membership_name_fallback: bool = Field(False, alias="AD_MEMBERSHIP_NAME_FALLBACK")

    app_host: str = Field("0.0.0.0", alias="APP_HOST")
    app_port: int = Field(8000, alias="APP_PORT")

    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_dir: str = Field("data/logs", alias="LOG_DIR")
    log_retention_days: int = Field(30, alias="LOG_RETENTION_DAYS")

    class Config:
        populate_by_name = True


@lru_cache(maxsize=1)
def get_env() -> EnvSettings:
    return EnvSettings()
