from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, List

from ldap3.utils.ciDict import CaseInsensitiveDict

from .utils import build_dc_fqdn, domain_to_base_dn


DEFAULT_PREFIX_CATEGORIES = ("DSHS", "Intern", "Contractor")


@dataclass
class ADConfig:
    dc_short: str
    domain: str
    port: int
    use_ssl: bool
    starttls: bool
    bind_username: str
    bind_password: str
    tls_validate: bool = False
    ca_pem: str = ""
    base_dn_override: str = ""
    connect_timeout: float = 5.0
    prefix_categories: List[str] = field(default_factory=lambda: list(DEFAULT_PREFIX_CATEGORIES))
    prefix_search_legacy_invert: bool = False
    membership_name_fallback: bool = False

    @property
    def host(self) -> str:
        return build_dc_fqdn(self.dc_short, self.domain)

    @property
    def base_dn(self) -> str:
        """Explicit base DN, else derived from the domain ("" if neither works)."""
        override = (self.base_dn_override or "").strip()
        if override:
            return override
        return domain_to_base_dn(self.domain)

    @property
    def bind_principal(self) -> str:
        u = (self.bind_username or "").strip()
        d = (self.domain or "").strip().strip(".")
        if not u:
            return ""
        if "@" in u or "\\" in u or "=" in u:
            return u
        return f"{u}@{d}" if d else u


def _as_list(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


@dataclass
class DirectoryEntry:
    """One search result entry, flattened to strings.

    `attributes` maps attribute name (case-insensitive) to its string values;
    `raw` keeps the undecoded bytes (needed for objectGUID).
    """

    dn: str
    attributes: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)
    raw: CaseInsensitiveDict = field(default_factory=CaseInsensitiveDict)

    @classmethod
    def from_response(cls, item: dict) -> "DirectoryEntry":
        attrs = CaseInsensitiveDict()
        for k, v in (item.get("attributes") or {}).items():
            vals = [x for x in _as_list(v) if x is not None and x != ""]
            attrs[k] = [x if isinstance(x, bytes) else str(x) for x in vals]
        raw = CaseInsensitiveDict()
        for k, v in (item.get("raw_attributes") or {}).items():
            raw[k] = _as_list(v)
        return cls(dn=str(item.get("dn") or ""), attributes=attrs, raw=raw)

    def values(self, name: str) -> list:
        if name in self.attributes:
            return list(self.attributes[name])
        return []

    def first(self, name: str) -> str:
        """First value of an attribute as text, "" when absent."""
        vals = self.values(name)
        if not vals:
            return ""
        v = vals[0]
        if isinstance(v, bytes):
            return v.decode("utf-8", errors="replace")
        return str(v)

    def first_raw(self, name: str) -> Any:
        if name in self.raw and self.raw[name]:
            return self.raw[name][0]
        vals = self.values(name)
        return vals[0] if vals else None
