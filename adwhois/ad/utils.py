from __future__ import annotations

import ipaddress
import uuid
from typing import Any

# RFC 4515 special characters -> \XX escapes
_FILTER_ESCAPES = str.maketrans({
    "\\": r"\5c",
    "*": r"\2a",
    "(": r"\28",
    ")": r"\29",
    "\x00": r"\00",
})


def escape_ldap_filter_value(value: str) -> str:
    """RFC 4515 escaping for LDAP filter values."""
    return (value or "").translate(_FILTER_ESCAPES)


def extract_user_name(identity: str | None) -> str:
    """Strip a domain qualifier: DOMAIN\\jdoe -> jdoe."""
    s = (identity or "").strip()
    if not s:
        return ""
    return s.split("\\")[-1]


def _domain_labels(domain: str) -> list[str]:
    return [label for label in (domain or "").strip().split(".") if label]


def domain_to_base_dn(domain: str) -> str:
    """corp.example.com -> DC=corp,DC=example,DC=com; "" for a single-label name."""
    labels = _domain_labels(domain)
    if len(labels) < 2:
        return ""
    return ",".join("DC=" + label for label in labels)


def _is_ip(host: str) -> bool:
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


def build_dc_fqdn(dc_short: str, domain: str) -> str:
    """Host to connect to: an IP or dotted name as given, else dc_short.domain."""
    host = (dc_short or "").strip()
    suffix = ".".join(_domain_labels(domain))
    if host and (_is_ip(host) or "." in host):
        return host
    return ".".join(p for p in (host, suffix) if p)


def split_values(text: str) -> list[str]:
    if not text:
        return []
    return [x.strip() for x in text.split(";") if x.strip()]


def guid_from_bytes(raw: Any) -> uuid.UUID | None:
    """Decode AD objectGUID (16 bytes, mixed-endian) into a UUID.

    Already-formatted values ("{xxxxxxxx-...}") are accepted as well, since
    ldap3 may hand back the schema-formatted string instead of raw bytes.
    """
    if raw is None:
        return None
    if isinstance(raw, (bytes, bytearray)):
        if len(raw) != 16:
            return None
        return uuid.UUID(bytes_le=bytes(raw))
    s = str(raw).strip().strip("{}")
    if not s:
        return None
    try:
        return uuid.UUID(s)
    except ValueError:
        return None
