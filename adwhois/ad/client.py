from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Iterator, Optional, TypeVar
import hashlib
import logging
import os
import ssl
import uuid

from ldap3 import (
    Server,
    Connection,
    ALL,
    SUBTREE,
    Tls,
    MODIFY_ADD,
    MODIFY_DELETE,
)
from ldap3.core.exceptions import LDAPException

from .exceptions import (
    DirectoryBindError,
    DirectoryError,
    DirectoryNotConfiguredError,
    DirectoryWriteError,
)
from .models import ADConfig, DirectoryEntry
from .utils import escape_ldap_filter_value, extract_user_name, guid_from_bytes

log = logging.getLogger(__name__)

T = TypeVar("T")

# Attribute set loaded for user/identity lookups.
ENTRY_ATTRIBUTES = [
    "cn",
    "displayName",
    "mail",
    "givenName",
    "sn",
    "initials",
    "telephoneNumber",
    "objectGUID",
    "name",
    "distinguishedName",
    "sAMAccountName",
]

GROUP_ATTRIBUTES = ["cn", "name", "displayName", "distinguishedName", "sAMAccountName", "member"]

MEMBER_ATTRIBUTES = ["distinguishedName", "displayName", "cn", "sAMAccountName"]

# Enabled, mail-enabled person accounts.
ACTIVE_MAIL_USERS = (
    "(objectClass=user)"
    "(objectCategory=Person)"
    "(!(userAccountControl:1.2.840.113556.1.4.803:=2))"
    "(mail=*)"
)

# success, noSuchObject
_SEARCH_OK_CODES = {0, 32}
_SIZE_LIMIT_EXCEEDED = 4


def entry_filter(identity: str) -> str:
    """Match a user by login or display name; identity is normalized first."""
    v = escape_ldap_filter_value(extract_user_name(identity))
    return f"(|(sAMAccountName={v})(displayName={v}))"


def group_filter(identity: str) -> str:
    v = escape_ldap_filter_value((identity or "").strip())
    return (
        "(&(objectClass=group)"
        f"(|(sAMAccountName={v})(cn={v})(name={v})(displayName={v})(distinguishedName={v})))"
    )


def cn_filter(name: str) -> str:
    return f"(cn={escape_ldap_filter_value((name or '').strip())})"


def member_of_filter(group_dn: str) -> str:
    return f"(memberOf={escape_ldap_filter_value(group_dn)})"


def prefix_filter(prefix: str, categories: list[str]) -> str:
    p = escape_ldap_filter_value(prefix)
    cats = "".join(f"(businessCategory={escape_ldap_filter_value(c)})" for c in categories if c)
    cat_block = f"(|{cats})" if cats else ""
    return f"(&(displayName={p}*){ACTIVE_MAIL_USERS}{cat_block})"


_PEM_BEGIN = "-----BEGIN CERTIFICATE-----"
_PEM_END = "-----END CERTIFICATE-----"
_CA_DIR = "/tmp"


def normalize_pem(pem: str) -> str:
    """CA PEM with outer whitespace stripped and LF line endings."""
    return "\n".join((pem or "").strip().splitlines())


def ca_file_for(pem: str) -> str:
    """Path of a temp file holding the CA PEM ("" when there is nothing to write).

    ldap3.Tls only takes a file, so the PEM is written once per content hash
    and shared by all workers. Raises ValueError for text that is not a
    certificate.
    """
    data = normalize_pem(pem)
    if not data:
        return ""
    if _PEM_BEGIN not in data or _PEM_END not in data:
        raise ValueError("AD_CA_PEM is not a PEM certificate (BEGIN/END CERTIFICATE block expected)")

    digest = hashlib.sha256(data.encode("utf-8")).hexdigest()[:16]
    path = os.path.join(_CA_DIR, f"adwhois_ca_{digest}.pem")
    payload = data + "\n"

    try:
        if os.path.isfile(path):
            with open(path, "r", encoding="utf-8") as f:
                if f.read() == payload:
                    return path
        with open(path, "w", encoding="utf-8") as f:
            f.write(payload)
        os.chmod(path, 0o600)
    except OSError:
        # Read-only /tmp: validate against the system trust store instead.
        log.warning("Cannot write CA file %s, using system trust store", path)
        return ""
    return path


class ADClient:
    def __init__(self, cfg: ADConfig) -> None:
        self.cfg = cfg

        if cfg.tls_validate:
            ca_file = ca_file_for(cfg.ca_pem)
            tls = Tls(validate=ssl.CERT_REQUIRED, ca_certs_file=ca_file or None)
        else:
            tls = Tls(validate=ssl.CERT_NONE)

        self.server = Server(
            host=cfg.host,
            port=cfg.port,
            use_ssl=cfg.use_ssl,
            get_info=ALL,
            tls=tls,
            connect_timeout=float(cfg.connect_timeout),
        )

    def _connection(self) -> Connection:
        return Connection(
            self.server,
            user=self.cfg.bind_principal,
            password=self.cfg.bind_password,
            auto_bind=False,
        )

    @contextmanager
    def _session(self) -> Iterator[Connection]:
        """Fresh service-bound connection, always unbound on exit."""
        if not self.cfg.host:
            raise DirectoryNotConfiguredError("directory host is not configured")

        conn = self._connection()
        try:
            conn.open()
            if self.cfg.starttls:
                conn.start_tls()
            if not conn.bind():
                res = dict(conn.result or {})
                raise DirectoryBindError(str(res.get("description") or "unknown error"))
            yield conn
        finally:
            try:
                conn.unbind()
            except Exception:
                pass

    def _base_dn(self, conn: Connection) -> str:
        base = self.cfg.base_dn
        if base:
            return base

        # Fall back to RootDSE defaultNamingContext.
        info = getattr(conn.server, "info", None)
        other = getattr(info, "other", None) or {}
        ctx = other.get("defaultNamingContext") or []
        if isinstance(ctx, (list, tuple)):
            ctx = ctx[0] if ctx else ""
        base = str(ctx or "").strip()
        if not base:
            raise DirectoryNotConfiguredError("search base is empty (set AD_BASE_DN or AD_DOMAIN)")
        return base

    def _check_result(self, conn: Connection, flt: str, capped: bool) -> None:
        """Raise unless the last search finished with a usable result code.

        sizeLimitExceeded only counts as success when the caller set the cap;
        otherwise it means the server (MaxPageSize) truncated the answer.
        """
        res = dict(conn.result or {})
        code = int(res.get("result", 0) or 0)
        if code in _SEARCH_OK_CODES:
            return
        if code == _SIZE_LIMIT_EXCEEDED and capped:
            return
        raise DirectoryError(f"search {flt} failed: {res.get('description', 'unknown error')}")

    def _search(
        self,
        conn: Connection,
        base: str,
        flt: str,
        attrs: list[str],
        size_limit: int = 0,
    ) -> list[DirectoryEntry]:
        conn.search(
            search_base=base,
            search_filter=flt,
            search_scope=SUBTREE,
            attributes=attrs,
            size_limit=size_limit,
        )
        self._check_result(conn, flt, capped=size_limit > 0)

        entries = [
            DirectoryEntry.from_response(item)
            for item in (conn.response or [])
            if item.get("type") == "searchResEntry"
        ]
        log.debug("search %s -> %d entries", flt, len(entries))
        return entries

    def _paged_search(
        self,
        conn: Connection,
        base: str,
        flt: str,
        attrs: list[str],
        page_size: int = 1000,
    ) -> list[DirectoryEntry]:
        """All matching entries, fetched with the paged results control."""
        entries = [
            DirectoryEntry.from_response(item)
            for item in conn.extend.standard.paged_search(
                search_base=base,
                search_filter=flt,
                search_scope=SUBTREE,
                attributes=attrs,
                paged_size=page_size,
                generator=True,
            )
            if item.get("type") == "searchResEntry"
        ]
        self._check_result(conn, flt, capped=False)
        log.debug("paged search %s -> %d entries", flt, len(entries))
        return entries

    def _search_one(self, conn: Connection, base: str, flt: str, attrs: list[str]) -> Optional[DirectoryEntry]:
        entries = self._search(conn, base, flt, attrs, size_limit=1)
        return entries[0] if entries else None

    def _lookup_entry(self, conn: Connection, base: str, identity: str) -> Optional[DirectoryEntry]:
        if not extract_user_name(identity):
            return None
        return self._search_one(conn, base, entry_filter(identity), ENTRY_ATTRIBUTES)

    def _lookup_group(self, conn: Connection, base: str, identity: str) -> Optional[DirectoryEntry]:
        if not (identity or "").strip():
            return None
        return self._search_one(conn, base, group_filter(identity), GROUP_ATTRIBUTES)

    def _read(self, what: str, default: T, func: Callable[[Connection, str], T]) -> T:
        """Run a read under a fresh session; directory faults degrade to `default`."""
        try:
            with self._session() as conn:
                return func(conn, self._base_dn(conn))
        except (LDAPException, DirectoryError) as e:
            log.warning("Directory read failed (%s): %s", what, e)
            return default

    # ------------------------------------------------------------------
    # Identity lookups

    def find_entry(self, identity: str) -> Optional[DirectoryEntry]:
        if not extract_user_name(identity):
            return None
        return self._read(
            f"entry {identity!r}",
            None,
            lambda conn, base: self._lookup_entry(conn, base, identity),
        )

    def exists(self, identity: str) -> bool:
        return self.find_entry(identity) is not None

    def attribute(self, identity: str, name: str) -> str:
        entry = self.find_entry(identity)
        if entry is None:
            return ""
        return entry.first(name)

    def display_name(self, login_name: str) -> str:
        """Display name, e.g. "John Doe (DSHS/TSD)"."""
        return self.attribute(login_name, "displayName")

    def login_name(self, display_name: str) -> str:
        return self.attribute(display_name, "sAMAccountName")

    def email(self, login_name: str) -> str:
        return self.attribute(login_name, "mail")

    def first_name(self, login_name: str) -> str:
        return self.attribute(login_name, "givenName")

    def middle_initial(self, login_name: str) -> str:
        return self.attribute(login_name, "initials")

    def last_name(self, login_name: str) -> str:
        return self.attribute(login_name, "sn")

    def office_phone(self, login_name: str) -> str:
        return self.attribute(login_name, "telephoneNumber")

    def guid(self, login_name: str) -> Optional[uuid.UUID]:
        """objectGUID of the entry decoded to a UUID, None when unavailable."""
        entry = self.find_entry(login_name)
        if entry is None:
            return None
        return guid_from_bytes(entry.first_raw("objectGUID"))

    def guid_string(self, login_name: str) -> str:
        """GUID as 32 hex digits separated by hyphens, "" when unavailable."""
        g = self.guid(login_name)
        return str(g) if g is not None else ""

    # ------------------------------------------------------------------
    # Group queries

    def resolve_group_members(self, group_identity: str) -> list[str]:
        """Display names of the direct members of a group.

        The group is matched by sAMAccountName, cn, name, displayName or DN.
        Unknown group and directory faults both yield [].
        """
        if not (group_identity or "").strip():
            return []

        def run(conn: Connection, base: str) -> list[str]:
            group = self._lookup_group(conn, base, group_identity)
            if group is None or not group.dn:
                return []
            names: list[str] = []
            for e in self._paged_search(conn, base, member_of_filter(group.dn), MEMBER_ATTRIBUTES):
                name = e.first("displayName") or e.first("cn") or e.first("sAMAccountName")
                if name:
                    names.append(name)
            names.sort(key=lambda x: x.lower())
            return names

        return self._read(f"members of {group_identity!r}", [], run)

    def group_member_dns(self, group_name: str) -> list[str]:
        """Raw `member` values (DNs) of the entry whose cn equals group_name."""
        if not (group_name or "").strip():
            return []

        def run(conn: Connection, base: str) -> list[str]:
            entry = self._search_one(conn, base, cn_filter(group_name), ["member"])
            return [str(x) for x in entry.values("member")] if entry else []

        return self._read(f"member DNs of {group_name!r}", [], run)

    def user_group_memberships(self, user_name: str) -> list[str]:
        """Raw `memberOf` values (group DNs) of the entry whose cn equals user_name."""
        if not (user_name or "").strip():
            return []

        def run(conn: Connection, base: str) -> list[str]:
            entry = self._search_one(conn, base, cn_filter(user_name), ["memberOf"])
            return [str(x) for x in entry.values("memberOf")] if entry else []

        return self._read(f"groups of {user_name!r}", [], run)

    def search_display_names_by_prefix(
        self,
        prefix: str,
        legacy_invert: bool | None = None,
        limit: int = 200,
    ) -> list[str]:
        """Display names of active, mail-enabled users starting with `prefix`.

        The prefix is lowercased before it goes into the filter. With
        `legacy_invert` the client-side check keeps values where the lowercase
        prefix is NOT found at position 0 (the historical behavior, which in
        practice returns the capitalized names the server matched).
        """
        p = (prefix or "").strip().lower()
        if not p:
            return []
        if legacy_invert is None:
            legacy_invert = self.cfg.prefix_search_legacy_invert

        def run(conn: Connection, base: str) -> list[str]:
            flt = prefix_filter(p, self.cfg.prefix_categories)
            items: list[str] = []
            for e in self._search(conn, base, flt, ["displayName"], size_limit=limit):
                for v in e.values("displayName"):
                    s = str(v)
                    if legacy_invert:
                        if s.find(p) != 0:
                            items.append(s)
                    elif s.lower().startswith(p):
                        items.append(s)
            return items

        return self._read(f"display name prefix {p!r}", [], run)

    def is_member(
        self,
        login_name: str,
        group_name: str,
        allow_name_match: bool | None = None,
    ) -> bool:
        """Whether the user is a direct member of the group.

        Compares the user's DN against the group's `member` values. When
        `allow_name_match` is on (default from config), a member DN that
        contains both the user's sn and givenName also counts; two people
        with the same names will collide.
        """
        if allow_name_match is None:
            allow_name_match = self.cfg.membership_name_fallback

        def run(conn: Connection, base: str) -> bool:
            user = self._lookup_entry(conn, base, login_name)
            if user is None:
                return False
            group = self._lookup_group(conn, base, group_name)
            if group is None:
                return False
            members = [str(m) for m in group.values("member")]

            if user.dn and user.dn.lower() in {m.lower() for m in members}:
                return True

            if allow_name_match:
                sn = user.first("sn")
                given = user.first("givenName")
                if sn and given:
                    return any(sn in m and given in m for m in members)
            return False

        return self._read(f"membership {login_name!r} in {group_name!r}", False, run)

    # ------------------------------------------------------------------
    # Membership changes (faults propagate)

    def add_member(self, login_name: str, group_identity: str) -> bool:
        """Add the user to the group's `member` attribute.

        Returns False if the user or group cannot be resolved; True when the
        user is (already) a member. Directory faults are raised.
        """
        with self._session() as conn:
            base = self._base_dn(conn)
            user = self._lookup_entry(conn, base, login_name)
            group = self._lookup_group(conn, base, group_identity)
            if user is None or group is None or not user.dn or not group.dn:
                log.info("add_member: %r or %r not found", login_name, group_identity)
                return False

            if user.dn.lower() in {str(m).lower() for m in group.values("member")}:
                return True

            ok = conn.modify(group.dn, {"member": [(MODIFY_ADD, [user.dn])]})
            if not ok:
                res = dict(conn.result or {})
                desc = str(res.get("description") or "unknown error")
                # AD answers attributeOrValueExists when the value is already there.
                if "attributeorvalueexists" in desc.lower():
                    return True
                raise DirectoryWriteError(group.dn, desc)

            log.info("Added %s to %s", user.dn, group.dn)
            return True

    def remove_member(self, login_name: str, group_identity: str) -> bool:
        """Remove the user from the group's `member` attribute.

        Returns False if the user or group cannot be resolved or the user is
        not a member. Directory faults are raised.
        """
        with self._session() as conn:
            base = self._base_dn(conn)
            user = self._lookup_entry(conn, base, login_name)
            group = self._lookup_group(conn, base, group_identity)
            if user is None or group is None or not user.dn or not group.dn:
                log.info("remove_member: %r or %r not found", login_name, group_identity)
                return False

            if user.dn.lower() not in {str(m).lower() for m in group.values("member")}:
                return False

            ok = conn.modify(group.dn, {"member": [(MODIFY_DELETE, [user.dn])]})
            if not ok:
                res = dict(conn.result or {})
                desc = str(res.get("description") or "unknown error")
                # Lost a race with another removal.
                if "nosuchattribute" in desc.lower():
                    return False
                raise DirectoryWriteError(group.dn, desc)

            log.info("Removed %s from %s", user.dn, group.dn)
            return True
