"""Shared fixtures: a small fake AD tree and an ADClient wired to it."""
import uuid

import pytest

from adwhois.ad import ADClient, ADConfig

from tests.fakes import BASE_DN, FakeConnection, FakeDirectory

JSMITH_GUID = uuid.UUID("f81d4fae-7dec-11d0-a765-00a0c91e6bf6")

USERS_OU = f"OU=Users,{BASE_DN}"
CONTRACTORS_OU = f"OU=Contractors,{BASE_DN}"
GROUPS_OU = f"OU=Groups,{BASE_DN}"

JSMITH_DN = f"CN=John Smith,{USERS_OU}"
JSMITH2_DN = f"CN=John Smith,{CONTRACTORS_OU}"
JANE_DN = f"CN=Jane Smith,{USERS_OU}"
MJONES_DN = f"CN=Mary Jones,{USERS_OU}"
SVC_DN = f"CN=svc-backup,{USERS_OU}"

ENGINEERS_DN = f"CN=Engineers,{GROUPS_OU}"
SERVICE_DESK_DN = f"CN=G-S-Service Desk,{GROUPS_OU}"
EMPTY_DN = f"CN=Empty Group,{GROUPS_OU}"

PERSON = ["top", "person", "organizationalPerson", "user"]


def _user(d: FakeDirectory, dn: str, sam: str, display: str | None, **extra) -> None:
    attrs = {
        "objectClass": PERSON,
        "objectCategory": "Person",
        "sAMAccountName": sam,
        "cn": dn.split(",", 1)[0][3:],
        "name": dn.split(",", 1)[0][3:],
        "userAccountControl": "512",
    }
    if display is not None:
        attrs["displayName"] = display
    attrs.update(extra)
    d.add(dn, **attrs)


def build_directory() -> FakeDirectory:
    d = FakeDirectory()

    _user(
        d, JSMITH_DN, "jsmith", "John Smith",
        givenName="John", sn="Smith", initials="Q",
        mail="john.smith@corp.example.com", telephoneNumber="+1 360 555 0100",
        objectGUID=JSMITH_GUID.bytes_le, businessCategory="DSHS",
    )
    _user(
        d, JSMITH2_DN, "jsmith2", "John Smith",
        givenName="John", sn="Smith", businessCategory="Contractor",
    )
    _user(
        d, JANE_DN, "jane.smith", "Jane Smith",
        givenName="Jane", sn="Smith", mail="jane.smith@corp.example.com",
        businessCategory="DSHS",
    )
    # No mail attribute.
    _user(
        d, MJONES_DN, "mjones", "Mary Jones (DSHS/TSD)",
        givenName="Mary", sn="Jones", businessCategory="DSHS",
    )
    # Service account without displayName.
    _user(d, SVC_DN, "svc-backup", None)

    # Prefix search population.
    _user(
        d, f"CN=Joanna Smithers,{USERS_OU}", "jsmithers", "Joanna Smithers",
        mail="joanna@corp.example.com", businessCategory="Contractor",
    )
    _user(
        d, f"CN=jolene ward,{USERS_OU}", "jward", "jolene ward",
        mail="jward@corp.example.com", businessCategory="Intern",
    )
    _user(
        d, f"CN=Johnny Disabled,{USERS_OU}", "jdisabled", "Johnny Disabled",
        mail="jdisabled@corp.example.com", businessCategory="DSHS", userAccountControl="514",
    )
    _user(
        d, f"CN=Jordan Nomail,{USERS_OU}", "jnomail", "Jordan Nomail",
        businessCategory="DSHS",
    )
    _user(
        d, f"CN=Joe Vendor,{USERS_OU}", "jvendor", "Joe Vendor",
        mail="joe@vendor.example.com", businessCategory="Vendor",
    )

    d.add(
        ENGINEERS_DN,
        objectClass=["top", "group"], cn="Engineers", name="Engineers", sAMAccountName="Engineers",
        member=[JSMITH2_DN, JANE_DN],
    )
    d.add(
        SERVICE_DESK_DN,
        objectClass=["top", "group"], cn="G-S-Service Desk", name="G-S-Service Desk",
        sAMAccountName="G-S-Service Desk", displayName="G-S-DSHS Service Desk",
        member=[JSMITH_DN, MJONES_DN, SVC_DN],
    )
    d.add(
        EMPTY_DN,
        objectClass=["top", "group"], cn="Empty Group", name="Empty Group", sAMAccountName="Empty Group",
    )
    return d


def make_config(**overrides) -> ADConfig:
    base = dict(
        dc_short="dc01",
        domain="corp.example.com",
        port=636,
        use_ssl=True,
        starttls=False,
        bind_username="svc-whois",
        bind_password="secret",
    )
    base.update(overrides)
    return ADConfig(**base)


@pytest.fixture()
def directory():
    return build_directory()


@pytest.fixture()
def make_client(monkeypatch, directory):
    """Factory for ADClient instances talking to the fake directory."""

    def _make(**overrides) -> ADClient:
        client = ADClient(make_config(**overrides))
        monkeypatch.setattr(client, "_connection", lambda: FakeConnection(directory))
        return client

    return _make


@pytest.fixture()
def ad_client(make_client):
    return make_client()
