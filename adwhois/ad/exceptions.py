"""Directory client exceptions.

Read operations of ADClient swallow these (and ldap3's LDAPException) and
return empty values; write operations let them propagate.
"""


class DirectoryError(Exception):
    """Base exception for directory operations."""
    pass


class DirectoryNotConfiguredError(DirectoryError):
    """No usable host or search base for the directory."""
    pass


class DirectoryBindError(DirectoryError):
    """Service account bind was rejected.

    Attributes:
        description: LDAP result description (e.g. invalidCredentials)
    """

    def __init__(self, description: str):
        self.description = description
        super().__init__(f"bind failed: {description}")


class DirectoryWriteError(DirectoryError):
    """Modify operation was rejected by the directory.

    Attributes:
        dn: entry the modify targeted
        description: LDAP result description
    """

    def __init__(self, dn: str, description: str):
        self.dn = dn
        self.description = description
        super().__init__(f"modify {dn} failed: {description}")
