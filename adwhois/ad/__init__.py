"""Active Directory (LDAP) client package.

Public API:
    - ADConfig
    - DirectoryEntry
    - ADClient
    - DirectoryError and subclasses
"""

from .models import ADConfig, DirectoryEntry
from .client import ADClient
from .exceptions import (
    DirectoryBindError,
    DirectoryError,
    DirectoryNotConfiguredError,
    DirectoryWriteError,
)

__all__ = [
    "ADConfig",
    "DirectoryEntry",
    "ADClient",
    "DirectoryError",
    "DirectoryBindError",
    "DirectoryNotConfiguredError",
    "DirectoryWriteError",
]
