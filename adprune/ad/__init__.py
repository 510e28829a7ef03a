"""Active Directory (LDAP) client package.

Public API:
    - ADConfig
    - DirectoryClient
"""

from .models import ADConfig
from .client import DirectoryClient

__all__ = ["ADConfig", "DirectoryClient"]
