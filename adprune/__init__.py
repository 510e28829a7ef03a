"""adprune - find and clean up stale Active Directory objects.

Inactive users and computers, empty groups and empty organizational units
are discovered over LDAP, written to a CSV/XLSX report and optionally
disabled or deleted one by one.
"""

__version__ = "1.0.0"
