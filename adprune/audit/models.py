from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..errors import ConfigurationError


class ObjectKind(str, Enum):
    USER = "user"
    COMPUTER = "computer"
    GROUP = "group"
    OU = "ou"


class SearchMode(str, Enum):
    ALL = "All"
    ONLY_INACTIVE_USERS = "OnlyInactiveUsers"
    ONLY_INACTIVE_COMPUTERS = "OnlyInactiveComputers"
    ONLY_SERVICE_ACCOUNTS = "OnlyServiceAccounts"
    ONLY_NEVER_LOGGED_ON = "OnlyNeverLoggedOn"
    ALL_EXCEPT_SERVICE_ACCOUNTS = "AllExceptServiceAccounts"
    ALL_EXCEPT_NEVER_LOGGED_ON = "AllExceptNeverLoggedOn"


MODES_BY_KIND: dict[ObjectKind, tuple[SearchMode, ...]] = {
    ObjectKind.USER: (
        SearchMode.ALL,
        SearchMode.ONLY_INACTIVE_USERS,
        SearchMode.ONLY_SERVICE_ACCOUNTS,
        SearchMode.ONLY_NEVER_LOGGED_ON,
        SearchMode.ALL_EXCEPT_SERVICE_ACCOUNTS,
        SearchMode.ALL_EXCEPT_NEVER_LOGGED_ON,
    ),
    ObjectKind.COMPUTER: (
        SearchMode.ALL,
        SearchMode.ONLY_INACTIVE_COMPUTERS,
        SearchMode.ONLY_NEVER_LOGGED_ON,
        SearchMode.ALL_EXCEPT_NEVER_LOGGED_ON,
    ),
    ObjectKind.GROUP: (SearchMode.ALL,),
    ObjectKind.OU: (SearchMode.ALL,),
}


class RemediationAction(str, Enum):
    NONE = "none"
    DISABLE = "disable"
    DELETE = "delete"


class GroupCategory(str, Enum):
    SECURITY = "Security"
    DISTRIBUTION = "Distribution"


@dataclass(frozen=True)
class DirectoryObject:
    """Point-in-time snapshot of one directory entry.

    ``member_count`` and ``child_count`` are derived during discovery and stay
    None for kinds they do not apply to. Discovery only needs to know whether an
    OU has children, so ``child_count`` is capped at 1.
    """

    kind: ObjectKind
    distinguished_name: str
    name: str
    last_logon: Optional[datetime] = None
    enabled: bool = True
    sam_account_name: str = ""
    member_count: Optional[int] = None
    category: Optional[GroupCategory] = None
    child_count: Optional[int] = None


@dataclass(frozen=True)
class CandidateSet:
    kind: ObjectKind
    items: tuple[DirectoryObject, ...] = ()
    discovered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __iter__(self) -> Iterator[DirectoryObject]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def identities(self) -> set[str]:
        return {o.distinguished_name for o in self.items}


class AuditConfig(BaseModel):
    """Immutable input of one audit run."""

    model_config = ConfigDict(frozen=True)

    kind: ObjectKind
    search_mode: SearchMode = Field(default=SearchMode.ALL)
    scope_root: Optional[str] = Field(default=None)
    inactivity_threshold_days: int = Field(default=90, ge=0)
    service_account_pattern: str = Field(default="svc")
    report_destination: str = Field(default="reports")
    remediation_action: RemediationAction = Field(default=RemediationAction.NONE)

    @field_validator("scope_root")
    @classmethod
    def _blank_scope_is_whole_directory(cls, v: Optional[str]) -> Optional[str]:
        v = (v or "").strip()
        return v or None

    @field_validator("service_account_pattern")
    @classmethod
    def _strip(cls, v: str) -> str:
        return (v or "").strip()


def make_config(**values) -> AuditConfig:
    """Build an AuditConfig, reporting validation problems as ConfigurationError."""
    try:
        return AuditConfig(**values)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"invalid configuration: {problems}") from e
