"""
Value types shared by the object store adapters and the issuance pipeline.

Types:
  - ObjectLocation: (store, container, object) address of a blob
  - PermissionSet: permission flags rendered in canonical SAS order
  - TimeWindow: validity interval of a policy or capability
  - AccessPolicy: named, time-bounded grant attached to a container
  - PublicAccess: container-level anonymous access setting
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

# Canonical order expected by the storage service for signed permissions
PERMISSION_ORDER = "racwdl"

# Signed URIs are always scoped to a single blob
BLOB_SCOPE = "blob"

_FLAG_NAMES = {
    "r": "read",
    "a": "add",
    "c": "create",
    "w": "write",
    "d": "delete",
    "l": "list",
}


class PublicAccess(str, Enum):
    NONE = "none"
    BLOB = "blob"
    CONTAINER = "container"


@dataclass(frozen=True)
class ObjectLocation:
    store_id: str
    container_name: str
    object_name: str

    def __str__(self) -> str:
        return f"{self.store_id}/{self.container_name}/{self.object_name}"


@dataclass(frozen=True)
class PermissionSet:
    """Permission flags for a policy or a signed URI."""

    read: bool = False
    add: bool = False
    create: bool = False
    write: bool = False
    delete: bool = False
    list: bool = False

    @classmethod
    def from_string(cls, raw: str) -> "PermissionSet":
        """Parse raw flags such as "rcw" or "racwdl"."""
        unknown = set(raw) - set(PERMISSION_ORDER)
        if unknown:
            raise ValueError(f"Unknown permission flags: {''.join(sorted(unknown))}")
        return cls(**{_FLAG_NAMES[flag]: True for flag in raw})

    def to_string(self) -> str:
        return "".join(
            flag for flag in PERMISSION_ORDER if getattr(self, _FLAG_NAMES[flag])
        )

    def issubset(self, other: "PermissionSet") -> bool:
        return set(self.to_string()) <= set(other.to_string())

    def __str__(self) -> str:
        return self.to_string()


OWNER_PERMISSIONS = PermissionSet.from_string("racwdl")
READ_ONLY_PERMISSIONS = PermissionSet(read=True)


@dataclass(frozen=True)
class TimeWindow:
    starts_on: datetime
    expires_on: datetime

    def __post_init__(self):
        if self.expires_on <= self.starts_on:
            raise ValueError(
                f"expires_on ({self.expires_on.isoformat()}) must be after "
                f"starts_on ({self.starts_on.isoformat()})"
            )

    @classmethod
    def around(
        cls,
        now: datetime,
        before: timedelta = timedelta(minutes=15),
        after: timedelta = timedelta(hours=1),
    ) -> "TimeWindow":
        """Window from now-before to now+after. Tolerates clock skew on the start."""
        return cls(starts_on=now - before, expires_on=now + after)

    def contains(self, moment: datetime) -> bool:
        return self.starts_on <= moment < self.expires_on

    @property
    def duration(self) -> timedelta:
        return self.expires_on - self.starts_on


@dataclass(frozen=True)
class AccessPolicy:
    policy_id: str
    permissions: PermissionSet
    window: TimeWindow

    @property
    def starts_on(self) -> datetime:
        return self.window.starts_on

    @property
    def expires_on(self) -> datetime:
        return self.window.expires_on

