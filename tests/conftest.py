"""Shared fixtures: a frozen clock and an in-memory object store."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest

from sharing.clock import Clock
from storage.exceptions import AccessDenied, NotFound, SigningUnsupported
from storage.object_store.interfaces import ObjectStore
from storage.object_store.models import AccessPolicy, PermissionSet, PublicAccess

ALLOWED_IP = "203.0.113.7"
FROZEN_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=timezone.utc)


class FrozenClock(Clock):
    def __init__(self, now: datetime = FROZEN_NOW):
        self._now = now

    def now(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now = self._now + delta


@dataclass
class MemoryContainer:
    name: str
    objects: Dict[str, bytes] = field(default_factory=dict)
    policies: Dict[str, AccessPolicy] = field(default_factory=dict)
    public_access: PublicAccess = PublicAccess.NONE


@dataclass(frozen=True)
class ContainerRef:
    name: str


@dataclass(frozen=True)
class ObjectRef:
    container: str
    name: str
    can_sign: bool = True


class InMemoryObjectStore(ObjectStore):
    """
    ObjectStore fake that validates capabilities the way the service does.

    A signed URI is checked at use time: its signature, its time window and its
    permissions. A URI carrying si takes permissions and window from that stored
    policy, so replacing the policy revokes it. inactive_policy_uses makes the
    next N policy-bound uses fail, as while a new policy propagates.
    """

    def __init__(self, clock: FrozenClock, store_id: str = "memory", can_sign: bool = True):
        self.clock = clock
        self.store_id = store_id
        self.can_sign = can_sign
        self.containers: Dict[str, MemoryContainer] = {}
        self.calls: List[str] = []
        self.signed: List[Dict[str, Any]] = []
        self.policy_history: List[List[AccessPolicy]] = []
        self.faults: Dict[str, Exception] = {}
        self.inactive_policy_uses = 0

    def _record(self, op: str) -> None:
        self.calls.append(op)
        if op in self.faults:
            raise self.faults[op]

    def put(self, container: str, name: str, data: bytes) -> None:
        self.containers.setdefault(container, MemoryContainer(container)).objects[name] = data

    def get_container_handle(self, name: str) -> ContainerRef:
        return ContainerRef(name)

    async def container_exists_or_create(self, name: str) -> ContainerRef:
        self._record("container_exists_or_create")
        self.containers.setdefault(name, MemoryContainer(name))
        return ContainerRef(name)

    def get_object_handle(self, container: ContainerRef, name: str) -> ObjectRef:
        return ObjectRef(container.name, name, self.can_sign)

    async def download_all(self, handle: ObjectRef) -> bytes:
        self._record("download_all")
        container = self.containers.get(handle.container)
        if container is None or handle.name not in container.objects:
            raise NotFound(f"{handle.container}/{handle.name} not found")
        return container.objects[handle.name]

    async def replace_policies(
        self,
        container: ContainerRef,
        public_access: PublicAccess,
        policies: Iterable[AccessPolicy],
    ) -> None:
        self._record("replace_policies")
        policies = list(policies)
        target = self.containers[container.name]
        target.policies = {p.policy_id: p for p in policies}
        target.public_access = public_access
        self.policy_history.append(policies)

    def sign_object(
        self,
        handle: ObjectRef,
        scope: str,
        permissions: Optional[PermissionSet],
        starts_on: Optional[datetime],
        expires_on: Optional[datetime],
        ip_restriction: str,
        policy_id: Optional[str] = None,
    ) -> str:
        self.calls.append("sign_object")
        if not handle.can_sign:
            raise SigningUnsupported("handle has no account key")
        fields = {"sip": ip_restriction, "sr": "b" if scope == "blob" else scope}
        if policy_id is not None:
            fields["si"] = policy_id
        if permissions is not None:
            fields["sp"] = permissions.to_string()
        if starts_on is not None:
            fields["st"] = starts_on.isoformat()
        if expires_on is not None:
            fields["se"] = expires_on.isoformat()
        path = f"/{handle.container}/{handle.name}"
        fields["sig"] = self._signature(path, fields)
        uri = f"https://{self.store_id}.blob.test{path}?{urlencode(fields)}"
        self.signed.append(dict(fields, path=path, uri=uri))
        return uri

    async def upload_all(self, signed_uri: str, data: bytes) -> None:
        self._record("upload_all")
        container, name, _ = self._authorize(signed_uri, PermissionSet(write=True))
        container.objects[name] = data

    async def delete_container(self, name: str) -> None:
        self._record("delete_container")
        if name not in self.containers:
            raise NotFound(f"Container {name} not found")
        del self.containers[name]

    def read(self, signed_uri: str) -> bytes:
        """Dereference a capability with GET."""
        container, name, _ = self._authorize(signed_uri, PermissionSet(read=True))
        if name not in container.objects:
            raise NotFound(f"{container.name}/{name} not found")
        return container.objects[name]

    def _signature(self, path: str, fields: Dict[str, str]) -> str:
        material = path + "|" + "|".join(f"{k}={fields[k]}" for k in sorted(fields))
        return hashlib.sha256(material.encode()).hexdigest()

    def _authorize(self, signed_uri: str, needed: PermissionSet):
        parts = urlsplit(signed_uri)
        query = {k: v[0] for k, v in parse_qs(parts.query).items()}
        sig = query.pop("sig", None)
        if sig != self._signature(parts.path, query):
            raise AccessDenied("signature mismatch")

        container_name, name = parts.path.lstrip("/").split("/", 1)
        container = self.containers.get(container_name)
        if container is None:
            raise NotFound(f"Container {container_name} not found")

        # Policy-bound URIs take their missing fields from the stored policy at
        # use time; ad hoc URIs never consult the container's policies
        fields = dict(query)
        if "si" in query:
            if self.inactive_policy_uses > 0:
                self.inactive_policy_uses -= 1
                raise AccessDenied(f"policy {query['si']} not active yet")
            policy = container.policies.get(query["si"])
            if policy is None:
                raise AccessDenied(f"policy {query['si']} no longer exists on {container_name}")
            if set(query) & {"sp", "st", "se"}:
                raise AccessDenied("field set in both the URI and the stored policy")
            fields.update(
                sp=policy.permissions.to_string(),
                st=policy.starts_on.isoformat(),
                se=policy.expires_on.isoformat(),
            )

        now = self.clock.now()
        if not (datetime.fromisoformat(fields["st"]) <= now < datetime.fromisoformat(fields["se"])):
            raise AccessDenied("capability outside its validity window")

        granted = PermissionSet.from_string(fields["sp"])
        if not needed.issubset(granted):
            raise AccessDenied(f"capability grants '{granted}', needs '{needed}'")
        return container, name, granted


def query_of(uri: str) -> Dict[str, str]:
    return {k: v[0] for k, v in parse_qs(urlsplit(uri).query).items()}


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def internal_store(clock) -> InMemoryObjectStore:
    store = InMemoryObjectStore(clock, store_id="internal")
    store.put("incoming", "report.pdf", bytes(range(256)) * 4)
    return store


@pytest.fixture
def external_store(clock) -> InMemoryObjectStore:
    return InMemoryObjectStore(clock, store_id="external")
