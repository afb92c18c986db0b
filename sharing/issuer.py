"""
Capability issuance: copy a payload into a fresh external container and hand
out a read-only, time-boxed, IP-restricted URI for it.

Steps (strictly ordered, any failure aborts the rest, nothing is rolled back):
  1. derive a unique container name from the clock
  2. create the container if absent
  3. stage the owner policy (racwdl, valid for the write lifetime)
  4. mint a write capability bound to the owner policy
  5. upload the payload through it
  6. replace the policy set with the read-only policy (r), which revokes the
     write capability
  7. mint the read-only capability
  8. return it

A partially provisioned container is left behind on failure. Names are never
reused, so leftovers are an operational concern for whatever calls
delete_container, not a correctness one.

A freshly stored policy can take up to 30 seconds to become active on the
service, so the upload is retried while the write capability is refused.
"""

import asyncio
from datetime import timedelta
from typing import Optional

from loguru import logger

from storage.exceptions import (
    AccessDenied,
    ContainerProvisionError,
    PolicyStagingError,
    StorageRelayError,
    UploadError,
)
from storage.object_store.interfaces import ObjectStore
from storage.object_store.models import (
    OWNER_PERMISSIONS,
    READ_ONLY_PERMISSIONS,
    ObjectLocation,
    TimeWindow,
)
from sharing.clock import Clock, SystemClock, to_ticks
from sharing.observability import redact_uri, trace_step
from sharing.policies import OWNER_POLICY_ID, READ_ONLY_POLICY_ID, AccessPolicyStager
from sharing.signing import DEFAULT_LIFETIME, DEFAULT_START_OFFSET, CapabilitySigner

DEFAULT_CONTAINER_PREFIX = "sas-container-"
DEFAULT_WRITE_EXPIRY = timedelta(minutes=1)
DEFAULT_READ_EXPIRY = timedelta(hours=24)
# Stored access policies take up to 30s to propagate
POLICY_SETTLE_TIMEOUT = 30.0
POLICY_POLL_INTERVAL = 2.0


class CapabilityIssuer:
    """Provisions a per-request external container and issues a read-only URI."""

    def __init__(
        self,
        store: ObjectStore,
        ip_restriction: str,
        clock: Optional[Clock] = None,
        write_expiry: timedelta = DEFAULT_WRITE_EXPIRY,
        read_expiry: timedelta = DEFAULT_READ_EXPIRY,
        container_prefix: str = DEFAULT_CONTAINER_PREFIX,
        policy_settle_timeout: float = POLICY_SETTLE_TIMEOUT,
        policy_poll_interval: float = POLICY_POLL_INTERVAL,
    ):
        if write_expiry <= timedelta(0) or read_expiry <= timedelta(0):
            raise ValueError("Capability lifetimes must be positive")
        if policy_settle_timeout < 0 or policy_poll_interval < 0:
            raise ValueError("Policy settle timeout and poll interval cannot be negative")
        self.store = store
        self.clock = clock or SystemClock()
        self.stager = AccessPolicyStager(store)
        self.signer = CapabilitySigner(store, ip_restriction, clock=self.clock)
        self.write_expiry = write_expiry
        self.read_expiry = read_expiry
        self.container_prefix = container_prefix
        self.policy_settle_timeout = policy_settle_timeout
        self.policy_poll_interval = policy_poll_interval
        self._last_ticks = 0

    def next_container_name(self) -> str:
        """sas-container-<ticks>, strictly increasing within this issuer."""
        ticks = max(to_ticks(self.clock.now()), self._last_ticks + 1)
        self._last_ticks = ticks
        return f"{self.container_prefix}{ticks}"

    def staging_window(self) -> TimeWindow:
        return TimeWindow.around(self.clock.now(), DEFAULT_START_OFFSET, DEFAULT_LIFETIME)

    async def issue(self, target_name: str, payload: bytes) -> str:
        """
        Copy payload into a new container as target_name and return a read-only URI.

        Raises:
            ContainerProvisionError: container create failed
            PolicyStagingError: either policy replace failed
            UploadError: the write capability was rejected or the upload failed
            SigningUnsupported: the external store cannot sign capabilities
        """
        container_name = self.next_container_name()

        with trace_step(container_name, "provision_container"):
            try:
                container = await self.store.container_exists_or_create(container_name)
            except StorageRelayError as e:
                logger.error(f"Create or get container {container_name} failed: {e}")
                raise ContainerProvisionError(
                    f"Failed to provision container {container_name}: {e.message}",
                    cause=e,
                    details={"container": container_name},
                ) from e

        with trace_step(container_name, "stage_owner_policy"):
            now = self.clock.now()
            owner_window = TimeWindow(now - DEFAULT_START_OFFSET, now + self.write_expiry)
            await self._stage(container, container_name, OWNER_POLICY_ID, OWNER_PERMISSIONS, owner_window)

        with trace_step(container_name, "upload"):
            write_uri = self.signer.sign_for_policy(container, target_name, OWNER_POLICY_ID)
            try:
                await self._upload(write_uri, payload, container_name)
            except StorageRelayError as e:
                logger.error(f"Create file operation failed for {container_name}/{target_name}: {e}")
                raise UploadError(
                    f"Failed to upload {target_name}: {e.message}",
                    cause=e,
                    details={"container": container_name, "object": target_name},
                ) from e
            logger.info(f"Create operation succeeded for SAS {redact_uri(write_uri)}")

        with trace_step(container_name, "stage_read_only_policy"):
            await self._stage(
                container, container_name, READ_ONLY_POLICY_ID, READ_ONLY_PERMISSIONS, self.staging_window()
            )

        # Not bound to the read-only policy: it outlives that policy's window
        now = self.clock.now()
        read_uri = self.signer.sign(
            container,
            target_name,
            READ_ONLY_PERMISSIONS,
            expires_on=now + self.read_expiry,
            starts_on=now - DEFAULT_START_OFFSET,
        )
        location = ObjectLocation(self.store.store_id, container_name, target_name)
        logger.info(f"Issued read-only capability for {location}")
        return read_uri

    async def _upload(self, write_uri: str, payload: bytes, container_name: str) -> None:
        """Upload, polling while the owner policy has not reached the service yet."""
        retries = 0
        if self.policy_poll_interval > 0:
            retries = int(self.policy_settle_timeout // self.policy_poll_interval)
        for attempt in range(retries + 1):
            try:
                await self.store.upload_all(write_uri, payload)
                return
            except AccessDenied:
                if attempt == retries:
                    raise
                logger.warning(
                    f"Owner policy on {container_name} not active yet, "
                    f"retrying upload in {self.policy_poll_interval}s ({attempt + 1}/{retries})"
                )
                await asyncio.sleep(self.policy_poll_interval)

    async def _stage(
        self, container, container_name: str, policy_id: str, permissions, window: TimeWindow
    ) -> None:
        try:
            await self.stager.stage(container, policy_id, permissions, window)
        except StorageRelayError as e:
            logger.error(f"Setting {policy_id} on {container_name} failed: {e}")
            raise PolicyStagingError(
                f"Failed to stage {policy_id} on {container_name}: {e.message}",
                cause=e,
                details={"container": container_name, "policy_id": policy_id},
            ) from e

    async def delete_container(self, container_name: str) -> None:
        """Explicit cleanup of a per-request container. Never called by issue()."""
        await self.store.delete_container(container_name)
