from loguru import logger

from storage.object_store.interfaces import ContainerHandle, ObjectStore
from storage.object_store.models import AccessPolicy, PermissionSet, PublicAccess, TimeWindow

POLICY_PREFIX = "access-policy-"
OWNER_POLICY_ID = POLICY_PREFIX + "owner"
READ_ONLY_POLICY_ID = POLICY_PREFIX + "read-only"


class AccessPolicyStager:
    """
    Replaces a container's stored access policies with a single entry.

    The store call is a full replace: whatever policy was active before is void
    as soon as stage() returns, including capabilities minted against it.
    Public access is always forced off.
    """

    def __init__(self, store: ObjectStore):
        self.store = store

    async def stage(
        self,
        container: ContainerHandle,
        policy_id: str,
        permissions: PermissionSet,
        window: TimeWindow,
    ) -> AccessPolicy:
        policy = AccessPolicy(policy_id=policy_id, permissions=permissions, window=window)
        await self.store.replace_policies(container, PublicAccess.NONE, [policy])
        logger.debug(
            f"Staged policy {policy_id} ({permissions}) "
            f"{window.starts_on.isoformat()} -> {window.expires_on.isoformat()}"
        )
        return policy
