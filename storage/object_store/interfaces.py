from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

from storage.object_store.models import AccessPolicy, PermissionSet, PublicAccess

# Handles are adapter specific (container/blob clients for Azure)
ContainerHandle = Any
ObjectHandle = Any


class ObjectStore(ABC):
    """Abstract base class for the blob stores the relay talks to."""

    store_id: str = "store"

    @abstractmethod
    def get_container_handle(self, name: str) -> ContainerHandle:
        """Resolve a container handle without touching the service."""
        pass

    @abstractmethod
    async def container_exists_or_create(self, name: str) -> ContainerHandle:
        """Create the container if absent and return its handle."""
        pass

    @abstractmethod
    def get_object_handle(self, container: ContainerHandle, name: str) -> ObjectHandle:
        """Resolve an object handle inside a container."""
        pass

    @abstractmethod
    async def download_all(self, handle: ObjectHandle) -> bytes:
        """Download the whole object."""
        pass

    @abstractmethod
    async def upload_all(self, signed_uri: str, data: bytes) -> None:
        """Upload bytes through a signed URI, overwriting any existing object."""
        pass

    @abstractmethod
    async def replace_policies(
        self,
        container: ContainerHandle,
        public_access: PublicAccess,
        policies: Iterable[AccessPolicy],
    ) -> None:
        """Replace the container's whole named-policy set."""
        pass

    @abstractmethod
    def sign_object(
        self,
        handle: ObjectHandle,
        scope: str,
        permissions: Optional[PermissionSet],
        starts_on: Optional[datetime],
        expires_on: Optional[datetime],
        ip_restriction: str,
        policy_id: Optional[str] = None,
    ) -> str:
        """
        Generate a signed URI for a single object.

        With policy_id the URI is bound to that stored policy on the container,
        which supplies whichever of permissions, start and expiry are None here.
        Replacing or removing the policy revokes the URI.
        """
        pass

    @abstractmethod
    async def delete_container(self, name: str) -> None:
        """Delete a container and everything in it."""
        pass

    async def close(self) -> None:
        """Release network resources."""
        return None
