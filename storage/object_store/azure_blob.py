"""
Azure Blob Storage adapter for the relay.

Operations:
  - Resolve container and blob handles
  - Create containers idempotently
  - Download whole blobs
  - Upload through a SAS URI
  - Replace container stored access policies
  - Generate blob-scoped SAS URIs, ad hoc or bound to a stored access policy
  - Delete containers

Faults raised by azure-core are translated into the relay's exception taxonomy
(NotFound, AccessDenied, TransientStoreError) so callers never see SDK types.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Optional

from azure.core.exceptions import (
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
    ServiceRequestError,
    ServiceResponseError,
)
from azure.storage.blob import AccessPolicy as BlobAccessPolicy
from azure.storage.blob import generate_blob_sas
from azure.storage.blob.aio import BlobClient, BlobServiceClient, ContainerClient
from loguru import logger

from storage.exceptions import (
    AccessDenied,
    NotFound,
    SigningUnsupported,
    StorageRelayError,
    TransientStoreError,
)
from storage.object_store.interfaces import ObjectStore
from storage.object_store.models import BLOB_SCOPE, AccessPolicy, PermissionSet, PublicAccess


@contextmanager
def store_faults(action: str, **details):
    """Translate azure-core exceptions raised inside the block."""
    try:
        yield
    except ResourceNotFoundError as e:
        raise NotFound(f"{action}: resource not found", details=details) from e
    except ClientAuthenticationError as e:
        raise AccessDenied(f"{action}: credential rejected", details=details) from e
    except HttpResponseError as e:
        if e.status_code == 403:
            raise AccessDenied(f"{action}: {e.message}", details=details) from e
        raise StorageRelayError(
            f"{action}: {e.message}",
            details=details,
            status_code=e.status_code or 500,
        ) from e
    except (ServiceRequestError, ServiceResponseError) as e:
        raise TransientStoreError(f"{action}: {e}", details=details) from e


class AzureBlobStore(ObjectStore):
    """
    ObjectStore backed by an Azure storage account.

    Usage:
        store = AzureBlobStore.from_connection_string(conn_str, label="external")
        container = await store.container_exists_or_create("sas-container-1")
        ...
        await store.close()
    """

    def __init__(self, service_client: BlobServiceClient, label: str = "store"):
        self.service_client = service_client
        self.label = label
        self.store_id = service_client.account_name or label

    @classmethod
    def from_connection_string(cls, connection_string: str, label: str = "store") -> "AzureBlobStore":
        client = BlobServiceClient.from_connection_string(connection_string)
        logger.info(f"✓ Azure Blob Storage client initialized ({label}: {client.account_name})")
        return cls(client, label=label)

    def get_container_handle(self, name: str) -> ContainerClient:
        return self.service_client.get_container_client(name)

    async def container_exists_or_create(self, name: str) -> ContainerClient:
        container = self.get_container_handle(name)
        with store_faults("Create container", container=name):
            try:
                await container.create_container()
                logger.debug(f"[{self.label}] Created container {name}")
            except ResourceExistsError:
                logger.debug(f"[{self.label}] Container {name} already exists")
        return container

    def get_object_handle(self, container: ContainerClient, name: str) -> BlobClient:
        return container.get_blob_client(name)

    async def download_all(self, handle: BlobClient) -> bytes:
        with store_faults("Download blob", container=handle.container_name, blob=handle.blob_name):
            downloader = await handle.download_blob()
            return await downloader.readall()

    async def upload_all(self, signed_uri: str, data: bytes) -> None:
        blob = BlobClient.from_blob_url(signed_uri)
        async with blob:
            with store_faults("Upload blob", container=blob.container_name, blob=blob.blob_name):
                await blob.upload_blob(data, overwrite=True)

    async def replace_policies(
        self,
        container: ContainerClient,
        public_access: PublicAccess,
        policies: Iterable[AccessPolicy],
    ) -> None:
        signed_identifiers = {
            policy.policy_id: BlobAccessPolicy(
                permission=policy.permissions.to_string(),
                start=policy.starts_on,
                expiry=policy.expires_on,
            )
            for policy in policies
        }
        # None keeps the container private
        access: Optional[str] = None if public_access == PublicAccess.NONE else public_access.value
        with store_faults("Set container access policy", container=container.container_name):
            await container.set_container_access_policy(
                signed_identifiers=signed_identifiers,
                public_access=access,
            )

    def sign_object(
        self,
        handle: BlobClient,
        scope: str,
        permissions: Optional[PermissionSet],
        starts_on: Optional[datetime],
        expires_on: Optional[datetime],
        ip_restriction: str,
        policy_id: Optional[str] = None,
    ) -> str:
        if scope != BLOB_SCOPE:
            raise ValueError(f"Only '{BLOB_SCOPE}' scoped signatures are issued, got '{scope}'")
        if policy_id is None and (permissions is None or expires_on is None):
            raise ValueError("A signature without a stored policy needs permissions and an expiry")

        # Handles built from a SAS URL or a token credential carry no account key
        account_key = getattr(handle.credential, "account_key", None)
        if not account_key:
            raise SigningUnsupported(
                "Handle cannot generate a SAS URI",
                details={"container": handle.container_name, "blob": handle.blob_name},
            )

        token = generate_blob_sas(
            account_name=handle.account_name,
            container_name=handle.container_name,
            blob_name=handle.blob_name,
            account_key=account_key,
            # Fields left None come from the stored policy; the service
            # rejects a field set on both sides
            permission=permissions.to_string() if permissions is not None else None,
            start=starts_on,
            expiry=expires_on,
            policy_id=policy_id,
            ip=ip_restriction,
        )
        return f"{handle.url}?{token}"

    async def delete_container(self, name: str) -> None:
        with store_faults("Delete container", container=name):
            await self.service_client.delete_container(name)
        logger.info(f"[{self.label}] Deleted container {name}")

    async def close(self) -> None:
        await self.service_client.close()
