from loguru import logger

from storage.exceptions import StorageRelayError
from storage.object_store.interfaces import ObjectStore
from storage.object_store.models import ObjectLocation


class Fetcher:
    """Reads whole objects from the internal store."""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def fetch(self, container_name: str, object_name: str) -> bytes:
        location = ObjectLocation(self.store.store_id, container_name, object_name)
        container = self.store.get_container_handle(container_name)
        handle = self.store.get_object_handle(container, object_name)
        try:
            content = await self.store.download_all(handle)
        except StorageRelayError as e:
            logger.error(f"Error getting blob file {location} from internal storage: {e}")
            raise
        logger.debug(f"Fetched {location} ({len(content)} bytes)")
        return content
