from datetime import datetime, timedelta
from typing import Optional

from storage.object_store.interfaces import ContainerHandle, ObjectStore
from storage.object_store.models import BLOB_SCOPE, PermissionSet, TimeWindow
from sharing.clock import Clock, SystemClock

DEFAULT_START_OFFSET = timedelta(minutes=15)
DEFAULT_LIFETIME = timedelta(hours=1)


class CapabilitySigner:
    """Mints blob-scoped, IP-restricted signed URIs."""

    def __init__(self, store: ObjectStore, ip_restriction: str, clock: Optional[Clock] = None):
        if not ip_restriction:
            raise ValueError("ip_restriction is required for every capability")
        self.store = store
        self.ip_restriction = ip_restriction
        self.clock = clock or SystemClock()

    def default_window(self) -> TimeWindow:
        return TimeWindow.around(self.clock.now(), DEFAULT_START_OFFSET, DEFAULT_LIFETIME)

    def sign(
        self,
        container: ContainerHandle,
        object_name: str,
        permissions: PermissionSet,
        expires_on: Optional[datetime] = None,
        starts_on: Optional[datetime] = None,
    ) -> str:
        """
        Generate a signed URI for one object.

        Args:
            container: Container handle from the store
            object_name: Target object; the URI never covers more than this
            permissions: Permissions encoded in the signature
            expires_on: Defaults to now + 1h
            starts_on: Defaults to now - 15min

        Raises:
            SigningUnsupported: the handle has no account key to sign with
            ValueError: expires_on is not after starts_on
        """
        defaults = self.default_window()
        window = TimeWindow(
            starts_on=starts_on or defaults.starts_on,
            expires_on=expires_on or defaults.expires_on,
        )
        handle = self.store.get_object_handle(container, object_name)
        return self.store.sign_object(
            handle,
            BLOB_SCOPE,
            permissions,
            window.starts_on,
            window.expires_on,
            self.ip_restriction,
        )

    def sign_for_policy(self, container: ContainerHandle, object_name: str, policy_id: str) -> str:
        """
        Generate a signed URI bound to a stored policy on the container.

        The policy supplies permissions and the validity window, so replacing
        it revokes the URI. Only the blob scope and IP restriction are signed.
        """
        handle = self.store.get_object_handle(container, object_name)
        return self.store.sign_object(
            handle,
            BLOB_SCOPE,
            None,
            None,
            None,
            self.ip_restriction,
            policy_id=policy_id,
        )
