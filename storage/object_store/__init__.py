from storage.object_store import interfaces
from storage.object_store import models

from storage.object_store.interfaces import (ObjectStore,)
from storage.object_store.models import (AccessPolicy, ObjectLocation,
                                         PermissionSet, PublicAccess,
                                         TimeWindow,)

__all__ = ['AccessPolicy', 'ObjectLocation', 'ObjectStore', 'PermissionSet',
           'PublicAccess', 'TimeWindow', 'interfaces', 'models']
