from storage import exceptions
from storage import object_store

__all__ = ['exceptions', 'object_store']
