from storage.object_storage import LocalObjectStorage, ObjectStorage, StorageEntry, get_storage

__all__ = ["LocalObjectStorage", "ObjectStorage", "StorageEntry", "get_storage"]
