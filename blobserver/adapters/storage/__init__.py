"""Lazy export surface for the storage adapter."""

__all__ = ["CloudStorage", "BucketAccess", "enumerate_all", "new_from_config"]


def __getattr__(name: str):
    if name in __all__:
        from . import cloudstorage as _impl  # local import = lazy load
        return getattr(_impl, name)
    raise AttributeError(name)
