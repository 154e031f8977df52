"""Bootstrap (composition root) for bucketfs.

Assembles the application at runtime from a validated `MountConfig`: builds the
database engine, the cache store, the object store client and the services
that sit on top of them.

Import rules:
- Entry points import *this* package (not adapters/service_layer directly).
- This package may import: `bucketfs.adapters`, `bucketfs.service_layer`,
  `bucketfs.interfaces`, `bucketfs.domain`, and `bucketfs.config`.
- Inner layers must not import `bucketfs.bootstrap`.
"""

from .bootstrap import AppContainer, bootstrap, build_container, build_object_store

__all__ = ["AppContainer", "bootstrap", "build_container", "build_object_store"]
