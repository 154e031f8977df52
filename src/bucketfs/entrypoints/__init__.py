"""Entrypoints (inbound adapters) for bucketfs.

Expose the filesystem to the outside world. Currently the `bucketfs` CLI,
which parses inputs, asks `bucketfs.bootstrap` for a wired filesystem and
presents results.

Dependency rule: may import `bucketfs.bootstrap` and `bucketfs.service_layer`;
avoid importing `bucketfs.adapters` directly.
"""
