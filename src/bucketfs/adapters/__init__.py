"""Adapters (infrastructure) for bucketfs.

Concrete implementations of the ports in `bucketfs.interfaces`: the boto3 S3
client, in-memory and SQLAlchemy cache stores, the auxiliary stat cache, and
the database engine, metadata and migrations they share.

Dependency rule: may import `bucketfs.domain` and `bucketfs.interfaces`; the
domain must not import this package.
"""
