"""Alembic migration scripts for the bucketfs metadata cache."""
