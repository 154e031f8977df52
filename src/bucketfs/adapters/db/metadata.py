"""The `MetaData` every persistent bucketfs table attaches to.

Two tables are persistent: ``file_metadata`` (the metadata cache) and
``stat_cache`` (the auxiliary stat cache). Their modules register them on
`metadata` when imported; `load_tables` imports both so that migrations and
``create_all`` always see the complete schema.

Reconciliation staging tables are not registered here;
`is_staging_table` recognizes them by name so migrations can ignore leftovers
from an interrupted refresh.
"""

from __future__ import annotations

import importlib

from sqlalchemy import MetaData

NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
}

STAGING_MARKERS = ("_staging_", "_old_")
TABLE_MODULES = (
    "bucketfs.adapters.cache_store.schema",
    "bucketfs.adapters.stat_cache",
)

metadata = MetaData(naming_convention=NAMING_CONVENTION)


def load_tables() -> MetaData:
    """Import every table module and return the populated `metadata`."""
    for module in TABLE_MODULES:
        importlib.import_module(module)
    return metadata


def is_staging_table(name: str) -> bool:
    """Return True for a reconciliation staging (or pre-swap) table name."""
    return any(marker in name for marker in STAGING_MARKERS)
