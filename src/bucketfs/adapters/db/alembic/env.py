"""Alembic environment for the bucketfs metadata cache database.

The URL comes from ``-x url=...``, then the ``sqlalchemy.url`` option set by
`bucketfs.config.build_alembic_config`, then ``BUCKETFS_DB_URL``.

Online migrations connect through `bucketfs.adapters.db.engine.make_engine`,
so they run with the same SQLite settings as the cache itself. Staging tables
left behind by an interrupted reconciliation run are invisible to
autogenerate.
"""

from logging.config import fileConfig

from alembic import context

from bucketfs import config as app_config
from bucketfs.adapters.db.engine import make_engine
from bucketfs.adapters.db.metadata import is_staging_table, load_tables

# pylint: disable=no-member

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = load_tables()


def resolve_url() -> str:
    """Return the database URL to migrate."""
    if url := context.get_x_argument(as_dictionary=True).get("url"):
        return url
    url = config.get_main_option("sqlalchemy.url")
    if url and "%(" not in url:
        return url
    return app_config.get_db_url()


def include_object(obj, name, type_, reflected, compare_to) -> bool:  # pylint: disable=unused-argument,too-many-arguments
    """Skip reconciliation staging tables during autogenerate."""
    return not (type_ == "table" and is_staging_table(name))


def configure(**kwargs) -> None:
    context.configure(
        target_metadata=target_metadata,
        include_object=include_object,
        compare_type=True,
        compare_server_default=True,
        **kwargs,
    )


if context.is_offline_mode():
    configure(url=resolve_url(), literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()
else:
    engine = make_engine(resolve_url())
    try:
        with engine.connect() as connection:
            configure(
                connection=connection,
                render_as_batch=connection.dialect.name == "sqlite",
            )
            with context.begin_transaction():
                context.run_migrations()
    finally:
        engine.dispose()
