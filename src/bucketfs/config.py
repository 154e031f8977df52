"""Configuration for bucketfs.

Settings are loaded once into an immutable `MountConfig` and passed to the
constructors that need them; nothing reads the environment during a filesystem
operation. `load_config` reads ``BUCKETFS_*`` environment variables:

| Variable                        | Field                  |
|---------------------------------|------------------------|
| BUCKETFS_BUCKET                 | bucket                 |
| BUCKETFS_KEY_PREFIX             | key_prefix             |
| BUCKETFS_SCHEME                 | scheme                 |
| BUCKETFS_REGION                 | region                 |
| BUCKETFS_ENDPOINT_URL           | endpoint_url           |
| BUCKETFS_ACCESS_KEY             | access_key             |
| BUCKETFS_SECRET_KEY             | secret_key             |
| BUCKETFS_USE_INSTANCE_PROFILE   | use_instance_profile   |
| BUCKETFS_PROXY                  | proxy (``host:port``)  |
| BUCKETFS_CONNECT_TIMEOUT        | connect_timeout        |
| BUCKETFS_READ_TIMEOUT           | read_timeout           |
| BUCKETFS_CACHE_TTL              | cache_ttl              |
| BUCKETFS_IGNORE_CACHE           | ignore_cache           |
| BUCKETFS_CONFIRM_MAX_ATTEMPTS   | confirm_max_attempts   |
| BUCKETFS_CONFIRM_DELAY          | confirm_delay          |
| BUCKETFS_LIST_PAGE_SIZE         | list_page_size         |
| BUCKETFS_DB_URL                 | db_url                 |

It also builds the Alembic configuration used by the ``bucketfs db`` commands.
"""

from __future__ import annotations

import os
import re
import sys
from collections.abc import Mapping
from dataclasses import dataclass
from importlib.resources import files
from typing import TextIO

from alembic.config import Config

from bucketfs.domain.errors import ConfigurationError

ENV_PREFIX = "BUCKETFS_"  # pragma: no mutate
DB_URL_ENV = "BUCKETFS_DB_URL"  # pragma: no mutate
DEFAULT_DB_URL = "sqlite+pysqlite:///bucketfs.db"  # pragma: no mutate

ALEMBIC_URL_KEY = "sqlalchemy.url"  # pragma: no mutate
ALEMBIC_SCRIPT_LOCATION_KEY = "script_location"  # pragma: no mutate

_TRUTHY = {"1", "true", "yes", "on"}
_PROXY_RE = re.compile(r"^[A-Za-z0-9.\-]+:\d{1,5}$")


class DatabaseUrlNotSetError(ConfigurationError):
    """Raised when the BUCKETFS_DB_URL environment variable is not set."""


@dataclass(frozen=True)
class MountConfig:  # pylint: disable=too-many-instance-attributes
    """Immutable settings for one bucket mount.

    Attributes:
        bucket: Bucket name (required).
        key_prefix: Optional key prefix the mount is narrowed to.
        scheme: URI scheme of the mount.
        region: Region of the bucket.
        endpoint_url: Custom endpoint for S3-compatible services.
        access_key: Access key id; required unless `use_instance_profile`.
        secret_key: Secret access key; required unless `use_instance_profile`.
        use_instance_profile: Use the ambient credential chain instead of keys.
        proxy: Optional ``host:port`` proxy.
        connect_timeout: Connection timeout in seconds.
        read_timeout: Read timeout in seconds.
        cache_ttl: Seconds file records learnt from the store stay valid;
            None never expires them.
        ignore_cache: Bypass cached file records when reading metadata.
        confirm_max_attempts: Maximum existence checks after an upload.
        confirm_delay: Initial delay between existence checks, in seconds.
        list_page_size: Page size for list-by-prefix calls.
        db_url: SQLAlchemy URL of the metadata cache database.
    """

    bucket: str
    key_prefix: str = ""
    scheme: str = "s3"
    region: str | None = None
    endpoint_url: str | None = None
    access_key: str | None = None
    secret_key: str | None = None
    use_instance_profile: bool = False
    proxy: str | None = None
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    cache_ttl: int | None = None
    ignore_cache: bool = False
    confirm_max_attempts: int = 20
    confirm_delay: float = 0.25
    list_page_size: int = 1000
    db_url: str = DEFAULT_DB_URL

    def validate(self) -> MountConfig:
        """Check the configuration and return it unchanged.

        Raises:
            ConfigurationError: on a missing bucket, missing credentials without
                an instance profile, an invalid proxy setting, or non-positive
                retry/paging settings.
        """
        if not self.bucket:
            raise ConfigurationError("An S3 bucket name is required (BUCKETFS_BUCKET).")
        if not self.use_instance_profile and not (self.access_key and self.secret_key):
            raise ConfigurationError(
                "S3 credentials are required (BUCKETFS_ACCESS_KEY and "
                "BUCKETFS_SECRET_KEY) unless BUCKETFS_USE_INSTANCE_PROFILE is set."
            )
        if self.proxy is not None and not _PROXY_RE.match(self.proxy):
            raise ConfigurationError(
                f"Invalid proxy {self.proxy!r}; expected 'host:port'."
            )
        if self.confirm_max_attempts < 1:
            raise ConfigurationError("confirm_max_attempts must be at least 1.")
        if self.list_page_size < 1:
            raise ConfigurationError("list_page_size must be at least 1.")
        if self.cache_ttl is not None and self.cache_ttl < 0:
            raise ConfigurationError("cache_ttl must not be negative.")
        return self


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _number(environ: Mapping[str, str], name: str, cast, default):
    raw = environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}.") from e


def load_config(environ: Mapping[str, str] | None = None) -> MountConfig:
    """Load and validate a `MountConfig` from ``BUCKETFS_*`` variables.

    Args:
        environ: Mapping to read from; defaults to `os.environ`.

    Returns:
        A validated configuration.

    Raises:
        ConfigurationError: if the configuration is incomplete or invalid.
    """
    env = os.environ if environ is None else environ

    def text(name: str) -> str | None:
        return env.get(ENV_PREFIX + name) or None

    return MountConfig(
        bucket=text("BUCKET") or "",
        key_prefix=text("KEY_PREFIX") or "",
        scheme=text("SCHEME") or "s3",
        region=text("REGION"),
        endpoint_url=text("ENDPOINT_URL"),
        access_key=text("ACCESS_KEY"),
        secret_key=text("SECRET_KEY"),
        use_instance_profile=_flag(text("USE_INSTANCE_PROFILE")),
        proxy=text("PROXY"),
        connect_timeout=_number(env, "CONNECT_TIMEOUT", float, 10.0),
        read_timeout=_number(env, "READ_TIMEOUT", float, 60.0),
        cache_ttl=_number(env, "CACHE_TTL", int, None),
        ignore_cache=_flag(text("IGNORE_CACHE")),
        confirm_max_attempts=_number(env, "CONFIRM_MAX_ATTEMPTS", int, 20),
        confirm_delay=_number(env, "CONFIRM_DELAY", float, 0.25),
        list_page_size=_number(env, "LIST_PAGE_SIZE", int, 1000),
        db_url=text("DB_URL") or DEFAULT_DB_URL,
    ).validate()


def get_db_url() -> str:
    """Get the database URL from the environment.

    Returns:
        The value of the `BUCKETFS_DB_URL` environment variable.

    Raises:
        DatabaseUrlNotSetError: If `BUCKETFS_DB_URL` is not set.
    """
    if not (url := os.environ.get(DB_URL_ENV)):
        raise DatabaseUrlNotSetError(f"{DB_URL_ENV} is not set.")
    return url


def build_alembic_config(
    db_url: str | None = None, stdout: TextIO = sys.stdout
) -> Config:
    """Build an Alembic `Config` object for the metadata cache migrations.

    Sets only Alembic "main" options:
    - `sqlalchemy.url` → the database URL you pass
    - `script_location` → the packaged Alembic scripts

    Args:
        db_url: SQLAlchemy database URL. Can be `None` only in contexts where
            Alembic won't need to connect to the DB (e.g. ``heads``).
        stdout: Text stream Alembic will write status lines to. Override in
            tests to capture output.

    Returns:
        An `alembic.config.Config` pointing to the packaged migration scripts.
    """
    cfg = Config(stdout=stdout)
    if db_url is not None:
        cfg.set_main_option(ALEMBIC_URL_KEY, db_url)
    cfg.set_main_option(
        ALEMBIC_SCRIPT_LOCATION_KEY,
        str(files("bucketfs.adapters.db.alembic")),
    )
    return cfg
