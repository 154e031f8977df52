"""Display form of the metadata cache database URL."""

from sqlalchemy.engine import make_url


def sanitize_url(url: str) -> str:
    """Return ``url`` with any password shown as ``***``.

    Only the password is masked; credentials passed as query parameters are
    printed as-is.

    Examples:
        >>> sanitize_url("postgresql+psycopg://cache:s3cr3t@db:5432/bucketfs")
        'postgresql+psycopg://cache:***@db:5432/bucketfs'
        >>> sanitize_url("sqlite+pysqlite:///bucketfs.db")
        'sqlite+pysqlite:///bucketfs.db'
    """
    return make_url(url).render_as_string(hide_password=True)
