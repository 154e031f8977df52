"""URI handling for a single bucket mount.

A mount maps URIs of the form ``scheme://path`` onto store keys. The scheme is
fixed per mount and the mount may be narrowed to a key prefix; paths that do not
already carry the prefix get it prepended. The mount root (``scheme://prefix``)
is implicit: it is never stored and every other URI descends from it.

Examples:
    >>> resolver = UriResolver("s3", "media")
    >>> resolver.normalize("s3://a/b/")
    's3://media/a/b'
    >>> resolver.ancestors("s3://media/a/b/c.png")
    ['s3://media/a/b', 's3://media/a']
"""

from __future__ import annotations

from .errors import InvalidUriError

SEPARATOR = "/"
SCHEME_DELIMITER = "://"
_STRIP = "/\\"


class UriResolver:
    """Translate between mount URIs and store keys."""

    def __init__(self, scheme: str = "s3", key_prefix: str = "") -> None:
        self.scheme = scheme
        self.key_prefix = key_prefix.strip(_STRIP)

    @property
    def root_uri(self) -> str:
        """The URI of the mount root."""
        return f"{self.scheme}{SCHEME_DELIMITER}{self.key_prefix}"

    @property
    def root_key_prefix(self) -> str:
        """The key prefix that lists every object of the mount."""
        return f"{self.key_prefix}{SEPARATOR}" if self.key_prefix else ""

    def to_key(self, uri: str) -> str:
        """Return the store key addressed by ``uri``.

        Raises:
            InvalidUriError: if the URI has no scheme or a foreign scheme.
        """
        scheme, delimiter, path = uri.partition(SCHEME_DELIMITER)
        if not delimiter:
            raise InvalidUriError(uri, "missing scheme")
        if scheme != self.scheme:
            raise InvalidUriError(uri, f"expected scheme {self.scheme!r}")

        path = path.strip(_STRIP)
        if self.key_prefix and not self._in_prefix(path):
            path = f"{self.key_prefix}{SEPARATOR}{path}" if path else self.key_prefix
        return path

    def normalize(self, uri: str) -> str:
        """Return the canonical form of ``uri``."""
        return self.uri_for_key(self.to_key(uri))

    def uri_for_key(self, key: str) -> str:
        """Return the URI of a store key (trailing separators are dropped)."""
        return f"{self.scheme}{SCHEME_DELIMITER}{key.strip(_STRIP)}"

    def is_root(self, uri: str) -> bool:
        """Return True if ``uri`` names the mount root."""
        return self.normalize(uri) == self.root_uri

    def dirname(self, uri: str) -> str:
        """Return the parent URI; the root is its own parent."""
        key = self.to_key(uri)
        if self.is_root(uri):
            return self.root_uri
        parent, _, _ = key.rpartition(SEPARATOR)
        if not parent or len(parent) < len(self.key_prefix):
            return self.root_uri
        return self.uri_for_key(parent)

    def basename(self, uri: str) -> str:
        """Return the last path component of ``uri`` ('' for the root)."""
        if self.is_root(uri):
            return ""
        return self.to_key(uri).rpartition(SEPARATOR)[2]

    def ancestors(self, uri: str) -> list[str]:
        """Return every strict ancestor of ``uri``, nearest first, root excluded."""
        result: list[str] = []
        current = self.normalize(uri)
        while True:
            parent = self.dirname(current)
            if parent == current or parent == self.root_uri:
                return result
            result.append(parent)
            current = parent

    def child_prefix(self, uri: str) -> str:
        """Return the string every descendant URI of ``uri`` starts with."""
        normalized = self.normalize(uri)
        if normalized.endswith(SCHEME_DELIMITER):
            return normalized
        return normalized + SEPARATOR

    def directory_key(self, uri: str) -> str:
        """Return the prefix-marker key used for directory ``uri``."""
        key = self.to_key(uri)
        return f"{key}{SEPARATOR}" if key else ""

    def _in_prefix(self, path: str) -> bool:
        return path == self.key_prefix or path.startswith(self.key_prefix + SEPARATOR)
