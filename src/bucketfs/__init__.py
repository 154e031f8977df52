"""bucketfs: a POSIX-like filesystem view over an S3 bucket with a SQL metadata cache."""

__all__ = ["__version__"]

__version__ = "0.1.0"
