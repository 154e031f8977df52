"""The ``bucketfs`` command-line interface."""
