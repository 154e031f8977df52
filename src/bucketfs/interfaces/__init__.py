"""Abstract ports implemented by bucketfs adapters."""
