"""Domain value types for bucketfs."""
