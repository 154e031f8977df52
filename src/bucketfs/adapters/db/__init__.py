"""Shared database plumbing: engine factory, metadata, dialects and migrations."""
