"""Core filesystem services: cache wrapper, buffers, handles, wrapper and reconciliation."""
