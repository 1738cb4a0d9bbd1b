"""Usage services."""
