"""Auth core services."""
