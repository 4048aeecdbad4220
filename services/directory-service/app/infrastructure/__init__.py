"""Infrastructure layer - clients for external services."""
