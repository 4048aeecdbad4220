"""Service layer - orchestration between external sources and the cache."""
