"""Directory Service: cached read-only API over the club's Notion databases."""

__version__ = "1.0.0"
