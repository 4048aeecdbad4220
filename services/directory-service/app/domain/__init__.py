"""
Domain layer - Core directory entities and domain logic.

This layer contains the entity shapes, their decoding rules and the
error taxonomy, independent of any infrastructure or framework concerns.
"""
