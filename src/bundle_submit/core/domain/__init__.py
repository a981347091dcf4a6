"""Domain models and entities.

Why:
- Pure, strict data structures (Pydantic v2 + dataclasses) live here.
- The domain knows nothing about HTTP or the CLI: only bundle concepts.
"""
