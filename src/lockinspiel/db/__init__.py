# src/lockinspiel/db/__init__.py
"""Storage layer: temporal codec, migrations and connection pooling."""
