"""Core infrastructure: configuration, database, errors and LLM clients."""
