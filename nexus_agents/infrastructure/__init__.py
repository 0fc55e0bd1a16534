"""Infrastructure Layer — Anthropic client, SQL stores, logging setup.

Invariants:
    - Implements the core protocols (ReasoningModel, MessageStore, DocumentStore)
    - External calls wrapped with retry/timeout and mapped onto core/errors.py

Design Decisions:
    - Module-level singletons with init_*/get_* pairs, built in the lifespan
"""
