"""API Layer — FastAPI routes and error handlers.

Invariants:
    - Routes registered explicitly in main.py (no auto-discovery)
    - Errors leave as the NexusError JSON envelope; streams end in an error chunk

Design Decisions:
    - Thin routes: build the ExecutionContext, delegate to agents or the router
"""
