"""Services Layer — turn engine, tool registry/invoker, intent router, agents.

Invariants:
    - Tools registered explicitly from define_*_tools.py schemas (no auto-discovery)
    - One handler class per tool family, one define_*_tools.py per family

Design Decisions:
    - Services depend on core protocols, never on concrete stores or SDKs
      (sub-model callers take the resilient client by parameter)
"""
