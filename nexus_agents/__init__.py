"""Nexus Agents — turn-bounded tool-calling orchestration service.

Invariants:
    - Package root has no import side-effects (version string only)

Design Decisions:
    - Explicit imports only, no star exports
"""

__version__ = "1.0.0"
