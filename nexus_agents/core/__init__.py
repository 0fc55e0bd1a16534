"""Core Layer — pure domain logic, no IO, no DB.

Invariants:
    - No module in core/ imports from services/, api/, infrastructure/, or db/
    - Functions are pure; repository_protocols.py only declares the IO seams

Design Decisions:
    - Functional core separated from imperative shell
"""
