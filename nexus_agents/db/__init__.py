"""Database Base — SQLAlchemy declarative Base shared by models and Alembic.

Design Decisions:
    - asyncpg driver for PostgreSQL in production, aiosqlite in tests
"""
