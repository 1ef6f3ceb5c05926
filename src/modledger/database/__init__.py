"""
Database package for modledger.

Public API:
    - Database: opens the SQLite ledger and creates its schema
    - ConnectionManager: single aiosqlite connection with serialised writes
"""
