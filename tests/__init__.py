"""
Test suite for pgcascade.

- Unit tests run the schema engine against an in-memory fake catalog
- Integration tests need a PostgreSQL server (see PGCASCADE_TEST_DSN)
"""
