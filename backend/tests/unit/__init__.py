"""
Unit tests package.

Contains isolated unit tests for the domain types, services and core
helpers. Repositories are replaced by mocks, so no database is needed.
"""
