"""
Integration tests package.

Contains integration tests that run the services and repositories
together against a real SQLite database, including the concurrent
booking and payment scenarios.
"""
