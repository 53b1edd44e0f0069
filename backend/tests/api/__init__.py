"""
API endpoint tests.

Exercise the Flask blueprints through the test client against a real
SQLite database.
"""
