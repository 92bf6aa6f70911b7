"""
Root-level conftest for all tests.

Unit tests never touch the network or a database. Integration tests start a
PostgreSQL container (see tests/integration/conftest.py).
"""
import os

# Settings read at import time by the logging module
os.environ.setdefault("JSON_LOGS", "false")
os.environ.setdefault("LOGLEVEL", "DEBUG")
