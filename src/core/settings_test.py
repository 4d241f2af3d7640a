"""Settings for the test suite: in-memory SQLite and fast hashing.

Set ``TEST_DATABASE_URL`` to run against PostgreSQL, which also enables the
concurrency tests that need row locks and a second connection.
"""

from .settings import *  # noqa: F401,F403
from .settings import _get_env, _parse_database_url

TEST_DATABASE_URL = _get_env("TEST_DATABASE_URL")
if TEST_DATABASE_URL:
    DATABASES = {"default": _parse_database_url(TEST_DATABASE_URL)}
else:
    DATABASES = {"default": {"ENGINE": "django.db.backends.sqlite3", "NAME": ":memory:"}}

LOGGING["loggers"]["rebac"]["level"] = "WARNING"  # noqa: F405

# Minimum cost keeps subject creation fast in tests.
BCRYPT_ROUNDS = 4
