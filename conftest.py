import os

# Default environment for SQLite-backed test runs
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "project.settings")
os.environ.setdefault("USE_POSTGRES", "false")
os.environ.setdefault("SQLITE_NAME", ":memory:")
os.environ.setdefault("ROADWORKS_LOG_LEVEL", "WARNING")
