"""Global pytest configuration."""

import os

# Tests default to in-memory repositories and in-process queues
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("REDIS_URL", "")
