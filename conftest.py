import os

# Must run before schedule_engine.core.config builds its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("TIMEZONE", "Europe/Moscow")
