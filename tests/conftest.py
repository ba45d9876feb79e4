from __future__ import annotations

import os


os.environ.setdefault("AUTOSEND_DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("AUTOSEND_ENABLE_CRON_SCHEDULER", "false")
os.environ.setdefault("AUTOSEND_DEFAULT_TIMEZONE", "UTC")
