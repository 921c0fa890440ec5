"""Root conftest: loads .env.test so ``chat_relay.config.settings`` can be built at import."""
from __future__ import annotations

import os
from pathlib import Path

_env_test = Path(__file__).resolve().parent / ".env.test"
if _env_test.exists():
    for raw_line in _env_test.read_text().splitlines():
        entry = raw_line.strip()
        if entry and not entry.startswith("#"):
            key, _, value = entry.partition("=")
            os.environ.setdefault(key.strip(), value.strip())
