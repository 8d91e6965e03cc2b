from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv


_LOADED = False

logger = logging.getLogger(__name__)


def load_env() -> None:
    global _LOADED
    if _LOADED:
        return
    _LOADED = True

    base_dir = Path(__file__).resolve().parent
    # Project root first so a checkout-level .env is honoured.
    candidates = [
        base_dir.parent / ".env",
        base_dir / ".env",
    ]

    for path in candidates:
        if not path.exists():
            continue
        # Real environment variables (Docker/K8s) win over the file.
        load_dotenv(dotenv_path=path, override=False)
        logger.debug("Environment loaded from %s", path)
