from __future__ import annotations

import os

from backend.app.risk.signals import DEFAULT_TOP_RISK_COUNT


def default_top_risk_count() -> int:
    raw = os.getenv("RISK_TOP_COUNT")
    if not raw:
        return DEFAULT_TOP_RISK_COUNT
    try:
        return max(0, int(raw))
    except ValueError:
        return DEFAULT_TOP_RISK_COUNT
