from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from typing import List, Optional

from backend.app.db import session_scope
from backend.app.services.risk_alert_service import generate_risk_alerts


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Recompute risk signals and persist alerts.")
    parser.add_argument(
        "--org",
        dest="organization_ids",
        action="append",
        default=None,
        help="Limit the run to this organization id (repeatable).",
    )
    parser.add_argument("--verbose", action="store_true", help="Log at debug level.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    with session_scope() as db:
        result = generate_risk_alerts(db, organization_ids=args.organization_ids)

    print(json.dumps(asdict(result), indent=2))
    return 1 if result.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
