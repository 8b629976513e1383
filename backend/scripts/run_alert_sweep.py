from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.api import config  # noqa: E402
from backend.app.intake.normalize import normalize_batch  # noqa: E402
from backend.app.services.sweep_service import run_alert_sweep  # noqa: E402


def _load_snapshot(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as fh:
        payload = json.load(fh)
    if not isinstance(payload, dict):
        raise ValueError(f"{path}: expected an object with entries/projects/employees")
    return payload


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the daily budget/deadline alert sweep.")
    parser.add_argument("snapshot", type=Path, help="JSON file with entries, projects and employees")
    parser.add_argument("--today", type=date.fromisoformat, default=None, help="Evaluation date (YYYY-MM-DD)")
    parser.add_argument("--deadline-days", type=int, default=None)
    parser.add_argument(
        "--respect-dismissals",
        action="store_true",
        help="Skip alerts each recipient has dismissed (requires DATABASE_URL)",
    )
    parser.add_argument("--show", action="store_true", help="Print the notifications too")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    snapshot = _load_snapshot(args.snapshot)
    batch = normalize_batch(
        snapshot.get("entries") or [],
        snapshot.get("projects") or [],
        snapshot.get("employees") or [],
    )
    kwargs = {
        "today": args.today,
        "deadline_threshold_days": args.deadline_days or config.deadline_alert_days(),
    }

    if args.respect_dismissals:
        from backend.app.db import session_scope
        from backend.app.services.dismissal_service import dismissal_store

        with session_scope() as db:
            result = run_alert_sweep(batch, store_for=lambda user_id: dismissal_store(db, user_id), **kwargs)
    else:
        result = run_alert_sweep(batch, **kwargs)

    output = {"counts": result.counts()}
    if args.show:
        output["notifications"] = [n.as_dict() for n in result.notifications]
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
