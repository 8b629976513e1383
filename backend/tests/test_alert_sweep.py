from datetime import date, datetime, timezone
import json
from pathlib import Path
import sys

sys.path.append(str(Path(__file__).resolve().parents[2]))

from backend.app.alerts.dismissals import DismissalStore, InMemoryDismissalBackend
from backend.app.intake.normalize import normalize_batch
from backend.app.services.sweep_service import run_alert_sweep

TODAY = date(2026, 10, 18)
NOW = datetime(2026, 10, 18, 2, 0, tzinfo=timezone.utc)


def _batch(snapshot):
    return normalize_batch(snapshot["entries"], snapshot["projects"], snapshot["employees"])


def test_sweep_addresses_project_audience(tracker_snapshot):
    result = run_alert_sweep(_batch(tracker_snapshot), today=TODAY, computed_at=NOW)

    assert result.counts() == {"budget_alerts": 3, "deadline_alerts": 3, "notifications": 6, "suppressed": 0}
    recipients = sorted({n.user_id for n in result.notifications})
    assert recipients == ["m1", "u1", "u2"]


def test_sweep_skips_inactive_and_archived_projects(tracker_snapshot):
    tracker_snapshot["projects"][0]["status"] = "COMPLETED"
    result = run_alert_sweep(_batch(tracker_snapshot), today=TODAY, computed_at=NOW)
    assert result.notifications == []

    tracker_snapshot["projects"][0]["status"] = "IN_PROGRESS"
    tracker_snapshot["projects"][0]["isArchived"] = True
    result = run_alert_sweep(_batch(tracker_snapshot), today=TODAY, computed_at=NOW)
    assert result.notifications == []


def test_sweep_respects_each_recipients_dismissals(tracker_snapshot):
    stores = {}

    def store_for(user_id):
        return stores.setdefault(user_id, DismissalStore(InMemoryDismissalBackend()))

    store_for("m1").dismiss("BudgetAlert:p1:90")
    result = run_alert_sweep(_batch(tracker_snapshot), today=TODAY, computed_at=NOW, store_for=store_for)

    assert result.budget_alerts == 2
    assert result.suppressed == 1
    assert ("m1", "BudgetAlert") not in {(n.user_id, n.metadata["kind"]) for n in result.notifications}


def test_sweep_script_prints_counts(tracker_snapshot, tmp_path, capsys):
    from backend.scripts.run_alert_sweep import main

    snapshot_path = tmp_path / "snapshot.json"
    snapshot_path.write_text(json.dumps(tracker_snapshot), encoding="utf-8")

    assert main([str(snapshot_path), "--today", "2026-10-18"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["counts"]["budget_alerts"] == 3
    assert output["counts"]["deadline_alerts"] == 3


class CountingBackend(InMemoryDismissalBackend):
    def __init__(self):
        super().__init__()
        self.reads = 0

    def get(self, keys):
        self.reads += 1
        return super().get(keys)


def test_sweep_reads_dismissals_once_per_recipient(tracker_snapshot):
    backends = {}

    def store_for(user_id):
        backend = backends.setdefault(user_id, CountingBackend())
        return DismissalStore(backend)

    store_for("u1").dismiss("DeadlineAlert:p1:7d@2026-10-22")
    result = run_alert_sweep(_batch(tracker_snapshot), today=TODAY, computed_at=NOW, store_for=store_for)

    assert sorted(backends) == ["m1", "u1", "u2"]
    assert {user_id: b.reads for user_id, b in backends.items()} == {"m1": 1, "u1": 1, "u2": 1}
    assert result.suppressed == 1
    assert result.deadline_alerts == 2
