from datetime import timedelta
from types import SimpleNamespace

from app.models import DispatchStatus
from app.services.metrics import compute_handyman_metrics
from tests.conftest import T0


def _row(handyman_id, status, minutes=None):
    return SimpleNamespace(
        handyman_id=handyman_id,
        status=status,
        dispatch_time=T0,
        response_time=T0 + timedelta(minutes=minutes) if minutes is not None else None,
    )


def test_acceptance_rate_and_average_response():
    rows = [
        _row("h1", DispatchStatus.ACCEPTED, 10),
        _row("h1", DispatchStatus.ACCEPTED, 20),
        _row("h1", DispatchStatus.ACCEPTED, 30),
        _row("h1", DispatchStatus.DECLINED, 20),
        _row("h1", DispatchStatus.PENDING),
        _row("h1", DispatchStatus.ESCALATED),
    ]
    m = compute_handyman_metrics(rows, {"h1": "Alice"})["h1"]
    assert m.handyman_name == "Alice"
    assert m.acceptance_rate == 75
    assert m.average_response_time == 20
    assert m.total_dispatches == 6
    assert m.pending_count == 1
    assert m.escalated == 1


def test_no_decisions_means_zero_rates():
    m = compute_handyman_metrics([_row("h1", DispatchStatus.PENDING), _row("h1", DispatchStatus.CANCELED)])["h1"]
    assert m.acceptance_rate == 0
    assert m.average_response_time == 0
    assert m.canceled == 1


def test_rates_round_half_up():
    rows = [_row("h1", DispatchStatus.ACCEPTED, 1), _row("h1", DispatchStatus.DECLINED, 2)]
    m = compute_handyman_metrics(rows)["h1"]
    assert m.acceptance_rate == 50
    assert m.average_response_time == 2  # 1.5 minutes


def test_metrics_are_per_handyman():
    rows = [_row("h1", DispatchStatus.ACCEPTED, 5), _row("h2", DispatchStatus.DECLINED, 5)]
    metrics = compute_handyman_metrics(rows)
    assert metrics["h1"].acceptance_rate == 100
    assert metrics["h2"].acceptance_rate == 0
