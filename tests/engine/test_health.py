from sync_guard.config.models import HealthConfig
from sync_guard.engine.health import HealthStateTracker
from sync_guard.models import HealthStatus, SyncOutcome


def _outcome(success, ts, source="server1", message=None):
    return SyncOutcome(source_id=source, success=success, timestamp=ts, error_message=message)


def test_status_transitions_follow_success_rate():
    tracker = HealthStateTracker(HealthConfig(healthy_threshold=0.5, degraded_threshold=0.01))
    assert tracker.current_status("server1") is HealthStatus.PENDING

    assert tracker.record_outcome(_outcome(True, 1)) == (HealthStatus.PENDING, HealthStatus.HEALTHY)
    tracker.record_outcome(_outcome(False, 2))
    assert tracker.current_status("server1") is HealthStatus.HEALTHY

    previous, current = tracker.record_outcome(_outcome(False, 3, message="timeout"))
    assert (previous, current) == (HealthStatus.HEALTHY, HealthStatus.DEGRADED)

    tracker.record_outcome(_outcome(True, 4))
    assert tracker.current_status("server1") is HealthStatus.HEALTHY


def test_only_failures_is_unhealthy():
    tracker = HealthStateTracker()
    tracker.record_outcome(_outcome(False, 1, message="refused"))

    assert tracker.current_status("server1") is HealthStatus.UNHEALTHY
    snapshot = tracker.snapshot()["server1"]
    assert snapshot["status"] == "UNHEALTHY"
    assert snapshot["failures"] == 1
    assert snapshot["last_error"] == "refused"


def test_current_status_is_a_pure_read():
    tracker = HealthStateTracker()

    tracker.current_status("ghost")

    assert tracker.snapshot() == {}


def test_overall_status_is_worst_source():
    tracker = HealthStateTracker()
    assert tracker.overall_status() is HealthStatus.PENDING

    tracker.record_outcome(_outcome(True, 1, source="a"))
    tracker.record_outcome(_outcome(False, 1, source="b"))

    assert tracker.overall_status() is HealthStatus.UNHEALTHY
    tracker.reset("b")
    assert tracker.overall_status() is HealthStatus.HEALTHY
    tracker.reset()
    assert tracker.overall_status() is HealthStatus.PENDING


def test_old_outcomes_leave_the_health_window():
    tracker = HealthStateTracker(HealthConfig(window_duration=100))
    tracker.record_outcome(_outcome(False, 0))
    tracker.record_outcome(_outcome(False, 10))

    tracker.record_outcome(_outcome(True, 200))

    assert tracker.current_status("server1") is HealthStatus.HEALTHY
    assert tracker.snapshot()["server1"]["success_rate"] == 1.0
