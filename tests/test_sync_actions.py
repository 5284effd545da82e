import pytest

from services.background_sync import BackgroundSyncManager
from services.connectivity import ConnectivityMonitor
from services.sync_actions import SyncActions


@pytest.fixture()
def actions(fast_policy):
    manager = BackgroundSyncManager(
        {}, policy=fast_policy, connectivity=ConnectivityMonitor(online=False)
    )
    return SyncActions(manager)


def test_wrappers_use_fixed_kinds_and_priorities(actions):
    actions.sync_leaderboard("college", "c1")
    actions.sync_contest_data("1900")
    actions.sync_problem_recommendations("u1", rating=1600)
    actions.sync_user_stats("u1", "tourist")
    actions.sync_cf_verification("u2", "petr")

    queued = [(op.kind, op.priority, op.payload) for op in actions.manager.pending_operations()]

    assert queued == [
        ("user-stats-sync", "high", {"userId": "u1", "cfHandle": "tourist"}),
        ("cf-verification-sync", "high", {"userId": "u2", "cfHandle": "petr"}),
        ("contest-data-sync", "medium", {"contestId": "1900"}),
        ("problem-recommendations-sync", "medium", {"userId": "u1", "rating": 1600}),
        ("leaderboard-sync", "low", {"type": "college", "collegeId": "c1"}),
    ]
    assert actions.status.queue_size == 5


def test_subscribe_and_clear(actions):
    seen = []
    unsubscribe = actions.subscribe(seen.append)

    actions.sync_contest_data()
    actions.clear_queue()
    unsubscribe()

    assert [status.queue_size for status in seen] == [1, 0]
    assert actions.status.queue_size == 0


def test_retry_failed_without_failures_is_harmless(actions):
    actions.retry_failed()
    assert actions.status.failed_operations == 0
