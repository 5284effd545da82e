"""Thin helpers UI code uses to request background refreshes."""
from __future__ import annotations

from typing import Callable, Optional

from services.background_sync import (
    CF_VERIFICATION_SYNC,
    CONTEST_DATA_SYNC,
    LEADERBOARD_SYNC,
    PROBLEM_RECOMMENDATIONS_SYNC,
    USER_STATS_SYNC,
    BackgroundSyncManager,
    SyncStatus,
)


class SyncActions:
    def __init__(self, manager: BackgroundSyncManager) -> None:
        self.manager = manager

    @property
    def status(self) -> SyncStatus:
        return self.manager.get_status()

    def subscribe(self, callback: Callable[[SyncStatus], None]) -> Callable[[], None]:
        return self.manager.on_status_change(callback)

    def sync_user_stats(self, user_id: str, cf_handle: Optional[str] = None) -> str:
        return self.manager.add_operation(
            USER_STATS_SYNC, {"userId": user_id, "cfHandle": cf_handle}, "high"
        )

    def sync_contest_data(self, contest_id: Optional[str] = None) -> str:
        return self.manager.add_operation(CONTEST_DATA_SYNC, {"contestId": contest_id}, "medium")

    def sync_problem_recommendations(self, user_id: str, rating: Optional[int] = None) -> str:
        return self.manager.add_operation(
            PROBLEM_RECOMMENDATIONS_SYNC, {"userId": user_id, "rating": rating}, "medium"
        )

    def sync_leaderboard(self, board_type: str, college_id: Optional[str] = None) -> str:
        return self.manager.add_operation(
            LEADERBOARD_SYNC, {"type": board_type, "collegeId": college_id}, "low"
        )

    def sync_cf_verification(self, user_id: str, cf_handle: str) -> str:
        return self.manager.add_operation(
            CF_VERIFICATION_SYNC, {"userId": user_id, "cfHandle": cf_handle}, "high"
        )

    def retry_failed(self) -> None:
        self.manager.retry_failed_operations()

    def clear_queue(self) -> None:
        self.manager.clear_queue()


__all__ = ["SyncActions"]
