from curation.planner.work_planner import LEASE_STALE_AFTER_SECONDS, WorkPlanner

__all__ = ["LEASE_STALE_AFTER_SECONDS", "WorkPlanner"]
