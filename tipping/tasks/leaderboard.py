"""
Leaderboard refresh tasks for Django-Q.

Recording a match result enqueues a refresh so the stored leaderboard follows
the results without an admin having to trigger it.
"""

import logging

from django_q.tasks import async_task

from tipping import conf

logger = logging.getLogger(__name__)


def refresh_contest_leaderboard(contest_id, dry_run=False):
    """
    Recompute and store the leaderboard for one contest.

    Args:
        contest_id: ID of the contest to refresh
        dry_run: Compute without storing a snapshot

    Returns:
        dict: Result information with status and details
    """
    from tipping.models import Contest
    from tipping.services.leaderboard import refresh_leaderboard

    try:
        contest = Contest.objects.get(id=contest_id)
        result = refresh_leaderboard(contest, dry_run=dry_run)
        return {
            "status": "success",
            "contest_id": contest_id,
            "contest_name": contest.name,
            "participants": result.participant_count,
            "snapshot_id": result.stored.pk if result.stored else None,
        }
    except Contest.DoesNotExist:
        logger.error(f"Contest {contest_id} not found")
        return {"status": "error", "reason": "contest_not_found"}
    except Exception as e:
        logger.error(f"Error refreshing leaderboard for contest {contest_id}: {e}", exc_info=True)
        raise


def schedule_leaderboard_refresh(contest):
    """Enqueue a leaderboard refresh. Returns the task id, or None when auto refresh is off."""
    if not conf.AUTO_REFRESH:
        logger.debug(f"Auto refresh disabled; not scheduling refresh for {contest}")
        return None

    task_id = async_task(
        "tipping.tasks.leaderboard.refresh_contest_leaderboard",
        contest.id,
        task_name=f"leaderboard_refresh_{contest.id}",
    )
    logger.info(f"Queued leaderboard refresh for {contest.name} (task {task_id})")
    return task_id
