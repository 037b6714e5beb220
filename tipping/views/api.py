"""
JSON API views for the tipping app.
"""

import json
import logging

from django.contrib.admin.views.decorators import staff_member_required
from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.utils import timezone
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from ..constants import CHIP_LABELS, DOUBLE_UP, WILDCARD
from ..models import ChipActivation, Contest, LeaderboardSnapshot, Match, Participant
from ..services.leaderboard import activate_chip, refresh_leaderboard
from ..utils.scoring_engine import (
    ChipError,
    ChipLockedError,
    DuplicateChipError,
    ScoringEngineError,
)

logger = logging.getLogger(__name__)

# Request body keys for each chip kind
CHIP_FIELDS = {"doubleUp": DOUBLE_UP, "wildcard": WILDCARD}


def _error(message, status):
    return JsonResponse({"status": "error", "message": message}, status=status)


def _get_contest(slug):
    return Contest.objects.filter(slug=slug, is_active=True).first()


def _parse_body(request):
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def _chip_status(error):
    if isinstance(error, DuplicateChipError):
        return 409
    if isinstance(error, ChipLockedError):
        return 423
    return 400


@require_GET
def leaderboard(request, contest_slug):
    """
    Current leaderboard snapshot.

    Returns:
    {
        "status": "ok",
        "computed_at": "2024-06-20T18:00:00+00:00",
        "entries": [
            {"rank": 1, "previous_rank": 2, "delta": "up", "name": "...", ...}
        ]
    }
    """
    contest = _get_contest(contest_slug)
    if contest is None:
        return _error("Contest not found", 404)

    stored = LeaderboardSnapshot.current_for(contest)
    if stored is None:
        return JsonResponse({"status": "ok", "computed_at": None, "entries": []})

    snapshot = stored.to_record()
    return JsonResponse({
        "status": "ok",
        "computed_at": snapshot.computed_at.isoformat(),
        "entries": [
            {
                "rank": record.rank,
                "previous_rank": record.previous_rank,
                "delta": record.delta,
                "name": record.name,
                "stage_points": record.stage_points,
                "bonus_points": record.bonus_points,
                "penalty": record.penalty,
                "total": record.total,
                "submitted_at": record.submitted_at.isoformat() if record.submitted_at else None,
                "chips_used": record.chips_used,
            }
            for record in snapshot
        ],
    })


@staff_member_required
@require_POST
def refresh(request, contest_slug):
    contest = _get_contest(contest_slug)
    if contest is None:
        return _error("Contest not found", 404)

    try:
        result = refresh_leaderboard(contest)
    except ScoringEngineError as e:
        logger.error(f"Leaderboard refresh failed for {contest.name}: {e}")
        return _error(str(e), 400)

    return JsonResponse({
        "status": "ok",
        "snapshot_id": result.stored.pk,
        "participants": result.participant_count,
    })


@login_required
@require_http_methods(["GET", "POST"])
def chips(request, contest_slug):
    contest = _get_contest(contest_slug)
    if contest is None:
        return _error("Contest not found", 404)
    if request.method == "POST":
        return _submit_chips(request, contest)
    return _list_chips(contest)


def _submit_chips(request, contest):
    """
    Activate chips for the requesting user's entry.

    Expects JSON body (either key may be omitted):
    {
        "doubleUp": 12,
        "wildcard": 17
    }

    Chips are processed in body order; activations made before a failing
    chip are kept and listed in the error response.
    """
    data = _parse_body(request)
    if data is None:
        return _error("Invalid JSON", 400)

    requested = [(key, data[key]) for key in CHIP_FIELDS if data.get(key) is not None]
    if not requested:
        return _error("No chips provided", 400)

    participant = Participant.objects.filter(contest=contest, user=request.user).first()
    if participant is None:
        return _error("You have no entry in this contest", 403)

    activated = []
    for key, target in requested:
        try:
            activation = activate_chip(contest, participant.name, CHIP_FIELDS[key], target)
        except ChipError as e:
            logger.info(f"Chip request from {participant.name} refused: {e}")
            return JsonResponse(
                {"status": "error", "message": str(e), "activated": activated},
                status=_chip_status(e),
            )
        activated.append({"chip": key, "match": activation.match_number})

    return JsonResponse({"status": "ok", "activated": activated})


def _list_chips(contest):
    """Every activated chip; targets stay hidden until the match has started."""
    now = timezone.now()
    rows = ChipActivation.objects.filter(participant__contest=contest).select_related(
        "participant", "match"
    )
    return JsonResponse({
        "status": "ok",
        "chips": [
            {
                "participant": row.participant.name,
                "chip": CHIP_LABELS[row.kind],
                "match": row.match.number if row.match.has_started(now) else None,
            }
            for row in rows
        ],
    })


@staff_member_required
@require_POST
def match_result(request, contest_slug, number):
    """
    Record or clear a match result.

    Expects JSON body:
    {
        "winner": "Team A"  // a team name, "DRAW", or "" to clear
    }
    """
    contest = _get_contest(contest_slug)
    if contest is None:
        return _error("Contest not found", 404)

    match = Match.objects.filter(contest=contest, number=number).first()
    if match is None:
        return _error(f"Match {number} not found", 404)

    data = _parse_body(request)
    if data is None or not isinstance(data.get("winner"), str):
        return _error("Expected a 'winner' string", 400)

    match.winner = data["winner"].strip()
    try:
        match.clean()
    except ValidationError as e:
        return _error(" ".join(e.messages), 400)
    match.save()

    return JsonResponse({
        "status": "ok",
        "match": match.number,
        "winner": match.winner or None,
    })
