from __future__ import annotations

from django.http import JsonResponse
from django.utils.dateparse import parse_datetime
from django.views.decorators.http import require_GET, require_http_methods, require_POST

from elections import lifecycle, tallying
from elections.api import api_view, parse_json_body, success
from elections.exceptions import ValidationError
from elections.forms import clean_election_create, clean_election_update
from elections.models import Candidate, Election


def serialize_candidate(candidate: Candidate) -> dict[str, object]:
    return {
        "id": candidate.id,
        "name": candidate.name,
        "description": candidate.description,
        "photo": candidate.photo,
        "position": candidate.position,
        "metadata": candidate.metadata,
    }


def serialize_election(election: Election) -> dict[str, object]:
    data: dict[str, object] = {
        "id": election.id,
        "title": election.title,
        "description": election.description,
        "startDate": election.start_datetime,
        "endDate": election.end_datetime,
        "status": election.status,
        "votingType": election.voting_type,
        "isAnonymous": election.is_anonymous,
        "organizationId": election.organization_id,
        "createdById": election.created_by,
        "settings": election.settings,
        "createdAt": election.created_at,
        "updatedAt": election.updated_at,
        "candidates": [
            serialize_candidate(c) for c in sorted(election.candidates.all(), key=lambda c: (c.position, c.id))
        ],
    }
    vote_count = getattr(election, "vote_count", None)
    if vote_count is not None:
        data["voteCount"] = vote_count
    return data


def _query_datetime(request, name: str):
    raw = str(request.GET.get(name) or "").strip()
    if not raw:
        return None
    value = parse_datetime(raw)
    if value is None:
        raise ValidationError(f"{name} must be a valid date")
    return value


@require_http_methods(["GET", "POST"])
@api_view
def elections_collection(request) -> JsonResponse:
    if request.method == "POST":
        cleaned = clean_election_create(parse_json_body(request))
        election = lifecycle.create_election(
            principal=request.principal,
            title=cleaned["title"],
            description=cleaned["description"],
            start_datetime=cleaned["start_datetime"],
            end_datetime=cleaned["end_datetime"],
            voting_type=cleaned["voting_type"],
            is_anonymous=bool(cleaned.get("is_anonymous")),
            settings=cleaned.get("settings"),
            candidates=cleaned["candidates"],
        )
        return success(
            {"election": serialize_election(election)},
            "Election created successfully",
            status=201,
        )

    elections = lifecycle.list_elections(
        principal=request.principal,
        status=str(request.GET.get("status") or "").strip().lower() or None,
        created_by=str(request.GET.get("createdById") or "").strip() or None,
        start_from=_query_datetime(request, "startDateFrom"),
        start_to=_query_datetime(request, "startDateTo"),
    )
    return success(
        {"elections": [serialize_election(e) for e in elections], "total": len(elections)},
        "Elections retrieved successfully",
    )


@require_http_methods(["GET", "PUT", "PATCH", "DELETE"])
@api_view
def election_item(request, election_id: int) -> JsonResponse:
    if request.method == "DELETE":
        lifecycle.delete_election(election_id=election_id, principal=request.principal)
        return success(message="Election deleted successfully")

    if request.method in {"PUT", "PATCH"}:
        changes = clean_election_update(parse_json_body(request))
        lifecycle.update_election(election_id=election_id, principal=request.principal, changes=changes)
        election = lifecycle.get_election(election_id=election_id, principal=request.principal)
        return success({"election": serialize_election(election)}, "Election updated successfully")

    election = lifecycle.get_election(election_id=election_id, principal=request.principal)
    return success({"election": serialize_election(election)}, "Election retrieved successfully")


@require_POST
@api_view
def election_start(request, election_id: int) -> JsonResponse:
    election = lifecycle.start_election(election_id=election_id, principal=request.principal)
    if election.status == Election.Status.scheduled:
        message = "Election scheduled successfully"
    else:
        message = "Election started successfully"
    election = lifecycle.get_election(election_id=election_id, principal=request.principal)
    return success({"election": serialize_election(election)}, message)


@require_POST
@api_view
def election_close(request, election_id: int) -> JsonResponse:
    lifecycle.close_election(election_id=election_id, principal=request.principal)
    election = lifecycle.get_election(election_id=election_id, principal=request.principal)
    return success({"election": serialize_election(election)}, "Election closed successfully")


@require_POST
@api_view
def election_publish(request, election_id: int) -> JsonResponse:
    tallying.publish_results(election_id=election_id, principal=request.principal)
    election = lifecycle.get_election(election_id=election_id, principal=request.principal)
    return success(
        {"election": serialize_election(election)},
        "Election results published successfully",
        status=201,
    )


@require_GET
@api_view
def election_can_vote(request, election_id: int) -> JsonResponse:
    principal = request.principal
    result = lifecycle.check_can_vote(
        election_id=election_id,
        user_id=principal.user_id,
        organization_id=principal.organization_id,
    )
    data: dict[str, object] = {"canVote": result.can_vote}
    if result.reason:
        data["reason"] = result.reason
    return success(data, "You can vote in this election" if result.can_vote else result.reason or "")
