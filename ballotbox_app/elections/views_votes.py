from __future__ import annotations

from django.http import JsonResponse
from django.views.decorators.http import require_GET, require_POST

from elections import voting
from elections.api import api_view, parse_json_body, success
from elections.forms import clean_vote
from elections.lifecycle import load_election
from elections.models import Vote


def _client_ip(request) -> str | None:
    forwarded = str(request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.META.get("REMOTE_ADDR") or None


def _own_vote(vote: Vote) -> dict[str, object]:
    return {
        "id": vote.id,
        "electionId": vote.election_id,
        "electionTitle": vote.election.title,
        "candidateId": vote.candidate_id,
        "candidateName": vote.candidate.name,
        "rank": vote.rank,
        "votedAt": vote.voted_at,
    }


@require_POST
@api_view
def vote_cast(request, election_id: int) -> JsonResponse:
    cleaned = clean_vote(parse_json_body(request))
    vote = voting.cast_vote(
        principal=request.principal,
        election_id=election_id,
        candidate_id=cleaned["candidate_id"],
        rank=cleaned.get("rank"),
        ip_address=_client_ip(request),
        user_agent=str(request.META.get("HTTP_USER_AGENT") or ""),
    )
    return success(
        {"vote": {"id": vote.id, "electionId": vote.election_id, "votedAt": vote.voted_at}},
        "Vote cast successfully",
        status=201,
    )


@require_GET
@api_view
def my_vote(request, election_id: int) -> JsonResponse:
    load_election(election_id, request.principal)
    status = voting.check_if_user_voted(user_id=request.principal.user_id, election_id=election_id)
    data: dict[str, object] = {"hasVoted": status.has_voted}
    if status.vote is not None:
        data["vote"] = _own_vote(status.vote)
    return success(
        data,
        "You have voted in this election" if status.has_voted else "You have not voted yet",
    )


@require_GET
@api_view
def vote_count(request, election_id: int) -> JsonResponse:
    count = voting.get_vote_count(election_id=election_id, principal=request.principal)
    return success({"electionId": election_id, "totalVotes": count}, "Vote count retrieved successfully")


@require_GET
@api_view
def election_votes(request, election_id: int) -> JsonResponse:
    include_details = str(request.GET.get("includeVoterDetails") or "").strip().lower() in {"1", "true", "yes"}
    votes = voting.get_election_votes(
        election_id=election_id,
        principal=request.principal,
        include_voter_details=include_details,
    )
    return success({"votes": votes, "total": len(votes)}, "Votes retrieved successfully")


@require_GET
@api_view
def my_votes(request) -> JsonResponse:
    history = voting.get_user_vote_history(user_id=request.principal.user_id)
    return success({"votes": history}, "Vote history retrieved successfully")


@require_GET
@api_view
def vote_detail(request, vote_id: int) -> JsonResponse:
    vote = voting.get_vote(vote_id=vote_id, principal=request.principal)
    return success({"vote": vote}, "Vote retrieved successfully")
