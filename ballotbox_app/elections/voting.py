from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import IntegrityError, transaction
from django.utils import timezone

from elections import events
from elections.events import EventPublisher, publish_on_commit
from elections.exceptions import (
    AuthorizationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from elections.lifecycle import load_election
from elections.models import Candidate, Election, Member, Vote
from elections.permissions import VOTES_LIST, authorize
from elections.principals import Principal

logger = logging.getLogger(__name__)

ALREADY_VOTED = "You have already voted in this election"


@dataclass(frozen=True)
class VoteStatus:
    has_voted: bool
    vote: Vote | None = None


@transaction.atomic
def cast_vote(
    *,
    principal: Principal,
    election_id: int,
    candidate_id: int,
    rank: int | None = None,
    ip_address: str | None = None,
    user_agent: str = "",
    publisher: EventPublisher | None = None,
) -> Vote:
    """Record the principal's single ballot in an active election.

    The "already voted" read below only produces a friendly message; the
    unique constraint on (election, user_id) is what rejects a concurrent
    duplicate.
    """

    # Same row lock close_election() takes, so a ballot and a close cannot
    # interleave.
    election = Election.objects.select_for_update().filter(pk=election_id).first()
    if election is None:
        raise NotFoundError("Election not found")

    if election.organization_id != principal.organization_id:
        raise AuthorizationError("You do not belong to this organization")

    if election.status != Election.Status.active:
        raise ValidationError("Election is not active")

    now = timezone.now()
    if now < election.start_datetime:
        raise ValidationError("Election has not started yet")
    if now > election.end_datetime:
        raise ValidationError("Election has ended")

    if Vote.objects.filter(election=election, user_id=principal.user_id).exists():
        raise ValidationError(ALREADY_VOTED)

    candidate = Candidate.objects.filter(election=election, pk=candidate_id).first()
    if candidate is None:
        raise ValidationError("Invalid candidate for this election")

    if rank is not None and rank < 1:
        raise ValidationError("Rank must be a positive integer")

    try:
        with transaction.atomic():
            vote = Vote.objects.create(
                election=election,
                candidate=candidate,
                user_id=principal.user_id,
                rank=rank,
                ip_address=ip_address or None,
                user_agent=user_agent or "",
            )
    except IntegrityError as exc:
        raise ConflictError(ALREADY_VOTED) from exc

    total_votes = Vote.objects.for_election(election=election).count()

    logger.info("Vote cast: user=%s election=%s", principal.user_id, election.id)

    publish_on_commit(
        events.VOTE_CAST,
        {"electionId": election.id, "totalVotes": total_votes},
        publisher=publisher,
    )
    return vote


def check_if_user_voted(*, user_id: str, election_id: int) -> VoteStatus:
    vote = (
        Vote.objects.select_related("candidate", "election")
        .filter(election_id=election_id, user_id=user_id)
        .first()
    )
    if vote is None:
        return VoteStatus(has_voted=False)
    return VoteStatus(has_voted=True, vote=vote)


def get_vote_count(*, election_id: int, principal: Principal | None = None) -> int:
    election = load_election(election_id, principal)
    return Vote.objects.for_election(election=election).count()


def get_user_vote_history(*, user_id: str) -> list[dict[str, object]]:
    votes = (
        Vote.objects.filter(user_id=user_id)
        .select_related("election", "candidate")
        .order_by("-voted_at", "-id")
    )
    return [
        {
            "id": vote.id,
            "electionId": vote.election_id,
            "electionTitle": vote.election.title,
            "candidateId": vote.candidate_id,
            "candidateName": vote.candidate.name,
            "votedAt": vote.voted_at,
            "rank": vote.rank,
        }
        for vote in votes
    ]


def serialize_vote(vote: Vote, *, include_voter: bool, voter_names: dict[str, str] | None = None) -> dict[str, object]:
    """Build the admin view of a vote.

    Voter identity is only added when ``include_voter`` is true; anonymous
    elections must never reach this with include_voter set.
    """

    row: dict[str, object] = {
        "id": vote.id,
        "electionId": vote.election_id,
        "candidateId": vote.candidate_id,
        "candidateName": vote.candidate.name,
        "rank": vote.rank,
        "votedAt": vote.voted_at,
    }
    if include_voter:
        row["voter"] = {
            "userId": vote.user_id,
            "name": (voter_names or {}).get(vote.user_id, ""),
        }
    return row


def _voter_names(user_ids: set[str]) -> dict[str, str]:
    if not user_ids:
        return {}
    return dict(Member.objects.filter(user_id__in=user_ids).values_list("user_id", "name"))


def get_election_votes(
    *,
    election_id: int,
    principal: Principal,
    include_voter_details: bool = False,
) -> list[dict[str, object]]:
    election = load_election(election_id, principal)

    authorize(principal, VOTES_LIST)

    # Anonymity wins over whatever the caller asked for.
    include_voter = include_voter_details and not election.is_anonymous

    votes = list(
        Vote.objects.for_election(election=election)
        .select_related("candidate")
        .order_by("-voted_at", "-id")
    )
    names = _voter_names({v.user_id for v in votes}) if include_voter else {}
    return [serialize_vote(v, include_voter=include_voter, voter_names=names) for v in votes]


def get_vote(*, vote_id: int, principal: Principal) -> dict[str, object]:
    vote = (
        Vote.objects.select_related("election", "candidate")
        .filter(pk=vote_id, election__organization_id=principal.organization_id)
        .first()
    )
    if vote is None:
        raise NotFoundError("Vote not found")

    authorize(principal, VOTES_LIST)

    include_voter = not vote.election.is_anonymous
    names = _voter_names({vote.user_id}) if include_voter else {}
    return serialize_vote(vote, include_voter=include_voter, voter_names=names)
