from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django.db import transaction
from django.db.models import Count
from django.db.models.functions import TruncDate, TruncHour
from django.utils import timezone

from elections import events
from elections.events import EventPublisher, publish_on_commit
from elections.exceptions import ValidationError
from elections.lifecycle import load_election, transition
from elections.models import Candidate, Election, Member, Result, Vote
from elections.permissions import RESULTS_PREVIEW, RESULTS_PUBLISH, RESULTS_STATS, authorize
from elections.principals import Principal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CandidateResult:
    candidate_id: int
    candidate_name: str
    vote_count: int
    percentage: Decimal


@dataclass(frozen=True)
class ElectionResults:
    election_id: int
    election_title: str
    status: str
    total_votes: int
    total_eligible_voters: int
    participation_rate: Decimal
    candidates: list[CandidateResult] = field(default_factory=list)
    winner_id: int | None = None
    winner_name: str | None = None
    published_at: datetime.datetime | None = None

    def as_dict(self) -> dict[str, object]:
        return {
            "electionId": self.election_id,
            "electionTitle": self.election_title,
            "status": self.status,
            "totalVotes": self.total_votes,
            "totalEligibleVoters": self.total_eligible_voters,
            "participationRate": float(self.participation_rate),
            "candidates": [
                {
                    "candidateId": c.candidate_id,
                    "candidateName": c.candidate_name,
                    "voteCount": c.vote_count,
                    "percentage": float(c.percentage),
                }
                for c in self.candidates
            ],
            "winnerId": self.winner_id,
            "winnerName": self.winner_name,
            "publishedAt": self.published_at,
        }


def percentage(part: int, whole: int) -> Decimal:
    """Return part/whole*100 rounded half-up to two decimals.

    Integer arithmetic keeps the rounding exact, e.g. 1/8 -> 12.50 and
    1/3 -> 33.33, with no binary floating point in between.
    """

    if whole <= 0:
        return Decimal("0.00")
    quotient, remainder = divmod(part * 10000, whole)
    if remainder * 2 >= whole:
        quotient += 1
    return Decimal(quotient).scaleb(-2)


_FULL_TURNOUT = Decimal("100.00")


def participation_rate(total_votes: int, eligible: int) -> Decimal:
    """Turnout against the active roster, capped at 100.00.

    Voters missing from the roster still count as votes, so a partial roster
    would otherwise report more than full turnout.
    """

    return min(percentage(total_votes, eligible), _FULL_TURNOUT)


def pick_winner(candidates: list[Candidate], counts: dict[int, int]) -> Candidate | None:
    """Highest vote count wins; on a tie the lowest position wins.

    ``candidates`` must already be in ascending position order. The strict
    comparison keeps the first candidate seen at the maximum. No votes means
    no winner.
    """

    winner: Candidate | None = None
    best = 0
    for candidate in candidates:
        count = counts.get(candidate.id, 0)
        if count > best:
            best = count
            winner = candidate
    return winner


def _ordered_candidates(election: Election) -> list[Candidate]:
    return list(Candidate.objects.filter(election=election).order_by("position", "id"))


def count_eligible_voters(organization_id: str) -> int:
    # Live figure: membership changes move the participation rate of an
    # election until its result is published.
    return Member.objects.active_in_organization(organization_id).count()


def _tally(election: Election) -> ElectionResults:
    candidates = _ordered_candidates(election)
    counts = Vote.objects.counts_by_candidate(election=election)

    total_votes = sum(counts.values())
    eligible = count_eligible_voters(election.organization_id)
    winner = pick_winner(candidates, counts)

    rows = [
        CandidateResult(
            candidate_id=c.id,
            candidate_name=c.name,
            vote_count=counts.get(c.id, 0),
            percentage=percentage(counts.get(c.id, 0), total_votes),
        )
        for c in candidates
    ]
    # sorted() is stable, so equal counts keep position order.
    rows = sorted(rows, key=lambda r: -r.vote_count)

    return ElectionResults(
        election_id=election.id,
        election_title=election.title,
        status=election.status,
        total_votes=total_votes,
        total_eligible_voters=eligible,
        participation_rate=participation_rate(total_votes, eligible),
        candidates=rows,
        winner_id=winner.id if winner is not None else None,
        winner_name=winner.name if winner is not None else None,
    )


def calculate_results(*, election_id: int, principal: Principal | None = None) -> ElectionResults:
    """Tally the current votes. Pure: same rows in, same results out."""

    election = load_election(election_id, principal)
    return _tally(election)


def _stored_results(election: Election, result: Result) -> ElectionResults:
    candidates = _ordered_candidates(election)
    stored = result.results if isinstance(result.results, dict) else {}

    rows: list[CandidateResult] = []
    for c in candidates:
        entry = stored.get(str(c.id)) or {}
        rows.append(
            CandidateResult(
                candidate_id=c.id,
                candidate_name=c.name,
                vote_count=int(entry.get("voteCount") or 0),
                percentage=Decimal(str(entry.get("percentage") or "0.00")),
            )
        )
    rows = sorted(rows, key=lambda r: -r.vote_count)

    winner = next((c for c in candidates if c.id == result.winner_id), None)
    return ElectionResults(
        election_id=election.id,
        election_title=election.title,
        status=election.status,
        total_votes=result.total_votes,
        total_eligible_voters=result.total_eligible_voters,
        participation_rate=Decimal(result.participation_rate).quantize(Decimal("0.01")),
        candidates=rows,
        winner_id=winner.id if winner is not None else None,
        winner_name=winner.name if winner is not None else None,
        published_at=result.published_at,
    )


def _results_payload(results: ElectionResults) -> dict[str, dict[str, object]]:
    return {
        str(c.candidate_id): {"voteCount": c.vote_count, "percentage": str(c.percentage)}
        for c in results.candidates
    }


@transaction.atomic
def publish_results(
    *,
    election_id: int,
    principal: Principal,
    publisher: EventPublisher | None = None,
) -> Result:
    """Store the tally and mark the election PUBLISHED in one transaction.

    Either both writes commit or neither does. A failed commit leaves the
    election CLOSED, so calling this again is safe.
    """

    election = load_election(election_id, principal, lock=True)

    authorize(principal, RESULTS_PUBLISH)

    if election.status != Election.Status.closed:
        raise ValidationError("Only closed elections can have results published")

    results = _tally(election)
    winner = (
        Candidate.objects.filter(pk=results.winner_id).first() if results.winner_id is not None else None
    )

    result, _created = Result.objects.update_or_create(
        election=election,
        defaults={
            "total_votes": results.total_votes,
            "total_eligible_voters": results.total_eligible_voters,
            "participation_rate": results.participation_rate,
            "results": _results_payload(results),
            "winner": winner,
            "published_at": timezone.now(),
        },
    )

    transition(election, Election.Status.published)

    logger.info("Election results published: %s by user %s", election.id, principal.user_id)

    publish_on_commit(
        events.ELECTION_PUBLISHED,
        {"electionId": election.id, "title": election.title},
        publisher=publisher,
    )
    publish_on_commit(
        events.RESULTS_UPDATED,
        {"electionId": election.id, "results": _stored_results(election, result).as_dict()},
        publisher=publisher,
    )
    return result


def get_results(*, election_id: int, principal: Principal) -> ElectionResults:
    """Results as the principal is allowed to see them.

    Admin tiers see the stored result once published and a live tally
    before that. Voters only ever see the stored, published result.
    """

    election = load_election(election_id, principal)
    result = Result.objects.filter(election=election).first()

    if principal.is_admin:
        if election.status == Election.Status.published and result is not None:
            return _stored_results(election, result)
        return _tally(election)

    if election.status != Election.Status.published or result is None:
        raise ValidationError("Results are not yet published")
    return _stored_results(election, result)


def preview_results(*, election_id: int, principal: Principal) -> ElectionResults:
    election = load_election(election_id, principal)
    authorize(principal, RESULTS_PREVIEW)
    return _tally(election)


def get_stats(*, election_id: int, principal: Principal) -> dict[str, object]:
    election = load_election(election_id, principal)

    authorize(principal, RESULTS_STATS)

    votes = Vote.objects.for_election(election=election)
    counts = votes.counts_by_candidate(election=election)
    total_votes = sum(counts.values())
    eligible = count_eligible_voters(election.organization_id)

    votes_by_candidate = {
        str(c.id): counts.get(c.id, 0) for c in _ordered_candidates(election)
    }

    hourly_rows = (
        votes.annotate(bucket=TruncHour("voted_at", tzinfo=datetime.UTC))
        .values("bucket")
        .annotate(n=Count("id"))
        .order_by("bucket")
    )
    daily_rows = (
        votes.annotate(bucket=TruncDate("voted_at", tzinfo=datetime.UTC))
        .values("bucket")
        .annotate(n=Count("id"))
        .order_by("bucket")
    )

    hourly = {row["bucket"].astimezone(datetime.UTC).strftime("%Y-%m-%dT%H"): row["n"] for row in hourly_rows}
    daily = {row["bucket"].isoformat(): row["n"] for row in daily_rows}

    return {
        "electionId": election.id,
        "totalVotes": total_votes,
        "totalEligibleVoters": eligible,
        "participationRate": float(participation_rate(total_votes, eligible)),
        "votesByCandidate": votes_by_candidate,
        "votingTrend": {
            "hourly": hourly,
            "daily": daily,
        },
    }
