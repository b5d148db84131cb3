from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from django.db import transaction
from django.utils import timezone

from elections import events
from elections.events import EventPublisher, publish_on_commit
from elections.exceptions import NotFoundError, ValidationError
from elections.models import Candidate, Election, Vote
from elections.permissions import (
    ELECTION_CLOSE,
    ELECTION_CREATE,
    ELECTION_DELETE,
    ELECTION_START,
    ELECTION_UPDATE,
    authorize,
)
from elections.principals import Principal

logger = logging.getLogger(__name__)

MIN_CANDIDATES = 2

# Forward-only. SCHEDULED -> SCHEDULED is the idempotent re-entry of start().
ALLOWED_TRANSITIONS: Mapping[str, frozenset[str]] = {
    Election.Status.draft: frozenset({Election.Status.scheduled, Election.Status.active}),
    Election.Status.scheduled: frozenset({Election.Status.scheduled, Election.Status.active}),
    Election.Status.active: frozenset({Election.Status.closed}),
    Election.Status.closed: frozenset({Election.Status.published}),
    Election.Status.published: frozenset(),
}

EDITABLE_STATUSES: frozenset[str] = frozenset({Election.Status.draft, Election.Status.scheduled})
DELETABLE_STATUSES: frozenset[str] = EDITABLE_STATUSES

UPDATABLE_FIELDS: frozenset[str] = frozenset(
    {
        "title",
        "description",
        "start_datetime",
        "end_datetime",
        "voting_type",
        "is_anonymous",
        "settings",
    }
)


@dataclass(frozen=True)
class CanVote:
    can_vote: bool
    reason: str | None = None


def load_election(
    election_id: int,
    principal: Principal | None = None,
    *,
    lock: bool = False,
) -> Election:
    """Read the current persisted election.

    Elections of another organization are reported as missing so callers
    cannot probe for them. ``lock`` must only be used inside a transaction.
    """

    qs = Election.objects.all()
    if lock:
        qs = qs.select_for_update()
    election = qs.filter(pk=election_id).first()
    if election is None:
        raise NotFoundError("Election not found")
    if principal is not None and election.organization_id != principal.organization_id:
        raise NotFoundError("Election not found")
    return election


def transition(election: Election, to_status: str) -> None:
    current = election.status
    if to_status not in ALLOWED_TRANSITIONS.get(current, frozenset()):
        raise ValidationError(f"Cannot move election from {current} to {to_status}")
    election.status = to_status
    election.save(update_fields=["status", "updated_at"])


def _validate_dates(*, start: datetime.datetime, end: datetime.datetime, require_future_start: bool) -> None:
    if start >= end:
        raise ValidationError("End date must be after start date")
    if require_future_start and start < timezone.now():
        raise ValidationError("Start date cannot be in the past")


@transaction.atomic
def create_election(
    *,
    principal: Principal,
    title: str,
    start_datetime: datetime.datetime,
    end_datetime: datetime.datetime,
    candidates: Iterable[Mapping[str, object]],
    description: str = "",
    voting_type: str = Election.VotingType.single_choice,
    is_anonymous: bool = False,
    settings: Mapping[str, object] | None = None,
) -> Election:
    authorize(principal, ELECTION_CREATE)

    _validate_dates(start=start_datetime, end=end_datetime, require_future_start=True)

    candidate_rows = list(candidates or [])
    if len(candidate_rows) < MIN_CANDIDATES:
        raise ValidationError("Election must have at least 2 candidates")

    if voting_type not in Election.VotingType.values:
        raise ValidationError("Invalid voting type")

    election = Election.objects.create(
        title=title,
        description=description,
        start_datetime=start_datetime,
        end_datetime=end_datetime,
        voting_type=voting_type,
        is_anonymous=is_anonymous,
        organization_id=principal.organization_id,
        created_by=principal.user_id,
        status=Election.Status.draft,
        settings=dict(settings or {}),
    )

    Candidate.objects.bulk_create(
        [
            Candidate(
                election=election,
                name=str(row.get("name") or ""),
                description=str(row.get("description") or ""),
                photo=str(row.get("photo") or ""),
                position=int(row["position"]) if row.get("position") is not None else index,
                metadata=dict(row.get("metadata") or {}),
            )
            for index, row in enumerate(candidate_rows)
        ]
    )

    logger.info("Election created: %s by user %s", election.id, principal.user_id)
    return election


@transaction.atomic
def update_election(*, election_id: int, principal: Principal, changes: Mapping[str, object]) -> Election:
    election = load_election(election_id, principal, lock=True)

    authorize(principal, ELECTION_UPDATE, owner_id=election.created_by)

    if election.status not in EDITABLE_STATUSES:
        raise ValidationError("Cannot update an active, closed, or published election")

    if "status" in changes:
        raise ValidationError("Election status can only change through start, close or publish")

    unknown = sorted(set(changes) - UPDATABLE_FIELDS)
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

    if "start_datetime" in changes or "end_datetime" in changes:
        start = changes.get("start_datetime") or election.start_datetime
        end = changes.get("end_datetime") or election.end_datetime
        _validate_dates(
            start=start,
            end=end,
            require_future_start=election.status == Election.Status.draft,
        )

    if "voting_type" in changes and changes["voting_type"] not in Election.VotingType.values:
        raise ValidationError("Invalid voting type")

    update_fields: list[str] = []
    for field in sorted(UPDATABLE_FIELDS):
        if field not in changes:
            continue
        value = changes[field]
        if value is None:
            continue
        if field == "settings":
            value = dict(value)
        setattr(election, field, value)
        update_fields.append(field)

    if update_fields:
        election.save(update_fields=[*update_fields, "updated_at"])

    logger.info("Election updated: %s by user %s", election.id, principal.user_id)
    return election


@transaction.atomic
def start_election(
    *,
    election_id: int,
    principal: Principal,
    publisher: EventPublisher | None = None,
) -> Election:
    """Schedule the election, or open it for voting once its start has passed."""

    election = load_election(election_id, principal, lock=True)

    authorize(principal, ELECTION_START)

    if election.status not in EDITABLE_STATUSES:
        raise ValidationError("Election must be in DRAFT or SCHEDULED status to start")

    if election.candidates.count() < MIN_CANDIDATES:
        raise ValidationError("Election must have at least 2 candidates to start")

    if election.start_datetime > timezone.now():
        transition(election, Election.Status.scheduled)
        logger.info("Election scheduled: %s by user %s", election.id, principal.user_id)
        event_name = events.ELECTION_SCHEDULED
    else:
        transition(election, Election.Status.active)
        logger.info("Election started: %s by user %s", election.id, principal.user_id)
        event_name = events.ELECTION_STARTED

    publish_on_commit(event_name, {"electionId": election.id, "title": election.title}, publisher=publisher)
    return election


@transaction.atomic
def close_election(
    *,
    election_id: int,
    principal: Principal,
    publisher: EventPublisher | None = None,
) -> Election:
    # The row lock makes close() wait for in-flight ballots, which hold the
    # same lock, so no vote lands after the status flips.
    election = load_election(election_id, principal, lock=True)

    authorize(principal, ELECTION_CLOSE)

    if election.status != Election.Status.active:
        raise ValidationError("Only active elections can be closed")

    transition(election, Election.Status.closed)
    logger.info("Election closed: %s by user %s", election.id, principal.user_id)

    publish_on_commit(
        events.ELECTION_CLOSED,
        {"electionId": election.id, "title": election.title},
        publisher=publisher,
    )
    return election


@transaction.atomic
def delete_election(*, election_id: int, principal: Principal) -> None:
    election = load_election(election_id, principal, lock=True)

    authorize(principal, ELECTION_DELETE)

    if Vote.objects.for_election(election=election).exists():
        raise ValidationError("Cannot delete an election that has votes")

    if election.status == Election.Status.active:
        raise ValidationError("Cannot delete an active election")

    if election.status not in DELETABLE_STATUSES:
        raise ValidationError("Only draft or scheduled elections can be deleted")

    election.delete()
    logger.info("Election deleted: %s by user %s", election_id, principal.user_id)


def check_can_vote(*, election_id: int, user_id: str, organization_id: str) -> CanVote:
    """Read-only probe for the voting UI; never raises for business rules."""

    election = Election.objects.filter(pk=election_id).first()
    if election is None:
        return CanVote(False, "Election not found")

    if election.organization_id != organization_id:
        return CanVote(False, "You do not belong to this organization")

    if election.status != Election.Status.active:
        return CanVote(False, "Election is not active")

    now = timezone.now()
    if now < election.start_datetime:
        return CanVote(False, "Election has not started yet")
    if now > election.end_datetime:
        return CanVote(False, "Election has ended")

    if Vote.objects.filter(election=election, user_id=user_id).exists():
        return CanVote(False, "You have already voted in this election")

    return CanVote(True)


def get_election(*, election_id: int, principal: Principal) -> Election:
    load_election(election_id, principal)
    return (
        Election.objects.with_vote_count()
        .prefetch_related("candidates")
        .get(pk=election_id)
    )


def list_elections(
    *,
    principal: Principal,
    status: str | None = None,
    created_by: str | None = None,
    start_from: datetime.datetime | None = None,
    start_to: datetime.datetime | None = None,
) -> list[Election]:
    qs = Election.objects.for_organization(principal.organization_id).with_vote_count()
    if status:
        if status not in Election.Status.values:
            raise ValidationError("Invalid status filter")
        qs = qs.filter(status=status)
    if created_by:
        qs = qs.filter(created_by=created_by)
    if start_from is not None:
        qs = qs.filter(start_datetime__gte=start_from)
    if start_to is not None:
        qs = qs.filter(start_datetime__lte=start_to)
    return list(qs.prefetch_related("candidates"))
