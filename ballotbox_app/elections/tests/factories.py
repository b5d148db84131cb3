from __future__ import annotations

import datetime

from django.utils import timezone

from elections.models import Candidate, Election, Member, Role, Vote
from elections.principals import Principal

ORG = "org-1"
OTHER_ORG = "org-2"


def principal(user_id: str = "voter1", *, role: str = Role.voter, organization_id: str = ORG) -> Principal:
    return Principal(user_id=user_id, organization_id=organization_id, role=role)


def chairman(user_id: str = "chair", *, organization_id: str = ORG) -> Principal:
    return principal(user_id, role=Role.chairman, organization_id=organization_id)


def make_election(
    *,
    status: str = Election.Status.active,
    organization_id: str = ORG,
    created_by: str = "chair",
    candidates: int = 2,
    is_anonymous: bool = False,
    start: datetime.datetime | None = None,
    end: datetime.datetime | None = None,
    title: str = "Board election",
) -> tuple[Election, list[Candidate]]:
    now = timezone.now()
    election = Election.objects.create(
        title=title,
        description="Annual board election",
        start_datetime=start or now - datetime.timedelta(days=1),
        end_datetime=end or now + datetime.timedelta(days=1),
        status=status,
        organization_id=organization_id,
        created_by=created_by,
        is_anonymous=is_anonymous,
    )
    rows = [
        Candidate.objects.create(election=election, name=f"Candidate {chr(ord('A') + i)}", position=i + 1)
        for i in range(candidates)
    ]
    return election, rows


def make_members(count: int, *, organization_id: str = ORG, prefix: str = "member") -> list[Member]:
    return [
        Member.objects.create(user_id=f"{prefix}{i}", organization_id=organization_id, name=f"Member {i}")
        for i in range(count)
    ]


def add_votes(election: Election, candidate: Candidate, count: int, *, prefix: str = "v") -> list[Vote]:
    start = Vote.objects.filter(election=election).count()
    return [
        Vote.objects.create(election=election, candidate=candidate, user_id=f"{prefix}{start + i}")
        for i in range(count)
    ]
