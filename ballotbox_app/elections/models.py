from __future__ import annotations

from typing import override

from django.db import models
from django.db.models import Count


class Role(models.TextChoices):
    chairman = "chairman", "Chairman"
    secretary = "secretary", "Secretary"
    executive = "executive", "Executive"
    voter = "voter", "Voter"


class MemberQuerySet(models.QuerySet["Member"]):
    def active_in_organization(self, organization_id: str) -> MemberQuerySet:
        return self.filter(organization_id=organization_id, is_active=True)


class Member(models.Model):
    """Roster entry mirrored from the identity service.

    Only used to count eligible voters; authentication never reads it.
    """

    user_id = models.CharField(max_length=255, unique=True)
    organization_id = models.CharField(max_length=255, db_index=True)
    name = models.CharField(max_length=255, blank=True, default="")
    role = models.CharField(max_length=16, choices=Role.choices, default=Role.voter)
    is_active = models.BooleanField(default=True)

    objects = MemberQuerySet.as_manager()

    class Meta:
        ordering = ("organization_id", "user_id")
        indexes = [
            models.Index(fields=["organization_id", "is_active"], name="member_org_active"),
        ]

    def __str__(self) -> str:
        return f"{self.user_id} ({self.organization_id})"


class ElectionQuerySet(models.QuerySet["Election"]):
    def for_organization(self, organization_id: str) -> ElectionQuerySet:
        return self.filter(organization_id=organization_id)

    def with_vote_count(self) -> ElectionQuerySet:
        return self.annotate(vote_count=Count("votes", distinct=True))


class Election(models.Model):
    class Status(models.TextChoices):
        draft = "draft", "Draft"
        scheduled = "scheduled", "Scheduled"
        active = "active", "Active"
        closed = "closed", "Closed"
        published = "published", "Published"

    class VotingType(models.TextChoices):
        single_choice = "single_choice", "Single choice"
        multiple_choice = "multiple_choice", "Multiple choice"
        ranked = "ranked", "Ranked"

    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    start_datetime = models.DateTimeField()
    end_datetime = models.DateTimeField()
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.draft, db_index=True)
    voting_type = models.CharField(max_length=32, choices=VotingType.choices, default=VotingType.single_choice)
    is_anonymous = models.BooleanField(default=False)
    organization_id = models.CharField(max_length=255, db_index=True)
    # Opaque user id from the principal provider.
    created_by = models.CharField(max_length=255)
    settings = models.JSONField(blank=True, default=dict)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = ElectionQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at", "id")
        constraints = [
            models.CheckConstraint(
                condition=models.Q(start_datetime__lt=models.F("end_datetime")),
                name="election_start_before_end",
            ),
        ]

    def __str__(self) -> str:
        return self.title


class Candidate(models.Model):
    election = models.ForeignKey(Election, on_delete=models.CASCADE, related_name="candidates")
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    photo = models.URLField(blank=True, default="", max_length=2048)
    position = models.PositiveIntegerField(default=0)
    metadata = models.JSONField(blank=True, default=dict)

    class Meta:
        ordering = ("position", "id")

    def __str__(self) -> str:
        return f"{self.name} ({self.election_id})"


class VoteQuerySet(models.QuerySet["Vote"]):
    def for_election(self, *, election: Election | int) -> VoteQuerySet:
        return self.filter(election=election)

    def counts_by_candidate(self, *, election: Election | int) -> dict[int, int]:
        rows = (
            self.for_election(election=election)
            .values("candidate_id")
            .annotate(n=Count("id"))
            .values_list("candidate_id", "n")
        )
        return {int(candidate_id): int(n) for candidate_id, n in rows}

    @override
    def delete(self):
        raise TypeError("votes are append-only")

    @override
    def update(self, **kwargs):
        raise TypeError("votes are append-only")


class Vote(models.Model):
    # PROTECT keeps an election with ballots from ever being hard-deleted.
    election = models.ForeignKey(Election, on_delete=models.PROTECT, related_name="votes")
    candidate = models.ForeignKey(Candidate, on_delete=models.PROTECT, related_name="votes")
    user_id = models.CharField(max_length=255, db_index=True)
    rank = models.PositiveIntegerField(blank=True, null=True)
    voted_at = models.DateTimeField(auto_now_add=True)

    # Audit metadata only; never used when counting.
    ip_address = models.GenericIPAddressField(blank=True, null=True)
    user_agent = models.TextField(blank=True, default="")

    objects = VoteQuerySet.as_manager()

    class Meta:
        ordering = ("-voted_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=["election", "user_id"],
                name="uniq_vote_election_user",
            ),
        ]
        indexes = [
            models.Index(fields=["election", "voted_at"], name="vote_el_at"),
        ]

    def __str__(self) -> str:
        return f"vote:{self.election_id}:{self.pk}"

    @override
    def save(self, *args, **kwargs) -> None:
        if not self._state.adding:
            raise TypeError("votes are append-only")
        super().save(*args, **kwargs)

    @override
    def delete(self, *args, **kwargs):
        raise TypeError("votes are append-only")


class Result(models.Model):
    """Published tally; always recomputable from the Vote rows."""

    election = models.OneToOneField(Election, on_delete=models.CASCADE, related_name="result")
    total_votes = models.PositiveIntegerField(default=0)
    total_eligible_voters = models.PositiveIntegerField(default=0)
    participation_rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    # {"<candidate id>": {"voteCount": int, "percentage": "12.50"}}
    results = models.JSONField(blank=True, default=dict)
    winner = models.ForeignKey(
        Candidate,
        on_delete=models.SET_NULL,
        blank=True,
        null=True,
        related_name="+",
    )
    published_at = models.DateTimeField()

    def __str__(self) -> str:
        return f"result:{self.election_id}"
