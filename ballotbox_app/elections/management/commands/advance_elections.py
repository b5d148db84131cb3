from __future__ import annotations

from typing import override

from django.core.management.base import BaseCommand
from django.utils import timezone

from elections.exceptions import ElectionError
from elections.lifecycle import close_election, start_election
from elections.models import Election
from elections.principals import system_principal


class Command(BaseCommand):
    help = "Open scheduled elections whose start has passed and close active elections whose end has passed."

    def add_arguments(self, parser) -> None:
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be done without modifying elections.",
        )

    @override
    def handle(self, *args, **options) -> None:
        dry_run: bool = bool(options.get("dry_run"))

        now = timezone.now()

        to_start = list(
            Election.objects.filter(status=Election.Status.scheduled, start_datetime__lte=now).only(
                "id", "organization_id"
            )
        )
        to_close = list(
            Election.objects.filter(status=Election.Status.active, end_datetime__lte=now).only(
                "id", "organization_id"
            )
        )

        if dry_run:
            self.stdout.write(
                f"[dry-run] Would start {len(to_start)} election(s) and close {len(to_close)} election(s)."
            )
            return

        started = 0
        closed = 0
        failed = 0

        for election in to_start:
            try:
                start_election(election_id=election.id, principal=system_principal(election.organization_id))
                started += 1
            except ElectionError as exc:
                failed += 1
                self.stderr.write(f"Failed to start election {election.id}: {exc.message}")

        # Elections whose whole window has passed while scheduled are closed in the same run.
        to_close = list(
            Election.objects.filter(status=Election.Status.active, end_datetime__lte=now).only(
                "id", "organization_id"
            )
        )

        for election in to_close:
            try:
                close_election(election_id=election.id, principal=system_principal(election.organization_id))
                closed += 1
            except ElectionError as exc:
                failed += 1
                self.stderr.write(f"Failed to close election {election.id}: {exc.message}")

        self.stdout.write(f"Started {started} election(s); closed {closed} election(s); failed {failed}.")
