from __future__ import annotations

import datetime
from io import StringIO
from unittest.mock import patch

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from elections.models import Election
from elections.tests.factories import make_election


class AdvanceElectionsCommandTests(TestCase):
    def test_starts_due_scheduled_and_closes_ended_active(self) -> None:
        now = timezone.now()
        due, _ = make_election(status=Election.Status.scheduled)
        not_due, _ = make_election(
            status=Election.Status.scheduled,
            start=now + datetime.timedelta(days=1),
            end=now + datetime.timedelta(days=2),
        )
        ended, _ = make_election(
            status=Election.Status.active,
            start=now - datetime.timedelta(days=2),
            end=now - datetime.timedelta(minutes=1),
        )

        out = StringIO()
        with self.captureOnCommitCallbacks(execute=True):
            call_command("advance_elections", stdout=out)

        for election in (due, not_due, ended):
            election.refresh_from_db()
        self.assertEqual(due.status, Election.Status.active)
        self.assertEqual(not_due.status, Election.Status.scheduled)
        self.assertEqual(ended.status, Election.Status.closed)
        self.assertIn("Started 1 election(s); closed 1 election(s); failed 0.", out.getvalue())

    def test_scheduled_election_past_its_end_is_started_then_closed(self) -> None:
        now = timezone.now()
        election, _ = make_election(
            status=Election.Status.scheduled,
            start=now - datetime.timedelta(days=2),
            end=now - datetime.timedelta(days=1),
        )

        call_command("advance_elections", stdout=StringIO())

        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.closed)

    def test_failures_are_reported_and_other_elections_continue(self) -> None:
        broken, _ = make_election(status=Election.Status.scheduled, candidates=1)
        fine, _ = make_election(status=Election.Status.scheduled)

        out, err = StringIO(), StringIO()
        call_command("advance_elections", stdout=out, stderr=err)

        broken.refresh_from_db()
        fine.refresh_from_db()
        self.assertEqual(broken.status, Election.Status.scheduled)
        self.assertEqual(fine.status, Election.Status.active)
        self.assertIn(f"Failed to start election {broken.id}", err.getvalue())
        self.assertIn("failed 1.", out.getvalue())

    def test_dry_run_changes_nothing(self) -> None:
        election, _ = make_election(status=Election.Status.scheduled)

        out = StringIO()
        with patch("elections.management.commands.advance_elections.start_election") as start:
            call_command("advance_elections", "--dry-run", stdout=out)

        start.assert_not_called()
        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.scheduled)
        self.assertIn("[dry-run] Would start 1 election(s) and close 0 election(s).", out.getvalue())
