from __future__ import annotations

from pathlib import Path
from typing import override

from django.core.management.base import BaseCommand, CommandError

from elections.models import Member
from elections.roster import RosterImportError, import_roster, read_roster_csv


class Command(BaseCommand):
    help = "Load the member roster from a CSV export (user_id, organization_id, name, role, is_active)."

    def add_arguments(self, parser) -> None:
        parser.add_argument("path", help="CSV file to import.")
        parser.add_argument(
            "--organization",
            default="",
            help="Organization for rows without an organization column.",
        )
        parser.add_argument(
            "--deactivate-missing",
            action="store_true",
            help="Deactivate members of the imported organizations that are not in the file.",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="Show what would be done without modifying the roster.",
        )

    @override
    def handle(self, *args, **options) -> None:
        path = Path(options["path"])
        organization_id = str(options.get("organization") or "").strip()
        dry_run: bool = bool(options.get("dry_run"))

        try:
            text = path.read_bytes().decode("utf-8-sig")
        except OSError as exc:
            raise CommandError(f"Cannot read {path}: {exc}") from exc

        try:
            rows = read_roster_csv(text)
        except RosterImportError as exc:
            raise CommandError(str(exc)) from exc

        if dry_run:
            user_ids = {str(row.get("user_id") or "").strip() for row in rows} - {""}
            known = Member.objects.filter(user_id__in=user_ids).count()
            self.stdout.write(
                f"[dry-run] Would import {len(rows)} row(s): {len(user_ids) - known} new, {known} existing."
            )
            return

        report = import_roster(
            rows,
            default_organization_id=organization_id,
            deactivate_missing=bool(options.get("deactivate_missing")),
        )
        for problem in report.skipped:
            self.stderr.write(f"Skipped {problem}")

        self.stdout.write(
            f"Created {report.created} member(s); updated {report.updated}; "
            f"deactivated {report.deactivated}; skipped {len(report.skipped)}."
        )
