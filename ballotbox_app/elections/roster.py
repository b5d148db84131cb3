from __future__ import annotations

import csv
import io
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from django.db import transaction

from elections.models import Member, Role
from elections.principals import SYSTEM_USER_ID, Principal

logger = logging.getLogger(__name__)


def remember_principal(principal: Principal) -> Member | None:
    """Keep the roster entry of an authenticated principal current.

    The roster is the denominator of the participation rate, so every
    principal the identity service vouches for is counted in its
    organization. Names are left alone; only the CSV import sets them.
    """

    if principal.user_id == SYSTEM_USER_ID:
        return None

    member, created = Member.objects.get_or_create(
        user_id=principal.user_id,
        defaults={
            "organization_id": principal.organization_id,
            "role": principal.role,
            "is_active": principal.is_active,
        },
    )
    if created:
        logger.info("Roster: added user=%s org=%s", member.user_id, member.organization_id)
        return member

    changed: list[str] = []
    for name, value in (
        ("organization_id", principal.organization_id),
        ("role", principal.role),
        ("is_active", principal.is_active),
    ):
        if getattr(member, name) != value:
            setattr(member, name, value)
            changed.append(name)
    if changed:
        member.save(update_fields=changed)
        logger.info("Roster: updated user=%s fields=%s", member.user_id, ",".join(changed))
    return member


def _norm_header(value: str) -> str:
    return "".join(ch for ch in value.strip().lower() if ch.isalnum())


def _normalize_str(value: object) -> str:
    return str(value or "").strip()


def _parse_bool(value: object, *, default: bool = True) -> bool:
    normalized = _normalize_str(value).lower()
    if not normalized:
        return default
    return normalized in {"1", "y", "yes", "true", "t", "active"}


_HEADER_ALIASES: dict[str, str] = {
    "userid": "user_id",
    "user": "user_id",
    "username": "user_id",
    "organizationid": "organization_id",
    "organization": "organization_id",
    "org": "organization_id",
    "name": "name",
    "displayname": "name",
    "role": "role",
    "isactive": "is_active",
    "active": "is_active",
}


class RosterImportError(ValueError):
    pass


@dataclass
class RosterImportReport:
    created: int = 0
    updated: int = 0
    deactivated: int = 0
    skipped: list[str] = field(default_factory=list)


def read_roster_csv(text: str) -> list[dict[str, object]]:
    """Parse a roster export into member rows.

    Headers are matched loosely ("User ID", "userId", "user_id"). Rows
    without a user id or organization are skipped by the importer.
    """

    if not text.strip():
        return []

    try:
        dialect = csv.Sniffer().sniff(text[: 64 * 1024], delimiters=",;\t|")
    except csv.Error:
        dialect = csv.excel

    reader = csv.reader(io.StringIO(text), dialect)
    headers = next(reader, [])
    columns = [_HEADER_ALIASES.get(_norm_header(h)) for h in headers]
    if "user_id" not in columns:
        raise RosterImportError("Roster CSV needs a user id column")

    rows: list[dict[str, object]] = []
    for raw in reader:
        if not any(cell.strip() for cell in raw):
            continue
        row: dict[str, object] = {}
        for column, cell in zip(columns, raw, strict=False):
            if column is not None:
                row[column] = cell
        rows.append(row)
    return rows


@transaction.atomic
def import_roster(
    rows: Iterable[dict[str, object]],
    *,
    default_organization_id: str = "",
    deactivate_missing: bool = False,
) -> RosterImportReport:
    """Upsert members from roster rows.

    With ``deactivate_missing`` every active member of an imported
    organization that is absent from the rows is marked inactive.
    """

    report = RosterImportReport()
    seen: dict[str, set[str]] = {}

    for index, row in enumerate(rows, start=2):
        user_id = _normalize_str(row.get("user_id"))
        organization_id = _normalize_str(row.get("organization_id")) or default_organization_id
        if not user_id or not organization_id:
            report.skipped.append(f"line {index}: missing user id or organization")
            continue

        defaults: dict[str, object] = {
            "organization_id": organization_id,
            "is_active": _parse_bool(row.get("is_active")),
        }
        # Blank roles and missing columns leave the stored value alone.
        role = _normalize_str(row.get("role")).lower()
        if role:
            if role not in Role.values:
                report.skipped.append(f"line {index}: unknown role {role!r}")
                continue
            defaults["role"] = role
        if "name" in row:
            defaults["name"] = _normalize_str(row["name"])

        _member, created = Member.objects.update_or_create(user_id=user_id, defaults=defaults)
        if created:
            report.created += 1
        else:
            report.updated += 1
        seen.setdefault(organization_id, set()).add(user_id)

    if deactivate_missing:
        for organization_id, user_ids in seen.items():
            report.deactivated += (
                Member.objects.active_in_organization(organization_id)
                .exclude(user_id__in=user_ids)
                .update(is_active=False)
            )

    logger.info(
        "Roster import: created=%s updated=%s deactivated=%s skipped=%s",
        report.created,
        report.updated,
        report.deactivated,
        len(report.skipped),
    )
    return report
