from __future__ import annotations

import datetime

from django.test import SimpleTestCase

from elections.exceptions import ValidationError
from elections.forms import clean_election_create, clean_election_update, clean_vote


def _payload(**overrides) -> dict[str, object]:
    data: dict[str, object] = {
        "title": "Board election",
        "description": "Annual election of the board",
        "startDate": "2030-01-01T10:00:00Z",
        "endDate": "2030-01-02T10:00:00Z",
        "votingType": "ranked",
        "candidates": [{"name": "Alice"}, {"name": "Bob", "metadata": {"slate": "blue"}}],
    }
    data.update(overrides)
    return data


class ElectionFormTests(SimpleTestCase):
    def test_create_accepts_camel_case_payload(self) -> None:
        cleaned = clean_election_create(_payload())

        self.assertEqual(cleaned["voting_type"], "ranked")
        self.assertEqual(cleaned["start_datetime"], datetime.datetime(2030, 1, 1, 10, tzinfo=datetime.UTC))
        self.assertFalse(cleaned["is_anonymous"])
        self.assertEqual(cleaned["candidates"][1]["metadata"], {"slate": "blue"})
        self.assertEqual(cleaned["candidates"][0]["metadata"], {})

    def test_create_requires_two_candidates(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            clean_election_create(_payload(candidates=[{"name": "Alice"}]))
        self.assertEqual(ctx.exception.errors[0]["field"], "candidates")

    def test_create_rejects_unknown_voting_type(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            clean_election_create(_payload(votingType="approval"))
        self.assertEqual([e["field"] for e in ctx.exception.errors], ["voting_type"])

    def test_create_rejects_non_object_settings(self) -> None:
        with self.assertRaisesMessage(ValidationError, "Settings must be an object"):
            clean_election_create(_payload(settings=["a"]))

    def test_create_rejects_bad_candidate_photo(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            clean_election_create(_payload(candidates=[{"name": "Alice", "photo": "nope"}, {"name": "Bob"}]))
        self.assertEqual(ctx.exception.errors[0]["field"], "candidates[0].photo")

    def test_update_returns_only_present_keys(self) -> None:
        changes = clean_election_update({"title": "New title", "isAnonymous": True})
        self.assertEqual(changes, {"title": "New title", "is_anonymous": True})

    def test_update_passes_unknown_keys_through(self) -> None:
        changes = clean_election_update({"status": "active"})
        self.assertEqual(changes, {"status": "active"})

    def test_update_validates_present_fields(self) -> None:
        with self.assertRaises(ValidationError):
            clean_election_update({"title": "x"})


class VoteFormTests(SimpleTestCase):
    def test_accepts_either_key_style(self) -> None:
        self.assertEqual(clean_vote({"candidateId": 3})["candidate_id"], 3)
        self.assertEqual(clean_vote({"candidate_id": "4", "rank": 2}), {"candidate_id": 4, "rank": 2})

    def test_requires_candidate(self) -> None:
        with self.assertRaises(ValidationError) as ctx:
            clean_vote({})
        self.assertEqual(ctx.exception.errors[0]["field"], "candidate_id")
