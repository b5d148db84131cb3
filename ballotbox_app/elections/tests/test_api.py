from __future__ import annotations

import datetime
import json
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone

from elections.models import Election, Member, Role, Vote
from elections.principals import Principal, issue_principal_token
from elections.tests.factories import OTHER_ORG, add_votes, chairman, make_election, principal


def _auth(p: Principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_principal_token(p)}"}


class ApiEnvelopeTests(TestCase):
    def test_missing_credential_is_401(self) -> None:
        resp = self.client.get(reverse("api-elections"))
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(
            resp.json(),
            {"success": False, "error": "AuthenticationError", "message": "No token provided"},
        )

    def test_tampered_credential_is_401(self) -> None:
        resp = self.client.get(reverse("api-elections"), headers={"Authorization": "Bearer not-a-token"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Invalid token")

    def test_inactive_principal_is_403(self) -> None:
        inactive = Principal(user_id="gone", organization_id="org-1", role=Role.voter, is_active=False)
        resp = self.client.get(reverse("api-elections"), headers=_auth(inactive))
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["message"], "Account is deactivated")

    def test_health_endpoints_ignore_bad_credentials(self) -> None:
        resp = self.client.get("/healthz", headers={"Authorization": "Bearer nope"})
        self.assertEqual(resp.status_code, 200)
        resp = self.client.get("/readyz/")
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.content, b"ok")

    def test_readyz_reports_unavailable_store(self) -> None:
        with patch("elections.views_health.Election") as model:
            model.objects.only.side_effect = DatabaseError("down")
            resp = self.client.get("/readyz/")
        self.assertEqual(resp.status_code, 503)

    def test_malformed_json_is_400(self) -> None:
        resp = self.client.post(
            reverse("api-elections"),
            data="{not json",
            content_type="application/json",
            headers=_auth(chairman()),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["error"], "ValidationError")

    def test_storage_failure_is_500(self) -> None:
        with patch("elections.views_elections.lifecycle.list_elections", side_effect=DatabaseError("boom")):
            with self.assertLogs("elections.api", level="ERROR"):
                resp = self.client.get(reverse("api-elections"), headers=_auth(chairman()))
        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.json()["message"], "Internal server error")

    def test_wrong_method_is_405(self) -> None:
        election, _ = make_election()
        resp = self.client.get(reverse("api-election-start", args=[election.id]), headers=_auth(chairman()))
        self.assertEqual(resp.status_code, 405)


class ElectionApiTests(TestCase):
    def _create_payload(self) -> dict[str, object]:
        now = timezone.now()
        return {
            "title": "Board election",
            "description": "Annual election of the board",
            "startDate": (now + datetime.timedelta(days=1)).isoformat(),
            "endDate": (now + datetime.timedelta(days=2)).isoformat(),
            "votingType": "SINGLE_CHOICE",
            "isAnonymous": True,
            "candidates": [{"name": "Alice"}, {"name": "Bob", "position": 5}],
        }

    def test_create_returns_201_with_election(self) -> None:
        resp = self.client.post(
            reverse("api-elections"),
            data=json.dumps(self._create_payload()),
            content_type="application/json",
            headers=_auth(chairman()),
        )

        self.assertEqual(resp.status_code, 201)
        body = resp.json()
        self.assertTrue(body["success"])
        election = body["data"]["election"]
        self.assertEqual(election["status"], "draft")
        self.assertEqual(election["votingType"], "single_choice")
        self.assertTrue(election["isAnonymous"])
        self.assertEqual([c["name"] for c in election["candidates"]], ["Alice", "Bob"])
        self.assertEqual([c["position"] for c in election["candidates"]], [0, 5])

    def test_create_reports_field_errors(self) -> None:
        payload = self._create_payload()
        payload["title"] = "x"
        payload["candidates"] = [{"name": "A"}, {"name": "Bob"}]

        resp = self.client.post(
            reverse("api-elections"),
            data=json.dumps(payload),
            content_type="application/json",
            headers=_auth(chairman()),
        )

        self.assertEqual(resp.status_code, 400)
        fields = {e["field"] for e in resp.json()["errors"]}
        self.assertEqual(fields, {"title", "candidates[0].name"})
        self.assertFalse(Election.objects.exists())

    def test_create_by_voter_is_403_without_role_details(self) -> None:
        resp = self.client.post(
            reverse("api-elections"),
            data=json.dumps(self._create_payload()),
            content_type="application/json",
            headers=_auth(principal()),
        )
        self.assertEqual(resp.status_code, 403)
        self.assertNotIn("chairman", resp.json()["message"])

    def test_list_only_shows_own_organization(self) -> None:
        mine, _ = make_election()
        make_election(organization_id=OTHER_ORG)

        resp = self.client.get(reverse("api-elections"), headers=_auth(principal()))

        self.assertEqual(resp.status_code, 200)
        data = resp.json()["data"]
        self.assertEqual(data["total"], 1)
        self.assertEqual(data["elections"][0]["id"], mine.id)

    def test_other_organization_election_is_404(self) -> None:
        election, _ = make_election(organization_id=OTHER_ORG)
        resp = self.client.get(reverse("api-election-detail", args=[election.id]), headers=_auth(principal()))
        self.assertEqual(resp.status_code, 404)

    def test_patch_updates_title(self) -> None:
        election, _ = make_election(status=Election.Status.draft)
        resp = self.client.patch(
            reverse("api-election-detail", args=[election.id]),
            data=json.dumps({"title": "Renamed election"}),
            content_type="application/json",
            headers=_auth(chairman()),
        )
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["election"]["title"], "Renamed election")

    def test_patch_status_is_rejected(self) -> None:
        election, _ = make_election(status=Election.Status.draft)
        resp = self.client.patch(
            reverse("api-election-detail", args=[election.id]),
            data=json.dumps({"status": "active"}),
            content_type="application/json",
            headers=_auth(chairman()),
        )
        self.assertEqual(resp.status_code, 400)

    def test_full_lifecycle_over_http(self) -> None:
        Member.objects.create(user_id="voter1", organization_id="org-1")
        Member.objects.create(user_id="voter2", organization_id="org-1")
        election, (a, b) = make_election(status=Election.Status.draft)
        chair = _auth(chairman())

        resp = self.client.post(reverse("api-election-start", args=[election.id]), headers=chair)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["data"]["election"]["status"], "active")

        resp = self.client.get(reverse("api-election-can-vote", args=[election.id]), headers=_auth(principal()))
        self.assertEqual(resp.json()["data"], {"canVote": True})

        resp = self.client.post(
            reverse("api-election-vote", args=[election.id]),
            data=json.dumps({"candidateId": a.id}),
            content_type="application/json",
            headers={**_auth(principal()), "User-Agent": "pytest-client"},
        )
        self.assertEqual(resp.status_code, 201)
        vote = Vote.objects.get(election=election, user_id="voter1")
        self.assertEqual(vote.ip_address, "127.0.0.1")
        self.assertEqual(vote.user_agent, "pytest-client")

        resp = self.client.post(
            reverse("api-election-vote", args=[election.id]),
            data=json.dumps({"candidateId": b.id}),
            content_type="application/json",
            headers=_auth(principal()),
        )
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "You have already voted in this election")

        resp = self.client.get(reverse("api-election-my-vote", args=[election.id]), headers=_auth(principal()))
        self.assertTrue(resp.json()["data"]["hasVoted"])

        resp = self.client.get(reverse("api-election-results", args=[election.id]), headers=_auth(principal()))
        self.assertEqual(resp.status_code, 400)

        resp = self.client.post(reverse("api-election-close", args=[election.id]), headers=chair)
        self.assertEqual(resp.json()["data"]["election"]["status"], "closed")

        resp = self.client.post(reverse("api-election-publish", args=[election.id]), headers=chair)
        self.assertEqual(resp.status_code, 201)

        resp = self.client.get(reverse("api-election-results", args=[election.id]), headers=_auth(principal()))
        self.assertEqual(resp.status_code, 200)
        results = resp.json()["data"]["results"]
        self.assertEqual(results["winnerId"], a.id)
        self.assertEqual(results["totalVotes"], 1)
        # The chairman joined the roster on first request: 1 of 3 members voted.
        self.assertEqual(results["participationRate"], 33.33)
        self.assertEqual(results["totalEligibleVoters"], 3)

        resp = self.client.get(reverse("api-my-votes"), headers=_auth(principal()))
        self.assertEqual(len(resp.json()["data"]["votes"]), 1)

    def test_delete_draft(self) -> None:
        election, _ = make_election(status=Election.Status.draft)
        resp = self.client.delete(reverse("api-election-detail", args=[election.id]), headers=_auth(chairman()))
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(Election.objects.filter(pk=election.id).exists())


class VotesApiTests(TestCase):
    def test_anonymous_votes_hide_voter_even_when_requested(self) -> None:
        election, (a, _b) = make_election(is_anonymous=True)
        add_votes(election, a, 2)

        resp = self.client.get(
            reverse("api-election-votes", args=[election.id]) + "?includeVoterDetails=true",
            headers=_auth(chairman()),
        )

        self.assertEqual(resp.status_code, 200)
        for row in resp.json()["data"]["votes"]:
            self.assertNotIn("voter", row)

    def test_vote_count_and_stats(self) -> None:
        election, (a, b) = make_election()
        add_votes(election, a, 2)
        add_votes(election, b, 1)

        resp = self.client.get(reverse("api-election-vote-count", args=[election.id]), headers=_auth(principal()))
        self.assertEqual(resp.json()["data"]["totalVotes"], 3)

        resp = self.client.get(reverse("api-election-stats", args=[election.id]), headers=_auth(principal()))
        self.assertEqual(resp.status_code, 403)

        resp = self.client.get(reverse("api-election-stats", args=[election.id]), headers=_auth(chairman()))
        self.assertEqual(resp.json()["data"]["stats"]["votesByCandidate"], {str(a.id): 2, str(b.id): 1})

    def test_results_preview_and_calculate(self) -> None:
        election, (a, _b) = make_election(status=Election.Status.closed)
        add_votes(election, a, 1)

        resp = self.client.get(
            reverse("api-election-results-preview", args=[election.id]), headers=_auth(chairman())
        )
        self.assertEqual(resp.json()["data"]["results"]["winnerId"], a.id)

        resp = self.client.post(
            reverse("api-election-results-calculate", args=[election.id]), headers=_auth(chairman())
        )
        self.assertEqual(resp.status_code, 201)
        election.refresh_from_db()
        self.assertEqual(election.status, Election.Status.published)
