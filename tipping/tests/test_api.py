import json
from datetime import timedelta
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.urls import reverse

from tipping.models import ChipActivation, LeaderboardSnapshot, Match

from .base import ContestTestCase


class ApiTestCase(ContestTestCase):
    def setUp(self):
        super().setUp()
        self.staff = get_user_model().objects.create_user("admin", password="pw", is_staff=True)

    def post_json(self, url, data):
        return self.client.post(url, data=json.dumps(data), content_type="application/json")


class LeaderboardApiTest(ApiTestCase):
    def test_empty_leaderboard(self):
        response = self.client.get(reverse("tipping:leaderboard", args=[self.contest.slug]))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok", "computed_at": None, "entries": []})

    def test_unknown_contest(self):
        response = self.client.get(reverse("tipping:leaderboard", args=["nope"]))
        self.assertEqual(response.status_code, 404)

    def test_current_snapshot_returned(self):
        self.standard_picks()
        self.standard_results()
        self.contest.recompute_leaderboard()

        response = self.client.get(reverse("tipping:leaderboard", args=[self.contest.slug]))

        data = response.json()
        self.assertEqual([e["name"] for e in data["entries"]], ["alice", "bob"])
        alice = data["entries"][0]
        self.assertEqual(alice["rank"], 1)
        self.assertIsNone(alice["previous_rank"])
        self.assertEqual(alice["delta"], "same")
        self.assertEqual(alice["total"], 105)
        self.assertEqual(alice["stage_points"], {"group": 25, "final": 80})
        self.assertEqual(data["entries"][1]["penalty"], -20)


class RefreshApiTest(ApiTestCase):
    def test_requires_staff(self):
        self.client.force_login(self.alice_user)
        response = self.client.post(reverse("tipping:leaderboard_refresh", args=[self.contest.slug]))
        self.assertEqual(response.status_code, 302)
        self.assertFalse(LeaderboardSnapshot.objects.exists())

    def test_staff_refresh(self):
        self.standard_picks()
        self.client.force_login(self.staff)
        response = self.client.post(reverse("tipping:leaderboard_refresh", args=[self.contest.slug]))
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["participants"], 2)
        self.assertEqual(data["snapshot_id"], LeaderboardSnapshot.current_for(self.contest).pk)

    def test_get_not_allowed(self):
        self.client.force_login(self.staff)
        response = self.client.get(reverse("tipping:leaderboard_refresh", args=[self.contest.slug]))
        self.assertEqual(response.status_code, 405)


class ChipApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse("tipping:chips", args=[self.contest.slug])

    def test_requires_login(self):
        response = self.post_json(self.url, {"doubleUp": 1})
        self.assertEqual(response.status_code, 302)

    def test_activate_both_chips(self):
        self.client.force_login(self.alice_user)
        response = self.post_json(self.url, {"doubleUp": 1, "wildcard": 2})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["activated"],
            [{"chip": "doubleUp", "match": 1}, {"chip": "wildcard", "match": 2}],
        )
        self.assertEqual(ChipActivation.objects.filter(participant=self.alice).count(), 2)

    def test_duplicate_is_conflict(self):
        self.client.force_login(self.alice_user)
        self.post_json(self.url, {"doubleUp": 1})
        response = self.post_json(self.url, {"doubleUp": 2})
        self.assertEqual(response.status_code, 409)

    def test_locked_match(self):
        Match.objects.filter(pk=self.matches[1].pk).update(kickoff=self.now - timedelta(minutes=5))
        self.client.force_login(self.alice_user)
        response = self.post_json(self.url, {"wildcard": 1})
        self.assertEqual(response.status_code, 423)

    def test_ineligible_target(self):
        self.client.force_login(self.alice_user)
        for target in (4, "1", [1]):
            response = self.post_json(self.url, {"wildcard": target})
            self.assertEqual(response.status_code, 400, target)
        self.assertFalse(ChipActivation.objects.exists())

    def test_partial_success_reported(self):
        self.client.force_login(self.alice_user)
        response = self.post_json(self.url, {"doubleUp": 1, "wildcard": 4})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["activated"], [{"chip": "doubleUp", "match": 1}])

    def test_bad_body(self):
        self.client.force_login(self.alice_user)
        response = self.client.post(self.url, data="not json", content_type="application/json")
        self.assertEqual(response.status_code, 400)
        response = self.post_json(self.url, {})
        self.assertEqual(response.status_code, 400)

    def test_user_without_entry(self):
        self.client.force_login(self.staff)
        response = self.post_json(self.url, {"doubleUp": 1})
        self.assertEqual(response.status_code, 403)

    def test_targets_hidden_until_kickoff(self):
        ChipActivation.objects.create(participant=self.alice, kind="DoubleUp", match=self.matches[2])
        ChipActivation.objects.create(participant=self.bob, kind="Wildcard", match=self.matches[1])
        Match.objects.filter(pk=self.matches[1].pk).update(kickoff=self.now - timedelta(hours=1))
        self.client.force_login(self.alice_user)

        response = self.client.get(self.url)

        chips = {(c["participant"], c["chip"]): c["match"] for c in response.json()["chips"]}
        self.assertEqual(chips, {("alice", "Double Up"): None, ("bob", "Wildcard"): 1})


class MatchResultApiTest(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.url = reverse("tipping:match_result", args=[self.contest.slug, 1])
        self.client.force_login(self.staff)

    @patch("tipping.tasks.leaderboard.schedule_leaderboard_refresh")
    def test_record_result(self, mock_schedule):
        response = self.post_json(self.url, {"winner": "Spain"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["winner"], "Spain")
        self.assertEqual(Match.objects.get(pk=self.matches[1].pk).winner, "Spain")
        mock_schedule.assert_called_once()

    def test_clear_result(self):
        self.set_results({1: "DRAW"})
        response = self.post_json(self.url, {"winner": ""})
        self.assertEqual(response.status_code, 200)
        self.assertIsNone(response.json()["winner"])
        self.assertEqual(Match.objects.get(pk=self.matches[1].pk).winner, "")

    def test_invalid_winner(self):
        response = self.post_json(self.url, {"winner": "France"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(Match.objects.get(pk=self.matches[1].pk).winner, "")

    def test_missing_winner(self):
        response = self.post_json(self.url, {"team": "Spain"})
        self.assertEqual(response.status_code, 400)

    def test_unknown_match(self):
        url = reverse("tipping:match_result", args=[self.contest.slug, 99])
        response = self.post_json(url, {"winner": "Spain"})
        self.assertEqual(response.status_code, 404)

    def test_requires_staff(self):
        self.client.force_login(self.alice_user)
        response = self.post_json(self.url, {"winner": "Spain"})
        self.assertEqual(response.status_code, 302)
