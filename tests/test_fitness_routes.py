import asyncio
from datetime import date, timedelta

import pytest_asyncio

from studio.models.quest import Quest
from studio.models.recovery import RecoveryLevel
from tests.conftest import auth_headers

API = "/api/v1/fitness"


@pytest_asyncio.fixture
async def quests(engine):
    catalogue = {}
    for level in RecoveryLevel:
        catalogue[level] = await engine.quest_storage.create(
            Quest(title=f"{level.value} quest", recovery_level=level, xp_reward=120)
        )
    return catalogue


class TestProfile:
    async def test_get(self, client, user, headers):
        body = (await client.get(f"{API}/profile", headers=headers)).json()
        assert body["username"] == "alice"
        assert body["level"] == 1

    async def test_update(self, client, engine, user, headers):
        response = await client.patch(
            f"{API}/profile",
            json={"height_cm": 180, "fitness_goal": "endurance", "body_measurements": {"waist_cm": 80},
                  "is_admin": True},
            headers=headers,
        )

        assert response.status_code == 200
        assert response.json()["height_cm"] == 180.0
        assert response.json()["fitness_goal"] == "endurance"
        assert engine.user_storage.users[user.id].is_admin is False

    async def test_validation_errors_are_joined(self, client, headers):
        response = await client.patch(
            f"{API}/profile", json={"height_cm": 10, "gender": "robot"}, headers=headers
        )
        assert response.status_code == 400
        assert response.json()["detail"].startswith("Height must be between 50 and 300 cm. Gender must be one of")

    async def test_too_young(self, client, headers):
        birth = date.today() - timedelta(days=365 * 10)
        response = await client.patch(f"{API}/profile", json={"date_of_birth": birth.isoformat()}, headers=headers)
        assert response.json()["detail"] == "Age must be between 13 and 150"

    async def test_nothing_to_update(self, client, headers):
        response = await client.patch(f"{API}/profile", json={"favourite_colour": "red"}, headers=headers)
        assert response.json()["detail"] == "No valid fields to update"


class TestWorkouts:
    async def test_log_awards_xp_and_starts_streak(self, client, engine, user, headers):
        response = await client.post(
            f"{API}/workouts", json={"workout_type": "run", "duration_minutes": 45}, headers=headers
        )

        assert response.status_code == 201
        body = response.json()
        assert body["xp_earned"] == 70
        assert body["streak_count"] == 1
        assert body["title"] == "run"
        stored = engine.user_storage.users[user.id]
        assert stored.workouts_completed == 1
        assert stored.current_xp == 70

    async def test_level_up(self, client, engine, user, headers):
        await client.post(f"{API}/workouts", json={"workout_type": "row", "duration_minutes": 45}, headers=headers)
        body = (await client.post(
            f"{API}/workouts", json={"workout_type": "row", "duration_minutes": 45}, headers=headers
        )).json()

        assert body["levels_gained"] == 1
        assert body["new_level"] == 2
        assert engine.user_storage.users[user.id].current_xp == 40
        assert engine.user_storage.users[user.id].total_xp == 140

    async def test_streak_continues_from_yesterday(self, client, engine, headers):
        runner = await engine.add_user(
            "runner", streak_count=4, longest_streak=4, last_workout_date=date.today() - timedelta(days=1)
        )
        body = (await client.post(
            f"{API}/workouts", json={"workout_type": "run", "duration_minutes": 5}, headers=auth_headers(runner)
        )).json()
        assert body["streak_count"] == 5
        assert runner.longest_streak == 5

    async def test_concurrent_workouts_are_all_counted(self, client, engine, user, headers):
        responses = await asyncio.gather(*(
            client.post(f"{API}/workouts", json={"workout_type": "run", "duration_minutes": 10}, headers=headers)
            for _ in range(3)
        ))

        assert [r.status_code for r in responses] == [201, 201, 201]
        stored = engine.user_storage.users[user.id]
        assert stored.workouts_completed == 3
        assert stored.total_xp == 165
        assert (stored.level, stored.current_xp) == (2, 65)

    async def test_duration_bounds(self, client, headers):
        response = await client.post(
            f"{API}/workouts", json={"workout_type": "run", "duration_minutes": 601}, headers=headers
        )
        assert response.status_code == 400

    async def test_list(self, client, headers):
        await client.post(f"{API}/workouts", json={"workout_type": "swim", "duration_minutes": 30}, headers=headers)
        workouts = (await client.get(f"{API}/workouts", headers=headers)).json()
        assert [w["workout_type"] for w in workouts] == ["swim"]


class TestRecovery:
    async def test_record(self, client, headers):
        response = await client.post(f"{API}/recovery", json={"score": 20, "source": "whoop"}, headers=headers)

        assert response.status_code == 201
        assert response.json()["recommendation"]["level"] == "low"
        assert response.json()["recommendation"]["confidence"] == "data"

        status = (await client.get(f"{API}/recovery", headers=headers)).json()
        assert status["latest"]["score"] == 20

    async def test_without_data(self, client, headers):
        status = (await client.get(f"{API}/recovery", headers=headers)).json()
        assert status["latest"] is None
        assert status["recommendation"]["label"] == "Full WOD"

    async def test_score_range(self, client, headers):
        response = await client.post(f"{API}/recovery", json={"score": 101}, headers=headers)
        assert response.status_code == 400


class TestQuests:
    async def test_daily_assigns_one_per_tier(self, client, engine, headers, quests):
        body = (await client.get(f"{API}/quests/daily", headers=headers)).json()

        assert [q["recovery_level"] for q in body["quests"]] == ["low", "medium", "high"]
        assert body["recommendation"]["level"] == "high"

        again = (await client.get(f"{API}/quests/daily", headers=headers)).json()
        assert [q["id"] for q in again["quests"]] == [q["id"] for q in body["quests"]]
        assert len(engine.quest_storage.assignments) == 3

    async def test_select_and_complete(self, client, engine, user, headers, quests):
        await client.get(f"{API}/quests/daily", headers=headers)
        quest_id = str(quests[RecoveryLevel.MEDIUM].id)

        response = await client.patch(f"{API}/quests/daily", json={"quest_id": quest_id}, headers=headers)
        assert response.json() == {"success": True, "quest_id": quest_id}

        done = (await client.post(f"{API}/quests/daily/{quest_id}/complete", headers=headers)).json()
        assert done["completed"] is True
        assert done["xp_earned"] == 120
        assert done["new_level"] == 2

        repeat = await client.post(f"{API}/quests/daily/{quest_id}/complete", headers=headers)
        assert repeat.status_code == 409

    async def test_select_unassigned(self, client, headers, quests):
        response = await client.patch(
            f"{API}/quests/daily", json={"quest_id": str(quests[RecoveryLevel.LOW].id)}, headers=headers
        )
        assert response.status_code == 404

    async def test_select_requires_id(self, client, headers):
        response = await client.patch(f"{API}/quests/daily", json={}, headers=headers)
        assert response.status_code == 400

    async def test_catalogue_filter(self, client, headers, quests):
        found = (await client.get(f"{API}/quests", params={"recovery_level": "low"}, headers=headers)).json()
        assert [q["title"] for q in found] == ["low quest"]

    async def test_dashboard(self, client, headers, quests):
        await client.post(f"{API}/workouts", json={"workout_type": "run", "duration_minutes": 30}, headers=headers)
        body = (await client.get(f"{API}/dashboard", headers=headers)).json()
        assert body["weekly_workouts"] == 1
        assert len(body["daily_quests"]) == 3
        assert body["user"]["workouts_completed"] == 1


class TestGuilds:
    async def create(self, client, headers, name="Iron Lifters"):
        return await client.post(f"{API}/guilds", json={"name": name}, headers=headers)

    async def test_create_makes_caller_admin(self, client, user, headers):
        response = await self.create(client, headers)

        assert response.status_code == 201
        assert response.json()["slug"] == "iron-lifters"
        mine = (await client.get(f"{API}/guilds/me", headers=headers)).json()
        assert mine["membership"]["role"] == "admin"

    async def test_one_guild_per_user(self, client, headers):
        await self.create(client, headers)
        assert (await self.create(client, headers, "Second")).status_code == 409

    async def test_name_taken(self, client, engine, headers):
        await self.create(client, headers)
        other = await engine.add_user("bob")
        assert (await self.create(client, auth_headers(other))).status_code == 409

    async def test_bad_name(self, client, headers):
        assert (await self.create(client, headers, "x")).status_code == 400

    async def test_membership_lifecycle(self, client, engine, user, headers):
        await self.create(client, headers)
        bob = await engine.add_user("bob")
        bob_headers = auth_headers(bob)

        joined = await client.post(f"{API}/guilds/iron-lifters/join", headers=bob_headers)
        assert joined.json()["role"] == "member"

        guild = (await client.get(f"{API}/guilds/iron-lifters", headers=headers)).json()
        assert guild["member_count"] == 2
        assert [m["username"] for m in guild["members"]] == ["alice", "bob"]

        # admin cannot leave while others remain
        assert (await client.post(f"{API}/guilds/iron-lifters/leave", headers=headers)).status_code == 400
        # members cannot manage roles
        response = await client.patch(
            f"{API}/guilds/iron-lifters/members/{user.id}", json={"role": "member"}, headers=bob_headers
        )
        assert response.status_code == 403

        left = (await client.post(f"{API}/guilds/iron-lifters/leave", headers=bob_headers)).json()
        assert left == {"left": True, "guild_deleted": False}

        last = (await client.post(f"{API}/guilds/iron-lifters/leave", headers=headers)).json()
        assert last["guild_deleted"] is True
        assert (await client.get(f"{API}/guilds/iron-lifters", headers=headers)).status_code == 404

    async def test_admin_transfer(self, client, engine, user, headers):
        await self.create(client, headers)
        bob = await engine.add_user("bob")
        await client.post(f"{API}/guilds/iron-lifters/join", headers=auth_headers(bob))

        response = await client.patch(
            f"{API}/guilds/iron-lifters/members/{bob.id}", json={"role": "admin"}, headers=headers
        )

        assert response.json() == {"user_id": str(bob.id), "role": "admin"}
        guild = (await client.get(f"{API}/guilds/iron-lifters", headers=headers)).json()
        assert guild["created_by"] == str(bob.id)
        roles = {m["username"]: m["role"] for m in guild["members"]}
        assert roles == {"alice": "member", "bob": "admin"}

    async def test_moderator_kicks_member_only(self, client, engine, user, headers):
        await self.create(client, headers)
        mod, member = await engine.add_user("mod"), await engine.add_user("member")
        for joiner in (mod, member):
            await client.post(f"{API}/guilds/iron-lifters/join", headers=auth_headers(joiner))
        await client.patch(f"{API}/guilds/iron-lifters/members/{mod.id}", json={"role": "moderator"}, headers=headers)

        denied = await client.delete(f"{API}/guilds/iron-lifters/members/{user.id}", headers=auth_headers(mod))
        assert denied.status_code == 403

        kicked = await client.delete(f"{API}/guilds/iron-lifters/members/{member.id}", headers=auth_headers(mod))
        assert kicked.json() == {"success": True}
        guild = (await client.get(f"{API}/guilds/iron-lifters", headers=headers)).json()
        assert guild["member_count"] == 2

    async def test_private_guild(self, client, engine, headers):
        await client.post(f"{API}/guilds", json={"name": "Secret Club", "is_public": False}, headers=headers)
        other = await engine.add_user("bob")
        response = await client.post(f"{API}/guilds/secret-club/join", headers=auth_headers(other))
        assert response.status_code == 403

    async def test_rename_reslugs(self, client, headers):
        await self.create(client, headers)
        response = await client.patch(f"{API}/guilds/iron-lifters", json={"name": "Steel Lifters"}, headers=headers)
        assert response.json()["slug"] == "steel-lifters"

    async def test_search(self, client, headers):
        await self.create(client, headers)
        found = (await client.get(f"{API}/guilds", params={"search": "iron"}, headers=headers)).json()
        assert [g["slug"] for g in found] == ["iron-lifters"]

    async def test_leaderboards(self, client, engine, user, headers):
        await self.create(client, headers)
        bob = await engine.add_user("bob", total_xp=500, streak_count=3)
        await client.post(f"{API}/guilds/iron-lifters/join", headers=auth_headers(bob))
        await client.post(f"{API}/workouts", json={"workout_type": "run", "duration_minutes": 30}, headers=headers)

        total = (await client.get(f"{API}/guilds/iron-lifters/leaderboard", headers=headers)).json()
        assert [(e["username"], e["value"]) for e in total["entries"]] == [("bob", 500), ("alice", 65)]

        weekly = (await client.get(
            f"{API}/guilds/iron-lifters/leaderboard", params={"type": "weekly_xp"}, headers=headers
        )).json()
        assert [(e["username"], e["value"]) for e in weekly["entries"]] == [("alice", 65), ("bob", 0)]

        streak = (await client.get(
            f"{API}/guilds/iron-lifters/leaderboard", params={"type": "streak"}, headers=headers
        )).json()
        assert [(e["rank"], e["username"], e["value"]) for e in streak["entries"]] == [(1, "bob", 3), (2, "alice", 1)]

    async def test_unknown_leaderboard(self, client, headers):
        await self.create(client, headers)
        response = await client.get(
            f"{API}/guilds/iron-lifters/leaderboard", params={"type": "calories"}, headers=headers
        )
        assert response.status_code == 400
