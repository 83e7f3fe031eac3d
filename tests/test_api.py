"""
API tests: team setup, sprint planning and review over HTTP.
"""

from datetime import datetime

import pytest

TEAM_PAYLOAD = {
    "name": "API Team",
    "sprint_size_in_days": 10,
    "is_default": True,
    "members": [
        {"name": "John", "velocity_weight": 1.0},
        {"name": "Jane", "velocity_weight": 1.0},
        {"name": "Jim", "velocity_weight": 1.0},
    ],
}


async def create_team(client, payload=TEAM_PAYLOAD):
    response = await client.post("/api/v1/teams", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


def parse_timestamp(value):
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


async def create_sprint(client, team, name="Sprint 1", days_off=(0, 2, 0)):
    payload = {
        "name": name,
        "member_availability": [
            {"member_id": member["id"], "days_off": off}
            for member, off in zip(team["members"], days_off)
        ],
        "comment": "planned",
    }
    return await client.post("/api/v1/sprints", json=payload)


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# =============================================================================
# TEAMS
# =============================================================================

class TestTeamEndpoints:

    @pytest.mark.asyncio
    async def test_create_and_fetch(self, client):
        team = await create_team(client)

        assert team["is_default"] is True
        assert [m["name"] for m in team["members"]] == ["John", "Jane", "Jim"]

        response = await client.get(f"/api/v1/teams/{team['id']}")
        assert response.status_code == 200
        assert response.json()["name"] == "API Team"

        response = await client.get("/api/v1/teams/default")
        assert response.json()["id"] == team["id"]

        response = await client.get("/api/v1/teams")
        assert len(response.json()) == 1

    @pytest.mark.asyncio
    async def test_missing_team(self, client):
        assert (await client.get("/api/v1/teams/default")).status_code == 404
        assert (await client.get("/api/v1/teams/12")).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_payloads(self, client):
        response = await client.post(
            "/api/v1/teams", json={**TEAM_PAYLOAD, "sprint_size_in_days": 31}
        )
        assert response.status_code == 422

        bad_member = {**TEAM_PAYLOAD, "members": [{"name": "X", "velocity_weight": 3}]}
        response = await client.post("/api/v1/teams", json=bad_member)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_update_roster(self, client):
        team = await create_team(client)
        john = team["members"][0]

        response = await client.put(
            f"/api/v1/teams/{team['id']}",
            json={
                "name": "Renamed",
                "members": [
                    {"id": john["id"], "name": "John", "velocity_weight": 0.5},
                    {"name": "Kate"},
                ],
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Renamed"
        assert [(m["name"], m["velocity_weight"]) for m in body["members"]] == [
            ("John", 0.5),
            ("Kate", 1.0),
        ]

    @pytest.mark.asyncio
    async def test_team_without_members(self, client):
        response = await client.post(
            "/api/v1/teams", json={"name": "Solo", "sprint_size_in_days": 10}
        )
        assert response.status_code == 201, response.text
        assert response.json()["members"] == []

        assert len((await client.get("/api/v1/teams")).json()) == 1

        preview = (await client.post("/api/v1/sprints/forecast", json={})).json()
        assert preview["total_days_available"] == 0
        assert preview["forecast_velocity"] == 0

        response = await client.post("/api/v1/sprints", json={"name": "Sprint 1"})
        assert response.status_code == 201, response.text
        assert response.json()["total_days_available"] == 0
        assert response.json()["forecast_velocity"] == 0

    @pytest.mark.asyncio
    async def test_timestamps_are_utc(self, client):
        team = await create_team(client)
        fetched = (await client.get(f"/api/v1/teams/{team['id']}")).json()

        created = parse_timestamp(team["created_at"])
        assert created.tzinfo is not None
        assert parse_timestamp(fetched["created_at"]) == created

    @pytest.mark.asyncio
    async def test_update_with_foreign_member(self, client):
        team = await create_team(client)

        response = await client.put(
            f"/api/v1/teams/{team['id']}",
            json={"members": [{"id": 999, "name": "Ghost"}]},
        )
        assert response.status_code == 400


# =============================================================================
# SPRINTS
# =============================================================================

class TestSprintEndpoints:

    @pytest.mark.asyncio
    async def test_plan_complete_and_review(self, client):
        team = await create_team(client)

        response = await create_sprint(client, team)
        assert response.status_code == 201, response.text
        sprint = response.json()
        assert sprint["total_days_available"] == 28
        assert sprint["forecast_velocity"] == 28
        assert sprint["actual_velocity"] is None
        assert len(sprint["member_availability"]) == 3

        response = await client.get("/api/v1/sprints/current")
        assert response.json()["id"] == sprint["id"]

        response = await client.patch(
            f"/api/v1/sprints/{sprint['id']}/complete", json={"actual_velocity": 30}
        )
        assert response.status_code == 200
        completed = response.json()
        assert completed["actual_velocity"] == 30
        assert completed["completed_at"] is not None

        reloaded = (await client.get(f"/api/v1/sprints/{sprint['id']}")).json()
        assert parse_timestamp(reloaded["completed_at"]) == parse_timestamp(completed["completed_at"])
        assert parse_timestamp(reloaded["created_at"]).tzinfo is not None

        response = await client.get(f"/api/v1/sprints/{sprint['id']}/metrics")
        metrics = response.json()
        assert metrics["delta"] == 2
        assert metrics["delta_display"] == "+2.00"
        assert metrics["accuracy"] == pytest.approx(107.142857, rel=1e-6)
        assert metrics["accuracy_display"] == "107.1%"
        assert metrics["accuracy_band"] == "caution"
        assert metrics["delta_direction"] == "over"
        assert metrics["historical_median_velocity_per_day"] is None

        response = await client.get("/api/v1/sprints/current")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_second_active_sprint_conflicts(self, client):
        team = await create_team(client)
        await create_sprint(client, team)

        response = await create_sprint(client, team, name="Sprint 2")

        assert response.status_code == 409
        assert "complete the current sprint" in response.json()["detail"]

    @pytest.mark.asyncio
    async def test_complete_twice_conflicts(self, client):
        team = await create_team(client)
        sprint = (await create_sprint(client, team)).json()
        url = f"/api/v1/sprints/{sprint['id']}/complete"

        assert (await client.patch(url, json={"actual_velocity": 20})).status_code == 200
        assert (await client.patch(url, json={"actual_velocity": 25})).status_code == 409

    @pytest.mark.asyncio
    async def test_complete_requires_actual(self, client):
        team = await create_team(client)
        sprint = (await create_sprint(client, team)).json()

        response = await client.patch(f"/api/v1/sprints/{sprint['id']}/complete", json={})
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_unknown_member_is_bad_request(self, client):
        await create_team(client)

        response = await client.post(
            "/api/v1/sprints",
            json={"name": "Sprint 1", "member_availability": [{"member_id": 999, "days_off": 1}]},
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_sprint(self, client):
        await create_team(client)

        assert (await client.get("/api/v1/sprints/77")).status_code == 404
        response = await client.patch("/api/v1/sprints/77/complete", json={"actual_velocity": 1})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_sprints_without_team(self, client):
        assert (await client.get("/api/v1/sprints")).status_code == 404
        assert (await create_sprint(client, {"members": []})).status_code == 404

    @pytest.mark.asyncio
    async def test_forecast_preview_does_not_persist(self, client):
        team = await create_team(client)

        response = await client.post(
            "/api/v1/sprints/forecast",
            json={"member_availability": [{"member_id": team["members"][1]["id"], "days_off": 2}]},
        )

        assert response.status_code == 200
        preview = response.json()
        assert preview["total_days_available"] == 28
        assert preview["forecast_velocity"] == 28
        assert preview["capacity_policy"] == "days_only"
        assert preview["median_velocity_per_day"] is None
        assert preview["median_velocity_per_day_display"] == "N/A"
        assert [m["days_available"] for m in preview["members"]] == [10, 8, 10]

        assert (await client.get("/api/v1/sprints")).json() == []

    @pytest.mark.asyncio
    async def test_history_and_statistics(self, client):
        team = await create_team(client)

        for name, actual in [("Sprint 1", 56), ("Sprint 2", 28)]:
            sprint = (await create_sprint(client, team, name=name)).json()
            await client.patch(
                f"/api/v1/sprints/{sprint['id']}/complete", json={"actual_velocity": actual}
            )
        await create_sprint(client, team, name="Sprint 3")

        history = (await client.get("/api/v1/sprints/history")).json()
        assert [h["name"] for h in history] == ["Sprint 2", "Sprint 1"]
        assert history[0]["team_name"] == "API Team"
        assert history[0]["member_availability"][1]["days_available"] == 8

        stats = (await client.get("/api/v1/sprints/statistics")).json()
        assert stats["total_sprints"] == 2
        # forecasts 28 and 56; deltas +28 and -28
        assert stats["average_delta"] == 0
        # rates 2.0 and 1.0, upper middle
        assert stats["median_velocity_per_day"] == 2.0

        sprints = (await client.get("/api/v1/sprints")).json()
        assert [s["name"] for s in sprints] == ["Sprint 3", "Sprint 2", "Sprint 1"]
