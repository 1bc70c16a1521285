"""Tests for the story auto-assign route."""


def assign(client, **body):
    return client.post("/api/stories/auto-assign", json={"clientIdentifier": "acme-realty", "flows": ["buy"], **body})


class TestAutoAssign:
    def test_assigns_and_saves(self, client, seeded_tenants):
        res = assign(client)

        assert res.status_code == 200
        data = res.json()
        assert data["success"] is True
        assert data["saved"] is True
        assert data["assignments"]
        first = data["assignments"][0]
        assert set(first) == {"flow", "phaseId", "phaseName", "stepId", "storyId", "storyTitle", "score"}

        story_ids = [a["storyId"] for a in data["assignments"]]
        assert len(story_ids) == len(set(story_ids))
        assert sorted(story_ids + data["unassigned"]["buy"]) == sorted(
            ["story-closing-a", "story-closing-b", "story-credit"]
        )

        saved = seeded_tenants.get_tenant("acme").phases["buy"]
        linked = {s.linked_story_id for p in saved for s in p.steps if s.linked_story_id}
        assert linked == set(story_ids)

    def test_dry_run_does_not_save(self, client, seeded_tenants):
        res = assign(client, save=False)

        assert res.status_code == 200
        assert res.json()["saved"] is False
        assert seeded_tenants.get_tenant("acme").phases == {}

    def test_second_run_keeps_saved_links(self, client):
        first = {a["storyId"] for a in assign(client).json()["assignments"]}
        second = {a["storyId"] for a in assign(client).json()["assignments"]}
        assert first
        assert not first & second

    def test_unknown_client(self, client):
        res = client.post("/api/stories/auto-assign", json={"clientIdentifier": "nobody"})
        assert res.status_code == 400
        assert "nobody" in res.json()["error"]

    def test_missing_client_identifier(self, client):
        res = client.post("/api/stories/auto-assign", json={"flows": ["buy"]})
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid request"
