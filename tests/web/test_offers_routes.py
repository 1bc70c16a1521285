"""Tests for offer generation routes."""

import json

LEAD = {"email": "lead@example.com", "location": "Austin", "timeline": "0-3 months"}


def generate_body(client_identifier="acme-realty", **kwargs):
    return {"intent": "buy", "userInput": dict(LEAD), "clientIdentifier": client_identifier, **kwargs}


def parse_sse(text):
    frames = []
    for block in text.strip().split("\n\n"):
        lines = dict(line.split(": ", 1) for line in block.splitlines())
        frames.append((lines["event"], json.loads(lines["data"])))
    return frames


class TestListOffers:
    def test_all(self, client):
        res = client.get("/api/offers")
        assert res.status_code == 200
        types = {o["type"] for o in res.json()}
        assert {"landingPage", "pdf", "real-estate-timeline"} <= types

    def test_filtered_by_intent(self, client):
        res = client.get("/api/offers", params={"intent": "buy"})
        assert "home-estimate" not in {o["type"] for o in res.json()}


class TestGenerate:
    def test_landing_page(self, client):
        res = client.post("/api/offers/generate", json=generate_body())

        assert res.status_code == 200
        data = res.json()
        priorities = [r["priority"] for r in data["landingPage"]["recommendations"]]
        assert priorities == ["high", "high", "medium", "low"]
        assert data["landingPage"]["type"] == "landingPage"
        assert "_debug" in data

    def test_flow_alias(self, client):
        body = generate_body()
        body["flow"] = body.pop("intent")
        assert client.post("/api/offers/generate", json=body).status_code == 200

    def test_ambiguous_offer_is_400(self, client):
        res = client.post("/api/offers/generate", json=generate_body("multi-realty"))

        assert res.status_code == 400
        body = res.json()
        assert body["availableOffers"] == ["landingPage", "pdf"]
        assert "landingPage" in body["error"] and "pdf" in body["error"]

    def test_named_offer(self, client):
        res = client.post("/api/offers/generate", json=generate_body("multi-realty", offer="landingPage"))
        assert res.status_code == 200
        assert "landingPage" in res.json()

    def test_unknown_client_is_400(self, client):
        res = client.post("/api/offers/generate", json=generate_body("nobody"))
        assert res.status_code == 400
        assert "nobody" in res.json()["error"]

    def test_invalid_input_is_400(self, client):
        body = generate_body(userInput={"email": "not-an-email"})
        res = client.post("/api/offers/generate", json=body)
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid input"

    def test_missing_intent_is_400(self, client):
        body = generate_body()
        del body["intent"]
        res = client.post("/api/offers/generate", json=body)
        assert res.status_code == 400
        assert res.json()["error"] == "Invalid request"

    def test_missing_client_identifier_is_400(self, client):
        res = client.post("/api/offers/generate", json={"intent": "buy", "userInput": LEAD})
        assert res.status_code == 400

    def test_llm_failure_falls_back(self, client, mock_llm):
        mock_llm.complete.side_effect = RuntimeError("provider down")
        res = client.post("/api/offers/generate", json=generate_body())
        assert res.status_code == 200
        assert res.json()["landingPage"]["recommendations"][0]["title"] == "Schedule a Call"

    def test_timeline_offer(self, client, mock_llm):
        res = client.post("/api/offers/generate", json=generate_body("timeline-realty"))
        assert res.status_code == 200
        assert res.json()["real-estate-timeline"]["phases"]
        mock_llm.complete.assert_not_called()


class TestRateLimit:
    def test_anonymous_limit(self, client):
        for _ in range(2):
            assert client.post("/api/offers/generate", json=generate_body()).status_code == 200

        res = client.post("/api/offers/generate", json=generate_body())
        assert res.status_code == 429
        assert int(res.headers["Retry-After"]) > 0
        body = res.json()
        assert body["limit"] == 2
        assert body["remaining"] == 0
        assert body["retryAfter"] == int(res.headers["Retry-After"])

    def test_authenticated_users_get_their_own_limit(self, client, auth_headers):
        for _ in range(3):
            res = client.post("/api/offers/generate", json=generate_body(), headers=auth_headers)
            assert res.status_code == 200

    def test_forwarded_address_is_the_identity(self, client):
        for _ in range(2):
            client.post("/api/offers/generate", json=generate_body(), headers={"X-Forwarded-For": "10.0.0.1"})
        res = client.post("/api/offers/generate", json=generate_body(), headers={"X-Forwarded-For": "10.0.0.2"})
        assert res.status_code == 200

    def test_bad_token_is_401(self, client, jwt_secret):
        res = client.post("/api/offers/generate", json=generate_body(), headers={"Authorization": "Bearer junk"})
        assert res.status_code == 401

    def test_stream_rejected_before_streaming(self, client):
        for _ in range(2):
            client.post("/api/offers/generate", json=generate_body())
        res = client.post("/api/offers/generate-stream", json=generate_body())
        assert res.status_code == 429
        assert res.headers["content-type"].startswith("application/json")


class TestGenerateStream:
    def test_progress_then_complete(self, client):
        res = client.post("/api/offers/generate-stream", json=generate_body())

        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/event-stream")
        frames = parse_sse(res.text)
        events = [name for name, _ in frames]
        assert events[-1] == "complete"
        assert set(events[:-1]) == {"progress"}
        progress = [data["progress"] for _, data in frames]
        assert progress == sorted(progress)
        assert "landingPage" in frames[-1][1]["data"]

    def test_error_event(self, client):
        res = client.post("/api/offers/generate-stream", json=generate_body("multi-realty"))

        assert res.status_code == 200
        frames = parse_sse(res.text)
        name, data = frames[-1]
        assert name == "error"
        assert data["data"]["availableOffers"] == ["landingPage", "pdf"]
        assert [n for n, _ in frames].count("error") == 1


class TestOps:
    def test_health(self, client):
        assert client.get("/api/health").json() == {"status": "ok"}

    def test_metrics(self, client):
        client.post("/api/offers/generate", json=generate_body())
        counters = client.get("/api/metrics").json()["counters"]
        assert counters["llm.calls{offer=landingPage}"] == 1
