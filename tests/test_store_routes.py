"""
HTTP tests for the Session Store and Resource Cache sub-protocols.
"""

MINUTE_MS = 60_000


class TestSessionRoutes:
    async def test_create_and_get(self, client):
        created = await client.post("/internal/sessions/acme/create", json={"userId": "alice", "data": {"a": 1}})

        assert created.status_code == 200
        body = created.json()
        session_id = body["sessionId"]
        assert body["session"]["id"] == session_id
        assert body["session"]["userId"] == "alice"
        assert body["session"]["createdAt"] == body["session"]["updatedAt"]

        fetched = await client.get("/internal/sessions/acme/get", params={"id": session_id})
        assert fetched.status_code == 200
        assert fetched.json()["session"]["data"] == {"a": 1}

    async def test_create_with_empty_body(self, client):
        response = await client.post("/internal/sessions/acme/create")

        assert response.status_code == 200
        assert response.json()["session"]["data"] == {}
        assert "userId" not in response.json()["session"]

    async def test_get_requires_id(self, client):
        response = await client.get("/internal/sessions/acme/get")

        assert response.status_code == 400
        assert response.json() == {"error": "Session ID required"}

    async def test_get_unknown(self, client):
        response = await client.get("/internal/sessions/acme/get", params={"id": "nope"})

        assert response.status_code == 404
        assert response.json() == {"error": "Session not found"}

    async def test_get_slides_expiration(self, client, clock):
        session_id = (await client.post("/internal/sessions/acme/create", json={})).json()["sessionId"]
        clock.advance(5000)

        session = (await client.get("/internal/sessions/acme/get", params={"id": session_id})).json()["session"]

        assert session["updatedAt"] - session["createdAt"] == 5000

    async def test_update_merges(self, client):
        session_id = (await client.post("/internal/sessions/acme/create", json={"data": {"a": 1}})).json()["sessionId"]

        response = await client.post("/internal/sessions/acme/update",
                                      json={"sessionId": session_id, "data": {"b": 2}})

        assert response.status_code == 200
        assert response.json()["session"]["data"] == {"a": 1, "b": 2}

    async def test_update_requires_id(self, client):
        response = await client.post("/internal/sessions/acme/update", json={"data": {}})

        assert response.status_code == 400

    async def test_invalid_json(self, client):
        response = await client.post("/internal/sessions/acme/create", content=b"{nope",
                                     headers={"content-type": "application/json"})

        assert response.status_code == 400

    async def test_delete(self, client):
        session_id = (await client.post("/internal/sessions/acme/create", json={})).json()["sessionId"]

        first = await client.delete("/internal/sessions/acme/delete", params={"id": session_id})
        second = await client.delete("/internal/sessions/acme/delete", params={"id": session_id})

        assert first.json() == {"success": True}
        assert second.json() == {"success": False}

    async def test_partitions_isolated(self, client):
        session_id = (await client.post("/internal/sessions/acme/create", json={})).json()["sessionId"]

        response = await client.get("/internal/sessions/globex/get", params={"id": session_id})

        assert response.status_code == 404


class TestCacheRoutes:
    async def test_put_then_hit(self, client, clock):
        put = await client.put("/internal/cache/acme/calendars", params={"userId": "bob"},
                               json=[{"id": "work", "displayName": "Work"}])
        assert put.json() == {"success": True}

        clock.advance(1500)
        hit = await client.get("/internal/cache/acme/calendars", params={"userId": "bob"})

        assert hit.status_code == 200
        assert hit.json() == [{"id": "work", "displayName": "Work"}]
        assert hit.headers["X-Cache"] == "HIT"
        assert hit.headers["X-Cache-Age"] == "1500"

    async def test_miss(self, client):
        response = await client.get("/internal/cache/acme/calendars", params={"userId": "bob"})

        assert response.status_code == 404
        assert response.json() == {"error": "Cache miss"}
        assert response.headers["X-Cache"] == "MISS"

    async def test_user_defaults(self, client):
        await client.put("/internal/cache/acme/preferences", json={"tz": "UTC"})

        response = await client.get("/internal/cache/acme/preferences", params={"userId": "default"})

        assert response.json() == {"tz": "UTC"}

    async def test_category_ttls_at_ten_minutes(self, client, clock):
        await client.put("/internal/cache/acme/calendars", params={"userId": "bob"}, json=["c"])
        await client.put("/internal/cache/acme/events/work", params={"userId": "bob"}, json=["e"])
        await client.put("/internal/cache/acme/preferences", params={"userId": "bob"}, json={"p": 1})

        clock.advance(10 * MINUTE_MS)

        calendars = await client.get("/internal/cache/acme/calendars", params={"userId": "bob"})
        events = await client.get("/internal/cache/acme/events/work", params={"userId": "bob"})
        preferences = await client.get("/internal/cache/acme/preferences", params={"userId": "bob"})

        assert calendars.status_code == 404
        assert events.status_code == 404
        assert preferences.status_code == 200

    async def test_clear_is_owner_exact(self, client):
        await client.put("/internal/cache/acme/calendars", params={"userId": "bob"}, json=["b"])
        await client.put("/internal/cache/acme/events/work", params={"userId": "bob"}, json=["e"])
        await client.put("/internal/cache/acme/calendars", params={"userId": "bobby"}, json=["bb"])

        cleared = await client.delete("/internal/cache/acme/clear", params={"userId": "bob"})

        assert cleared.status_code == 200
        assert cleared.json() == {"success": True, "clearedEntries": 2}
        survivor = await client.get("/internal/cache/acme/calendars", params={"userId": "bobby"})
        assert survivor.json() == ["bb"]

    async def test_clear_nothing(self, client):
        response = await client.delete("/internal/cache/acme/clear", params={"userId": "ghost"})

        assert response.status_code == 404
        assert response.json() == {
            "error": "No cached entries for userId",
            "success": False,
            "clearedEntries": 0,
        }

    async def test_owner_with_delimiter_rejected(self, client):
        response = await client.put("/internal/cache/acme/calendars", params={"userId": "a:b"}, json=[])

        assert response.status_code == 400

    async def test_put_invalid_json(self, client):
        response = await client.put("/internal/cache/acme/calendars", content=b"{nope",
                                    headers={"content-type": "application/json"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON body"}

    async def test_blank_user_is_default_owner(self, client):
        put = await client.put("/internal/cache/acme/calendars", params={"userId": ""}, json=["d"])
        assert put.status_code == 200

        hit = await client.get("/internal/cache/acme/calendars", params={"userId": "default"})
        assert hit.json() == ["d"]

        cleared = await client.delete("/internal/cache/acme/clear?userId=")
        assert cleared.status_code == 200
        assert cleared.json() == {"success": True, "clearedEntries": 1}
