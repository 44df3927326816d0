"""App-level tests: health check, request ids and validation error shape."""


async def test_health(client_for):
    async with client_for() as client:
        res = await client.get("/health")

    assert res.status_code == 200
    data = res.json()
    assert data["status"] == "ok"
    assert data["env"] == "test"
    assert "version" in data


async def test_request_id_is_generated_or_echoed(client_for):
    async with client_for() as client:
        generated = await client.get("/health")
        echoed = await client.get("/health", headers={"X-Request-ID": "req-123"})

    assert generated.headers["X-Request-ID"]
    assert echoed.headers["X-Request-ID"] == "req-123"


async def test_invalid_path_uuid_is_a_validation_error(client_for, hr_user):
    async with client_for(hr_user) as client:
        res = await client.get("/feedback/match/not-a-uuid")

    assert res.status_code == 400
    assert res.json()["errors"][0]["field"] == "match_id"
