"""HTTP layer: routers, status codes and error mapping."""

API = "/api/v1"


def test_root(api_client):
    r = api_client.get("/")
    assert r.status_code == 200
    assert r.json()["health"] == f"{API}/health"


def test_health(api_client, trips):
    r = api_client.get(f"{API}/health/")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "healthy"
    assert body["database"] == "available"
    assert body["trips"] == 4
    assert body["dirty_queue"] == 0


def test_liveness_and_readiness(api_client):
    assert api_client.get(f"{API}/health/live").json()["alive"] is True
    assert api_client.get(f"{API}/health/ready").json()["ready"] is True


def test_search(api_client, trips):
    r = api_client.get(f"{API}/trips/search", params={"q": "john@example.com"})
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["tier"] == "identifier"
    assert body["matches"][0]["trip_id"] == trips["hawaii"]
    assert body["matches"][0]["score"] >= 120
    assert "X-Process-Time" in r.headers


def test_search_no_results(api_client, trips):
    body = api_client.get(f"{API}/trips/search", params={"q": "zzqxv"}).json()
    assert body["tier"] == "exhausted"
    assert body["matches"] == []
    assert body["suggestion"]


def test_search_validation(api_client):
    assert api_client.get(f"{API}/trips/search").status_code == 422
    assert api_client.get(f"{API}/trips/search", params={"q": "x", "limit": 0}).status_code == 422


def test_semantic_search(api_client, trips):
    r = api_client.get(f"{API}/trips/semantic-search", params={"q": "Hawaii vacation", "max_results": 3})
    assert r.status_code == 200
    results = r.json()
    assert results[0]["trip_id"] == trips["hawaii"]
    assert 0 < results[0]["score"] <= 1.0


def test_get_trip_with_facts(api_client, trips):
    r = api_client.get(f"{API}/trips/42")
    assert r.status_code == 200
    body = r.json()
    assert body["fresh"] is True
    assert body["trip"]["trip_name"] == "Chisholm Mediterranean Cruise"
    assert body["facts"]["traveler_count"] == 1


def test_unknown_trip(api_client, trips):
    assert api_client.get(f"{API}/trips/9999").status_code == 404
    assert api_client.post(f"{API}/trips/9999/facts/ensure").status_code == 404
    assert api_client.post(f"{API}/trips/9999/components/reindex").status_code == 404


def test_ensure_facts(api_client, trips):
    body = api_client.post(f"{API}/trips/{trips['sara']}/facts/ensure").json()
    assert body == {"trip_id": trips["sara"], "fresh": True, "deferred": False}


def test_refresh_endpoints(api_client, trips):
    assert api_client.post(f"{API}/facts/refresh").json() == {"processed": 0}
    assert api_client.post(f"{API}/facts/refresh-dirty", params={"limit": 10}).json() == {"processed": 0, "remaining": 0}


def test_reindex_components(api_client, trips):
    body = api_client.post(f"{API}/trips/{trips['hawaii']}/components/reindex").json()
    assert body["trip_id"] == trips["hawaii"]
    assert body["components"] > 0


def test_throttle_key_prefers_agent_key():
    from starlette.requests import Request
    from tripdesk.core.rate_limiting import client_key

    scope = {"type": "http", "headers": [(b"x-api-key", b"agent-7")], "client": ("10.0.0.1", 5000)}
    assert client_key(Request(scope)) == "key:agent-7"
    assert client_key(Request({"type": "http", "headers": [], "client": ("10.0.0.1", 5000)})) == "10.0.0.1"


def test_trip_id_beyond_integer_range(api_client, trips):
    assert api_client.get(f"{API}/trips/99999999999999999999").status_code == 422
    r = api_client.get(f"{API}/trips/search", params={"q": "99999999999999999999"})
    assert r.status_code == 200
    assert r.json()["tier"] == "exhausted"


def test_search_reports_complexity(api_client, trips):
    body = api_client.get(f"{API}/trips/search", params={"q": "show me all Hawaii trips"}).json()
    assert body["complexity"] == "complex"
    assert body["optimized_terms"] == ["hawaii"]
