"""Tests for /api/v1/oauth endpoints."""

REDIRECT = "https://relay.example.com/api/v1/oauth/callback"


def test_start_and_callback(client, shop, shop_adapter):
    start = client.post(
        "/api/v1/oauth/start",
        json={"platform_id": shop.platform_id, "redirect_uri": REDIRECT, "domain": "new.myshopify.com"},
    )

    assert start.status_code == 200
    state = start.json()["state"]
    assert start.json()["authorization_url"] == f"https://shop.test/authorize?state={state}"
    (begin_call,) = shop_adapter.calls_for("oauth")
    assert begin_call.platform_config["domain"] == "new.myshopify.com"

    callback = client.get(
        "/api/v1/oauth/callback",
        params={"state": state, "code": "abc", "shop": "new.myshopify.com"},
    )

    assert callback.status_code == 200
    assert callback.json() == {"status": "authorized", "result": {"accessToken": "token-for-abc"}}
    (exchange,) = shop_adapter.calls_for("oauth_callback")
    assert exchange.arguments["shop"] == "new.myshopify.com"


def test_state_cannot_be_replayed(client, shop):
    state = client.post(
        "/api/v1/oauth/start", json={"platform_id": shop.platform_id, "redirect_uri": REDIRECT}
    ).json()["state"]
    client.get("/api/v1/oauth/callback", params={"state": state, "code": "abc"})

    replay = client.get("/api/v1/oauth/callback", params={"state": state, "code": "abc"})

    assert replay.status_code == 400
    assert replay.json()["message"] == "Unknown or expired OAuth state"


def test_platform_without_oauth_is_500(client, channel):
    response = client.post(
        "/api/v1/oauth/start", json={"platform_id": channel.platform_id, "redirect_uri": REDIRECT}
    )

    assert response.status_code == 500
    assert response.json()["error_code"] == "E-3001"


def test_unknown_platform_is_404(client):
    response = client.post(
        "/api/v1/oauth/start", json={"platform_id": "missing", "redirect_uri": REDIRECT}
    )

    assert response.status_code == 404
