"""Tests for platform, shop and channel registration endpoints."""


def test_create_platform_hides_secrets(client):
    response = client.post(
        "/api/v1/platforms",
        json={
            "name": "Shopify",
            "kind": "shop",
            "operations": {"getProductFunction": "shopify", "addTrackingFunction": "shopify"},
            "webhook_secret": "s3cret",
            "app_secret": "app-s3cret",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["has_webhook_secret"] is True
    assert data["operations"]["getProductFunction"] == "shopify"
    assert "s3cret" not in response.text


def test_operation_outside_kind_is_400(client):
    response = client.post(
        "/api/v1/platforms",
        json={"name": "Shopify", "kind": "shop", "operations": {"createPurchaseFunction": "x"}},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "E-2003"


def test_unknown_kind_is_422(client):
    response = client.post("/api/v1/platforms", json={"name": "X", "kind": "warehouse"})

    assert response.status_code == 422


def test_list_and_get_platforms(client, shop, channel):
    channels = client.get("/api/v1/platforms", params={"kind": "channel"}).json()

    assert [p["id"] for p in channels] == [channel.platform_id]
    fetched = client.get(f"/api/v1/platforms/{shop.platform_id}").json()
    assert fetched["kind"] == "shop"
    assert client.get("/api/v1/platforms/missing").status_code == 404


def test_create_shop_and_channel(client):
    shop_platform = client.post("/api/v1/platforms", json={"name": "S", "kind": "shop"}).json()
    channel_platform = client.post("/api/v1/platforms", json={"name": "C", "kind": "channel"}).json()

    shop = client.post(
        "/api/v1/shops",
        json={
            "name": "Store",
            "owner_id": "owner-9",
            "platform_id": shop_platform["id"],
            "access_token": "tok",
            "link_mode": "simultaneous",
        },
    )
    channel = client.post(
        "/api/v1/channels",
        json={"name": "Supplier", "owner_id": "owner-9", "platform_id": channel_platform["id"]},
    )

    assert shop.status_code == 201
    assert shop.json()["link_mode"] == "simultaneous"
    assert "tok" not in shop.text
    assert channel.status_code == 201
    assert channel.json()["link_mode"] is None
    assert [s["id"] for s in client.get("/api/v1/shops", params={"owner_id": "owner-9"}).json()] == [
        shop.json()["id"]
    ]
    assert client.get(f"/api/v1/channels/{channel.json()['id']}").json()["name"] == "Supplier"


def test_shop_on_channel_platform_is_400(client, channel):
    response = client.post(
        "/api/v1/shops",
        json={"name": "Store", "owner_id": "owner-1", "platform_id": channel.platform_id},
    )

    assert response.status_code == 400


def test_unknown_shop_and_channel(client):
    assert client.get("/api/v1/shops/missing").status_code == 404
    assert client.get("/api/v1/channels/missing").status_code == 404
