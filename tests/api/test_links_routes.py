"""Tests for /api/v1/links endpoints."""


def test_links_are_ranked_in_creation_order(client, shop, make_channel):
    east, west = make_channel("East"), make_channel("West")

    first = client.post("/api/v1/links", json={"shop_id": shop.id, "channel_id": east.id})
    second = client.post(
        "/api/v1/links",
        json={"shop_id": shop.id, "channel_id": west.id, "filters": {"country": "US"}},
    )

    assert first.status_code == 201
    assert (first.json()["rank"], second.json()["rank"]) == (1, 2)
    listed = client.get("/api/v1/links", params={"shop_id": shop.id}).json()
    assert [link["channel_id"] for link in listed] == [east.id, west.id]
    assert listed[1]["filters"] == {"country": "US"}


def test_invalid_filter_is_400(client, shop, channel):
    response = client.post(
        "/api/v1/links",
        json={"shop_id": shop.id, "channel_id": channel.id, "filters": {"colour": "red"}},
    )

    assert response.status_code == 400
    assert response.json()["error_code"] == "E-2002"
    assert "unknown field 'colour'" in response.json()["message"]


def test_unknown_channel_is_404(client, shop):
    response = client.post("/api/v1/links", json={"shop_id": shop.id, "channel_id": "missing"})

    assert response.status_code == 404


def test_update_filters_keeps_rank(client, shop, channel):
    link = client.post("/api/v1/links", json={"shop_id": shop.id, "channel_id": channel.id}).json()

    response = client.patch(
        f"/api/v1/links/{link['id']}/filters",
        json={"filters": {"total_price": {"gte": 100}}},
    )

    assert response.status_code == 200
    assert response.json()["filters"] == {"total_price": {"gte": 100}}
    assert response.json()["rank"] == link["rank"]


def test_delete(client, shop, channel):
    link = client.post("/api/v1/links", json={"shop_id": shop.id, "channel_id": channel.id}).json()

    response = client.delete(f"/api/v1/links/{link['id']}")

    assert response.json() == {"status": "deleted", "link_id": link["id"]}
    assert client.get("/api/v1/links", params={"shop_id": shop.id}).json() == []
    assert client.delete(f"/api/v1/links/{link['id']}").status_code == 404
