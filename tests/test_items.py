def test_staff_cannot_manage_catalog(client, staff, login):
    h = login("staff@example.com")
    r = client.post("/items", json={"name": "Marquee"}, headers=h)
    assert r.status_code == 403
    assert r.json()["detail"]["code"] == "FORBIDDEN"

    r = client.get("/items", headers=h)
    assert r.status_code == 200


def test_manager_catalog_crud(client, manager, login):
    h = login("manager@example.com")

    r = client.post("/items", json={"name": "Trestle table", "category": "Tables"}, headers=h)
    assert r.status_code == 200
    table = r.json()
    assert table["is_active"] is True

    r = client.post("/items", json={"name": "Arbour"}, headers=h)
    arbour_id = r.json()["id"]

    r = client.put(f"/items/{arbour_id}", json={"is_active": False}, headers=h)
    assert r.status_code == 200
    assert r.json()["is_active"] is False

    names = [i["name"] for i in client.get("/items", headers=h).json()]
    assert names == ["Arbour", "Trestle table"]

    names = [i["name"] for i in client.get("/items?available=true", headers=h).json()]
    assert names == ["Trestle table"]

    r = client.delete(f"/items/{arbour_id}", headers=h)
    assert r.status_code == 200
    assert client.get(f"/items/{arbour_id}", headers=h).status_code == 404


def test_create_item_requires_name(client, manager, login):
    r = client.post("/items", json={"name": "  "}, headers=login("manager@example.com"))
    assert r.status_code == 400


def test_delete_item_in_use_conflicts(client, manager, login):
    h = login("manager@example.com")
    item_id = client.post("/items", json={"name": "Heater"}, headers=h).json()["id"]
    client.post("/orders", json={"customer_name": "Cold Night", "items": [{"catalog_item_id": item_id}]}, headers=h)

    r = client.delete(f"/items/{item_id}", headers=h)
    assert r.status_code == 409
    assert r.json()["detail"]["code"] == "ITEM_IN_USE"
