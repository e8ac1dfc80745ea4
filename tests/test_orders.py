def _create_order(client, h, items, **extra):
    body = {"customer_name": "Garden Party", "items": items, **extra}
    r = client.post("/orders", json=body, headers=h)
    assert r.status_code == 200, r.text
    return r.json()["id"]


def test_order_checkout_checkin_flow(client, staff, login, make_item):
    h = login("staff@example.com")
    chairs = make_item("Folding chair")

    order_id = _create_order(
        client, h, [{"catalog_item_id": chairs.id, "quantity": 2}, {"custom_item_name": "Bunting", "quantity": 1}]
    )

    r = client.get(f"/orders/{order_id}", headers=h)
    assert r.status_code == 200
    order = r.json()
    assert order["status"] == "draft"
    assert [i["name"] for i in order["items"]] == ["Folding chair", "Bunting"]
    first, second = [i["id"] for i in order["items"]]

    r = client.post(
        f"/orders/{order_id}/checkout",
        json={"items": [{"item_id": first, "quantity": 2}, {"item_id": second, "quantity": 1}]},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json()["status"] == "out"

    r = client.post(f"/orders/{order_id}/checkin", json={"items": [{"item_id": first, "quantity": 2}]}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "partial_return"

    r = client.post(f"/orders/{order_id}/checkin", json={"items": [{"item_id": second, "quantity": 1}]}, headers=h)
    assert r.status_code == 200
    data = r.json()
    assert data["status"] == "returned"
    assert data["actual_return_date"] is not None
    assert [(i["quantity_checked_out"], i["quantity_checked_in"]) for i in data["items"]] == [(2, 2), (1, 1)]


def test_checkout_errors(client, staff, login):
    h = login("staff@example.com")
    order_id = _create_order(client, h, [{"custom_item_name": "Urn", "quantity": 1}])
    line_id = client.get(f"/orders/{order_id}", headers=h).json()["items"][0]["id"]

    r = client.post(f"/orders/{order_id}/checkout", json={"items": []}, headers=h)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "EMPTY_ITEMS"

    r = client.post(f"/orders/{order_id}/checkout", json={"items": [{"item_id": line_id, "quantity": 2}]}, headers=h)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "QUANTITY_EXCEEDED"

    r = client.post("/orders/9999/checkout", json={"items": [{"item_id": line_id, "quantity": 1}]}, headers=h)
    assert r.status_code == 404


def test_checkin_on_draft_order_is_rejected(client, staff, login):
    h = login("staff@example.com")
    order_id = _create_order(client, h, [{"custom_item_name": "Urn", "quantity": 1}])
    line_id = client.get(f"/orders/{order_id}", headers=h).json()["items"][0]["id"]

    r = client.post(f"/orders/{order_id}/checkin", json={"items": [{"item_id": line_id, "quantity": 0}]}, headers=h)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "ORDER_NOT_OUT"

    data = client.get(f"/orders/{order_id}", headers=h).json()
    assert data["status"] == "draft"
    assert data["actual_return_date"] is None


def test_add_item_endpoint(client, staff, login, make_item):
    h = login("staff@example.com")
    order_id = _create_order(client, h, [])

    r = client.post(f"/orders/{order_id}/items", json={"custom_item_name": "Rope", "quantity": 3}, headers=h)
    assert r.status_code == 200
    assert "id" in r.json()

    r = client.post(f"/orders/{order_id}/items", json={"quantity": 1}, headers=h)
    assert r.status_code == 400

    r = client.post(f"/orders/{order_id}/items", json={"catalog_item_id": 12345}, headers=h)
    assert r.status_code == 404


def test_list_and_update_orders(client, staff, login):
    h = login("staff@example.com")
    first = _create_order(client, h, [{"custom_item_name": "Tent", "quantity": 1}])
    _create_order(client, h, [], customer_name="Other")

    r = client.get("/orders?status=active", headers=h)
    assert r.status_code == 200
    data = r.json()
    assert data["total"] == 2
    assert {o["customer_name"] for o in data["items"]} == {"Garden Party", "Other"}

    r = client.put(f"/orders/{first}", json={"status": "confirmed", "notes": "deliver by 9am"}, headers=h)
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"
    assert r.json()["notes"] == "deliver by 9am"

    r = client.put(f"/orders/{first}", json={"status": "completed"}, headers=h)
    assert r.status_code == 400
    assert r.json()["detail"]["code"] == "INVALID_TRANSITION"

    r = client.get("/orders?status=confirmed", headers=h)
    assert r.json()["total"] == 1


def test_delete_order_requires_manager(client, staff, manager, login):
    staff_h = login("staff@example.com")
    order_id = _create_order(client, staff_h, [{"custom_item_name": "Tent", "quantity": 1}])

    r = client.delete(f"/orders/{order_id}", headers=staff_h)
    assert r.status_code == 403

    r = client.delete(f"/orders/{order_id}", headers=login("manager@example.com"))
    assert r.status_code == 200
    assert client.get(f"/orders/{order_id}", headers=staff_h).status_code == 404


def test_dashboard_endpoint(client, staff, login):
    h = login("staff@example.com")
    order_id = _create_order(client, h, [{"custom_item_name": "Lantern", "quantity": 4}], expected_return_date="2020-01-01")
    line_id = client.get(f"/orders/{order_id}", headers=h).json()["items"][0]["id"]
    client.post(f"/orders/{order_id}/checkout", json={"items": [{"item_id": line_id, "quantity": 4}]}, headers=h)

    r = client.get("/dashboard", headers=h)
    assert r.status_code == 200
    data = r.json()
    assert data["items_out"] == 4
    assert data["overdue_orders"] == 1
    assert data["active_orders"] == 1
    assert data["recent_activity"][0]["type"] == "checkout"
    assert data["recent_activity"][0]["order_name"] == "Garden Party"


def test_export_xlsx(client, staff, login):
    h = login("staff@example.com")
    _create_order(client, h, [{"custom_item_name": "Tent", "quantity": 1}])

    r = client.get("/orders/export.xlsx", headers=h)
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert r.content[:2] == b"PK"
