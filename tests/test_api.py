import json
from io import BytesIO

from flask.testing import FlaskClient


def _create(client: FlaskClient, **payload) -> dict:
    response = client.post("/api/products", json=payload)
    assert response.status_code == 201
    return response.get_json()["product"]


def test_health_check(client: FlaskClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok", "environment": "test", "products": 0}


def test_create_and_fetch_product(client: FlaskClient) -> None:
    product = _create(client, name="Milk", lot="L1", expiryText="2025-01-15")

    assert product["name"] == "Milk"
    assert product["row"] is None
    assert product["expiry"]["date"] == "2025-01-15"
    assert product["expiry"]["tier"] in {"skull", "red", "yellow", "green"}

    response = client.get(f"/api/products/{product['id']}")
    assert response.status_code == 200
    assert response.get_json()["lot"] == "L1"


def test_create_from_form_data(client: FlaskClient) -> None:
    response = client.post("/api/products", data={"name": "Form", "lot": "F1"})
    assert response.status_code == 201
    assert response.get_json()["product"]["lot"] == "F1"


def test_create_with_empty_fields_is_ignored(client: FlaskClient) -> None:
    response = client.post("/api/products", json={"name": " "})
    assert response.status_code == 200
    assert response.get_json() == {"product": None}
    assert client.get("/api/products").get_json() == []


def test_create_in_occupied_cell_conflicts(client: FlaskClient) -> None:
    _create(client, name="A", row=0, col=0)
    response = client.post("/api/products", json={"name": "B", "row": 0, "col": 0})

    assert response.status_code == 409
    assert response.get_json()["code"] == "cell_occupied"


def test_update_only_touches_sent_fields(client: FlaskClient) -> None:
    product = _create(client, name="Milk", lot="L1")
    response = client.put(f"/api/products/{product['id']}", json={"lot": "L2"})

    assert response.status_code == 200
    body = response.get_json()
    assert body["name"] == "Milk"
    assert body["lot"] == "L2"


def test_delete_then_missing(client: FlaskClient) -> None:
    product = _create(client, name="Milk")

    assert client.delete(f"/api/products/{product['id']}").status_code == 204
    response = client.get(f"/api/products/{product['id']}")
    assert response.status_code == 404
    assert response.get_json()["code"] == "not_found"


def test_list_filters(client: FlaskClient) -> None:
    _create(client, name="Latte", row=1, col=1)
    _create(client, name="Burro")

    names = [item["name"] for item in client.get("/api/products?q=latte").get_json()]
    assert names == ["Latte"]
    placed = client.get("/api/products?placed=false").get_json()
    assert [item["name"] for item in placed] == ["Burro"]

    response = client.get("/api/products?status=purple")
    assert response.status_code == 400
    assert response.get_json()["code"] == "invalid_status"


def test_move_pick_and_return(client: FlaskClient) -> None:
    product = _create(client, name="Milk")
    product_id = product["id"]

    moved = client.post(f"/api/products/{product_id}/position", json={"row": 2, "col": 3})
    assert moved.status_code == 200
    assert (moved.get_json()["row"], moved.get_json()["col"]) == (2, 3)

    picked = client.post(f"/api/products/{product_id}/pick").get_json()
    assert picked["inPrelievo"] is True
    assert picked["_prevRow"] == 2

    locked = client.put(f"/api/products/{product_id}", json={"name": "x"})
    assert locked.status_code == 409
    assert locked.get_json()["code"] == "invalid_state"

    returned = client.post(f"/api/products/{product_id}/return").get_json()
    assert (returned["row"], returned["col"]) == (2, 3)
    assert "_prevRow" not in returned


def test_return_to_taken_cell_conflicts(client: FlaskClient) -> None:
    first = _create(client, name="A", row=0, col=0)
    second = _create(client, name="B")
    client.post(f"/api/products/{first['id']}/pick")
    client.post(f"/api/products/{second['id']}/position", json={"row": 0, "col": 0})

    response = client.post(f"/api/products/{first['id']}/return")
    assert response.status_code == 409
    assert response.get_json()["code"] == "cell_occupied"


def test_move_validation_errors(client: FlaskClient) -> None:
    product = _create(client, name="Milk")

    invalid = client.post(f"/api/products/{product['id']}/position", json={"row": "abc"})
    assert invalid.status_code == 400
    assert invalid.get_json()["code"] == "invalid_payload"

    outside = client.post(
        f"/api/products/{product['id']}/position", json={"row": 40, "col": 0}
    )
    assert outside.status_code == 400
    assert outside.get_json()["code"] == "out_of_bounds"


def test_grid_cell_editing(client: FlaskClient) -> None:
    created = client.put("/api/grid/1/2", json={"name": "Yogurt"}).get_json()["product"]
    assert (created["row"], created["col"]) == (1, 2)

    edited = client.put("/api/grid/1/2", json={"name": "Yogurt greco"}).get_json()["product"]
    assert edited["id"] == created["id"]

    grid = client.get("/api/grid").get_json()
    assert grid["rows"] == 4
    assert grid["cols"] == 5
    assert grid["cells"] == [{"row": 1, "col": 2, "product_id": created["id"]}]

    assert client.put("/api/grid/9/9", json={"name": "x"}).status_code == 400
    assert client.put("/api/grid/0/0", json={}).get_json() == {"product": None}


def test_undo(client: FlaskClient) -> None:
    assert client.post("/api/undo").get_json() == {"undone": False, "remaining": 0}
    _create(client, name="Milk")

    assert client.post("/api/undo").get_json() == {"undone": True, "remaining": 0}
    assert client.get("/api/products").get_json() == []


def test_export_download(client: FlaskClient) -> None:
    _create(client, name="Milk", row=0, col=1)
    response = client.get("/api/export")

    assert response.status_code == 200
    disposition = response.headers["Content-Disposition"]
    assert disposition.startswith("attachment; filename=inventario_")
    assert disposition.endswith(".json")
    records = json.loads(response.data)
    assert records[0]["name"] == "Milk"
    assert records[0]["col"] == 1


def test_import_requires_confirmation(client: FlaskClient) -> None:
    response = client.post(
        "/api/import", data=b'[{"name": "Milk"}]', content_type="application/json"
    )
    assert response.status_code == 400
    assert response.get_json()["code"] == "confirmation_required"


def test_import_raw_body(client: FlaskClient) -> None:
    _create(client, name="Old")
    payload = {"products": [{"id": "p1", "name": "Milk", "row": 0, "col": 0}, {"row": 1}]}
    response = client.post(
        "/api/import?confirm=1", data=json.dumps(payload), content_type="application/json"
    )

    assert response.status_code == 200
    assert response.get_json() == {
        "imported": 1,
        "dropped": 1,
        "reassigned_ids": 0,
        "unplaced": 0,
    }
    names = [item["name"] for item in client.get("/api/products").get_json()]
    assert names == ["Milk"]


def test_import_file_upload(client: FlaskClient) -> None:
    upload = "\ufeff" + json.dumps([{"nome": "Burro", "scadenza": "01/2030"}])
    response = client.post(
        "/api/import",
        data={"confirm": "1", "file": (BytesIO(upload.encode("utf-8")), "export.json")},
        content_type="multipart/form-data",
    )

    assert response.status_code == 200
    assert response.get_json()["imported"] == 1
    product = client.get("/api/products").get_json()[0]
    assert product["expiry"]["date"] == "2030-01-31"


def test_import_errors(client: FlaskClient) -> None:
    cases = [
        (b"{broken", "parse_error"),
        (b'{"items": "foo"}', "invalid_format"),
        (b"<html><body>502</body></html>", "html"),
        (b"[]", "empty"),
    ]
    for body, code in cases:
        response = client.post(
            "/api/import?confirm=1", data=body, content_type="application/json"
        )
        assert response.status_code == 400
        assert response.get_json()["code"] == code


def test_stats(client: FlaskClient) -> None:
    product = _create(client, name="Milk", expiryText="2001-01-01")
    client.delete(f"/api/products/{product['id']}")
    _create(client, name="Burro", expiryText="2001-01-01")

    body = client.get("/api/stats").get_json()

    assert body["statistics"]["counts"]["add"] == 2
    assert body["statistics"]["top_removed"] == [{"name": "Milk", "count": 1}]
    assert [item["name"] for item in body["expiry"]["skull"]] == ["Burro"]


def test_update_that_clears_every_field_conflicts(client: FlaskClient) -> None:
    product = _create(client, name="Milk")
    response = client.put(
        f"/api/products/{product['id']}", json={"name": "", "lot": "", "expiryText": ""}
    )

    assert response.status_code == 409
    assert response.get_json()["code"] == "invalid_state"
    assert client.get(f"/api/products/{product['id']}").get_json()["name"] == "Milk"
