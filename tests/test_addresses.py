"""
Saved shipping addresses
"""
from bson import ObjectId


def add(client, headers, payload, **overrides):
    body = dict(payload, **overrides)
    return client.post("/api/users/addresses", json=body, headers=headers)


def test_add_and_list(client, shopper_headers, address_payload):
    response = add(client, shopper_headers, address_payload)
    assert response.status_code == 200
    assert response.json()["message"] == "Address added successfully"
    addresses = client.get("/api/users/addresses", headers=shopper_headers).json()["addresses"]
    assert len(addresses) == 1
    assert addresses[0]["city"] == "Springfield"
    assert ObjectId.is_valid(addresses[0]["_id"])


def test_every_field_required(client, shopper_headers, address_payload):
    incomplete = dict(address_payload)
    del incomplete["zip_code"]
    assert client.post("/api/users/addresses", json=incomplete, headers=shopper_headers).status_code == 422
    assert add(client, shopper_headers, address_payload, city="").status_code == 422


def test_update_touches_only_target(client, shopper_headers, address_payload):
    add(client, shopper_headers, address_payload, label="Home")
    add(client, shopper_headers, address_payload, label="Work", street_address="1 Office Park")
    home, work = client.get("/api/users/addresses", headers=shopper_headers).json()["addresses"]

    changed = dict(address_payload, label="Home", street_address="99 New Rd")
    response = client.put(f"/api/users/addresses/{home['_id']}", json=changed, headers=shopper_headers)
    assert response.status_code == 200

    after = {a["_id"]: a for a in client.get("/api/users/addresses", headers=shopper_headers).json()["addresses"]}
    assert after[home["_id"]]["streetAddress"] == "99 New Rd"
    assert after[work["_id"]] == work


def test_single_default(client, shopper_headers, address_payload):
    add(client, shopper_headers, address_payload, label="Home", is_default=True)
    add(client, shopper_headers, address_payload, label="Work", is_default=True)
    addresses = client.get("/api/users/addresses", headers=shopper_headers).json()["addresses"]
    assert [a["label"] for a in addresses if a["isDefault"]] == ["Work"]

    home = addresses[0]
    client.put(f"/api/users/addresses/{home['_id']}", json=dict(address_payload, label="Home", is_default=True), headers=shopper_headers)
    addresses = client.get("/api/users/addresses", headers=shopper_headers).json()["addresses"]
    assert [a["label"] for a in addresses if a["isDefault"]] == ["Home"]


def test_update_unknown_address(client, shopper_headers, address_payload):
    response = client.put(f"/api/users/addresses/{ObjectId()}", json=address_payload, headers=shopper_headers)
    assert response.status_code == 404


def test_delete(client, shopper_headers, address_payload):
    add(client, shopper_headers, address_payload, label="Home")
    add(client, shopper_headers, address_payload, label="Work")
    home, work = client.get("/api/users/addresses", headers=shopper_headers).json()["addresses"]
    response = client.delete(f"/api/users/addresses/{home['_id']}", headers=shopper_headers)
    assert response.status_code == 200
    assert [a["_id"] for a in response.json()["addresses"]] == [work["_id"]]
    assert client.delete(f"/api/users/addresses/{home['_id']}", headers=shopper_headers).status_code == 404


def test_addresses_are_per_user(client, make_user, headers_for, address_payload):
    alice, bob = make_user(email="alice@example.com"), make_user(email="bob@example.com")
    add(client, headers_for(alice), address_payload)
    assert client.get("/api/users/addresses", headers=headers_for(bob)).json()["addresses"] == []


def test_camel_case_body_from_mobile_app(client, shopper_headers, mongo, shopper):
    body = {
        "label": "Home",
        "fullName": "Sam Rivera",
        "streetAddress": "12 Elm St",
        "city": "Springfield",
        "state": "IL",
        "zipCode": "62701",
        "phoneNumber": "555-0100",
        "isDefault": True,
    }
    response = client.post("/api/users/addresses", json=body, headers=shopper_headers)
    assert response.status_code == 200
    saved = response.json()["addresses"][0]
    assert saved["fullName"] == "Sam Rivera"
    assert saved["isDefault"] is True
    stored = mongo["user"].find_one({"_id": shopper["_id"]})["addresses"][0]
    assert stored["zip_code"] == "62701"
