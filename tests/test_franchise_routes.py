from pizza_service.models.franchise import Franchise
from pizza_service.models.user import RoleGrant
from tests.api_helpers import admin_token, auth_headers, build_api, register
from tests.fixtures_data import DINER_USER, FRANCHISEE_USER


def _create_franchise(api, token, name, emails=()):
    return api.client.post(
        "/api/franchise",
        json={"name": name, "admins": [{"email": email} for email in emails]},
        headers=auth_headers(token),
    )


def test_admin_creates_franchise_with_admins():
    api = build_api()
    franchisee = register(api.client, FRANCHISEE_USER)

    response = _create_franchise(api, admin_token(api.client), "pizzaPocket", [FRANCHISEE_USER["email"]])

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "pizzaPocket"
    assert body["id"]
    assert body["admins"] == [
        {"id": franchisee["user"]["id"], "name": FRANCHISEE_USER["name"], "email": FRANCHISEE_USER["email"]}
    ]
    me = api.client.get("/api/user/me", headers=auth_headers(franchisee["token"])).json()
    assert {"role": "franchisee", "objectId": body["id"]} in me["roles"]


def test_create_franchise_requires_authentication():
    api = build_api()

    response = api.client.post("/api/franchise", json={"name": "nope", "admins": []})

    assert response.status_code == 401
    assert response.json() == {"message": "unauthorized"}


def test_create_franchise_with_invalid_token_is_unauthorized():
    api = build_api()

    response = _create_franchise(api, "not.a.token", "nope")

    assert response.status_code == 401
    assert response.json() == {"message": "unauthorized"}


def test_diner_cannot_create_franchise():
    api = build_api()
    diner = register(api.client, DINER_USER)

    response = _create_franchise(api, diner["token"], "nope")

    assert response.status_code == 403
    assert response.json() == {"message": "unable to create a franchise"}


def test_unknown_admin_email_creates_nothing():
    api = build_api()

    response = _create_franchise(api, admin_token(api.client), "ghost franchise", ["ghost@test.com"])

    assert response.status_code == 404
    assert response.json() == {"message": "unknown user for franchise admin ghost@test.com provided"}
    db = api.session_factory()
    try:
        assert db.query(Franchise).count() == 0
    finally:
        db.close()


def test_duplicate_franchise_name_is_conflict():
    api = build_api()
    token = admin_token(api.client)
    _create_franchise(api, token, "pizzaPocket")

    response = _create_franchise(api, token, "pizzaPocket")

    assert response.status_code == 409
    assert response.json() == {"message": "franchise name already exists"}


def test_franchisee_creates_store_only_in_own_franchise():
    api = build_api()
    franchisee = register(api.client, FRANCHISEE_USER)
    token = admin_token(api.client)
    own = _create_franchise(api, token, "A", [FRANCHISEE_USER["email"]]).json()
    other = _create_franchise(api, token, "B").json()

    allowed = api.client.post(
        f"/api/franchise/{own['id']}/store",
        json={"name": "SLC"},
        headers=auth_headers(franchisee["token"]),
    )
    denied = api.client.post(
        f"/api/franchise/{other['id']}/store",
        json={"name": "SLC"},
        headers=auth_headers(franchisee["token"]),
    )

    assert allowed.status_code == 200
    assert allowed.json()["name"] == "SLC"
    assert allowed.json()["totalRevenue"] == 0
    assert allowed.json()["franchiseId"] == own["id"]
    assert denied.status_code == 403
    assert denied.json() == {"message": "unable to create a store"}


def test_admin_store_in_unknown_franchise_is_not_found():
    api = build_api()

    response = api.client.post(
        "/api/franchise/999/store",
        json={"name": "SLC"},
        headers=auth_headers(admin_token(api.client)),
    )

    assert response.status_code == 404


def test_public_listing_hides_admin_details():
    api = build_api()
    register(api.client, FRANCHISEE_USER)
    token = admin_token(api.client)
    franchise = _create_franchise(api, token, "pizzaPocket", [FRANCHISEE_USER["email"]]).json()
    api.client.post(f"/api/franchise/{franchise['id']}/store", json={"name": "SLC"}, headers=auth_headers(token))

    public = api.client.get("/api/franchise").json()
    detailed = api.client.get("/api/franchise", headers=auth_headers(token)).json()

    assert public["more"] is False
    assert public["franchises"][0] == {
        "id": franchise["id"],
        "name": "pizzaPocket",
        "stores": [{"id": 1, "name": "SLC"}],
    }
    assert detailed["franchises"][0]["admins"][0]["email"] == FRANCHISEE_USER["email"]
    assert detailed["franchises"][0]["stores"][0]["totalRevenue"] == 0


def test_franchisee_sees_details_of_own_franchise_only():
    api = build_api()
    franchisee = register(api.client, FRANCHISEE_USER)
    token = admin_token(api.client)
    own = _create_franchise(api, token, "A", [FRANCHISEE_USER["email"]]).json()
    other = _create_franchise(api, token, "B").json()
    for franchise_id in (own["id"], other["id"]):
        api.client.post(f"/api/franchise/{franchise_id}/store", json={"name": "SLC"}, headers=auth_headers(token))

    response = api.client.get("/api/franchise", headers=auth_headers(franchisee["token"]))

    assert response.status_code == 200
    listed = {f["id"]: f for f in response.json()["franchises"]}
    assert listed[own["id"]]["admins"] == [
        {"id": franchisee["user"]["id"], "name": FRANCHISEE_USER["name"], "email": FRANCHISEE_USER["email"]}
    ]
    assert listed[own["id"]]["stores"][0]["totalRevenue"] == 0
    assert "admins" not in listed[other["id"]]
    assert "totalRevenue" not in listed[other["id"]]["stores"][0]


def test_franchise_listing_filters_by_prefix():
    api = build_api()
    token = admin_token(api.client)
    for name in ("Foobar", "Foo", "xFoo", "foo lower"):
        _create_franchise(api, token, name)

    response = api.client.get("/api/franchise?name=Foo*")

    assert sorted(f["name"] for f in response.json()["franchises"]) == ["Foo", "Foobar"]


def test_user_franchises_visible_to_self_and_admin_only():
    api = build_api()
    franchisee = register(api.client, FRANCHISEE_USER)
    diner = register(api.client, DINER_USER)
    token = admin_token(api.client)
    _create_franchise(api, token, "pizzaPocket", [FRANCHISEE_USER["email"]])
    user_id = franchisee["user"]["id"]

    own = api.client.get(f"/api/franchise/{user_id}", headers=auth_headers(franchisee["token"]))
    as_admin = api.client.get(f"/api/franchise/{user_id}", headers=auth_headers(token))
    as_stranger = api.client.get(f"/api/franchise/{user_id}", headers=auth_headers(diner["token"]))

    assert [f["name"] for f in own.json()] == ["pizzaPocket"]
    assert [f["name"] for f in as_admin.json()] == ["pizzaPocket"]
    assert as_stranger.status_code == 200
    assert as_stranger.json() == []


def test_delete_store_and_franchise():
    api = build_api()
    register(api.client, FRANCHISEE_USER)
    token = admin_token(api.client)
    franchise = _create_franchise(api, token, "pizzaPocket", [FRANCHISEE_USER["email"]]).json()
    store = api.client.post(
        f"/api/franchise/{franchise['id']}/store", json={"name": "SLC"}, headers=auth_headers(token)
    ).json()

    deleted_store = api.client.delete(
        f"/api/franchise/{franchise['id']}/store/{store['id']}", headers=auth_headers(token)
    )
    missing_store = api.client.delete(
        f"/api/franchise/{franchise['id']}/store/{store['id']}", headers=auth_headers(token)
    )
    deleted_franchise = api.client.delete(f"/api/franchise/{franchise['id']}", headers=auth_headers(token))

    assert deleted_store.status_code == 200
    assert missing_store.status_code == 404
    assert deleted_franchise.status_code == 200
    db = api.session_factory()
    try:
        assert db.query(Franchise).count() == 0
        assert db.query(RoleGrant).filter(RoleGrant.role == "franchisee").count() == 0
    finally:
        db.close()


def test_diner_cannot_delete_franchise():
    api = build_api()
    diner = register(api.client, DINER_USER)
    franchise = _create_franchise(api, admin_token(api.client), "pizzaPocket").json()

    response = api.client.delete(f"/api/franchise/{franchise['id']}", headers=auth_headers(diner["token"]))

    assert response.status_code == 403
    assert response.json() == {"message": "unable to delete a franchise"}
