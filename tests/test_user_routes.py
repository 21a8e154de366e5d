from pizza_service.models.order import Order
from pizza_service.services.auth_manager import REVOKE_ALWAYS, REVOKE_NEVER
from tests.api_helpers import admin_token, auth_headers, build_api, login, register
from tests.fixtures_data import DINER_USER, FRANCHISEE_USER


def test_me_requires_authentication():
    api = build_api()

    response = api.client.get("/api/user/me")

    assert response.status_code == 401
    assert response.json() == {"message": "unauthorized"}


def test_me_returns_caller():
    api = build_api()
    token = register(api.client, DINER_USER)["token"]

    response = api.client.get("/api/user/me", headers=auth_headers(token))

    assert response.status_code == 200
    body = response.json()
    assert body["name"] == DINER_USER["name"]
    assert body["email"] == DINER_USER["email"]
    assert body["roles"] == [{"role": "diner"}]


def test_user_can_update_self_and_receives_new_token():
    api = build_api()
    registered = register(api.client, DINER_USER)
    user_id = registered["user"]["id"]

    response = api.client.put(
        f"/api/user/{user_id}",
        json={"name": "renamed diner"},
        headers=auth_headers(registered["token"]),
    )

    assert response.status_code == 200
    body = response.json()
    assert body["user"]["name"] == "renamed diner"
    assert body["token"]
    # name-only update keeps existing sessions alive by default
    assert api.client.get("/api/user/me", headers=auth_headers(registered["token"])).status_code == 200


def test_password_change_revokes_old_sessions_by_default():
    api = build_api()
    registered = register(api.client, DINER_USER)
    user_id = registered["user"]["id"]

    response = api.client.put(
        f"/api/user/{user_id}",
        json={"password": "new-secret"},
        headers=auth_headers(registered["token"]),
    )

    assert response.status_code == 200
    new_token = response.json()["token"]
    assert api.client.get("/api/user/me", headers=auth_headers(registered["token"])).status_code == 401
    assert api.client.get("/api/user/me", headers=auth_headers(new_token)).status_code == 200
    login(api.client, DINER_USER["email"], "new-secret")


def test_profile_update_revocation_is_configurable():
    never = build_api(profile_update_revocation=REVOKE_NEVER)
    registered = register(never.client, DINER_USER)
    never.client.put(
        f"/api/user/{registered['user']['id']}",
        json={"password": "new-secret"},
        headers=auth_headers(registered["token"]),
    )
    assert never.client.get("/api/user/me", headers=auth_headers(registered["token"])).status_code == 200

    always = build_api(profile_update_revocation=REVOKE_ALWAYS)
    registered = register(always.client, DINER_USER)
    always.client.put(
        f"/api/user/{registered['user']['id']}",
        json={"name": "only a name"},
        headers=auth_headers(registered["token"]),
    )
    assert always.client.get("/api/user/me", headers=auth_headers(registered["token"])).status_code == 401


def test_user_cannot_update_someone_else():
    api = build_api()
    diner = register(api.client, DINER_USER)
    other = register(api.client, FRANCHISEE_USER)

    response = api.client.put(
        f"/api/user/{other['user']['id']}",
        json={"name": "hijacked"},
        headers=auth_headers(diner["token"]),
    )

    assert response.status_code == 403
    assert response.json() == {"message": "unauthorized"}


def test_admin_can_update_another_user():
    api = build_api()
    diner = register(api.client, DINER_USER)

    response = api.client.put(
        f"/api/user/{diner['user']['id']}",
        json={"email": "moved@test.com"},
        headers=auth_headers(admin_token(api.client)),
    )

    assert response.status_code == 200
    assert response.json()["user"]["email"] == "moved@test.com"


def test_update_to_taken_email_is_conflict():
    api = build_api()
    diner = register(api.client, DINER_USER)
    register(api.client, FRANCHISEE_USER)

    response = api.client.put(
        f"/api/user/{diner['user']['id']}",
        json={"email": FRANCHISEE_USER["email"]},
        headers=auth_headers(diner["token"]),
    )

    assert response.status_code == 409


def test_list_users_is_admin_only():
    api = build_api()
    diner = register(api.client, DINER_USER)

    anonymous = api.client.get("/api/user")
    as_diner = api.client.get("/api/user", headers=auth_headers(diner["token"]))

    assert anonymous.status_code == 401
    assert as_diner.status_code == 403
    assert as_diner.json() == {"message": "unauthorized"}


def test_list_users_paginates_and_filters():
    api = build_api()
    for index in range(5):
        register(api.client, {"name": f"Foo{index}", "email": f"foo{index}@test.com", "password": "pw"})
    register(api.client, {"name": "xFoo", "email": "xfoo@test.com", "password": "pw"})
    token = admin_token(api.client)

    first = api.client.get("/api/user?page=0&limit=3&name=Foo*", headers=auth_headers(token)).json()
    second = api.client.get("/api/user?page=1&limit=3&name=Foo*", headers=auth_headers(token)).json()
    exact = api.client.get("/api/user?name=xFoo", headers=auth_headers(token)).json()

    assert [u["name"] for u in first["users"]] == ["Foo0", "Foo1", "Foo2"]
    assert first["more"] is True
    assert [u["name"] for u in second["users"]] == ["Foo3", "Foo4"]
    assert second["more"] is False
    assert [u["name"] for u in exact["users"]] == ["xFoo"]


def test_list_users_rejects_bad_limit():
    api = build_api()

    response = api.client.get("/api/user?limit=0", headers=auth_headers(admin_token(api.client)))

    assert response.status_code == 400


def test_delete_user_requires_admin():
    api = build_api()
    diner = register(api.client, DINER_USER)
    other = register(api.client, FRANCHISEE_USER)

    response = api.client.delete(f"/api/user/{other['user']['id']}", headers=auth_headers(diner["token"]))

    assert response.status_code == 403
    assert response.json() == {"message": "unable to delete a user"}


def test_delete_unknown_user_is_not_found():
    api = build_api()

    response = api.client.delete("/api/user/9999", headers=auth_headers(admin_token(api.client)))

    assert response.status_code == 404
    assert response.json() == {"message": "user not found"}


def test_admin_users_cannot_be_deleted_even_by_admins():
    api = build_api()
    token = admin_token(api.client)
    me = api.client.get("/api/user/me", headers=auth_headers(token)).json()

    response = api.client.delete(f"/api/user/{me['id']}", headers=auth_headers(token))

    assert response.status_code == 403
    assert response.json() == {"message": "cannot delete an admin user"}


def test_deleted_user_token_stops_working_but_others_keep_working():
    api = build_api()
    victim = register(api.client, DINER_USER)
    bystander = register(api.client, FRANCHISEE_USER)

    response = api.client.delete(
        f"/api/user/{victim['user']['id']}",
        headers=auth_headers(admin_token(api.client)),
    )

    assert response.status_code == 200
    assert api.client.get("/api/user/me", headers=auth_headers(victim["token"])).status_code == 401
    assert api.client.get("/api/user/me", headers=auth_headers(bystander["token"])).status_code == 200
    failed = api.client.put("/api/auth", json={"email": DINER_USER["email"], "password": DINER_USER["password"]})
    assert failed.status_code == 401


def test_deleting_a_diner_keeps_their_orders_detached():
    api = build_api()
    victim = register(api.client, DINER_USER)
    db = api.session_factory()
    db.add(Order(diner_id=victim["user"]["id"], franchise_id=1, store_id=1, total=1.0))
    db.commit()
    db.close()

    api.client.delete(f"/api/user/{victim['user']['id']}", headers=auth_headers(admin_token(api.client)))

    db = api.session_factory()
    try:
        orders = db.query(Order).all()
        assert len(orders) == 1
        assert orders[0].diner_id is None
    finally:
        db.close()


def test_reregistering_a_deleted_email_gets_a_fresh_account():
    api = build_api()
    victim = register(api.client, DINER_USER)
    api.client.delete(f"/api/user/{victim['user']['id']}", headers=auth_headers(admin_token(api.client)))

    again = register(api.client, DINER_USER)

    assert again["user"]["id"] != victim["user"]["id"]
    assert api.client.get("/api/user/me", headers=auth_headers(again["token"])).status_code == 200
    assert api.client.get("/api/user/me", headers=auth_headers(victim["token"])).status_code == 401
