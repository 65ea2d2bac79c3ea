import pytest

from errors import ConflictError, NotFoundError, ValidationError
from ratings import aggregate_ratings
from schemas import Role
from services import RatingService


def store_view(client, headers, store_id):
    stores = client.get("/api/users/stores", headers=headers).json()
    return next(s for s in stores if s["id"] == store_id)


def test_submit_then_modify_updates_average(client, make_user, make_store):
    store_id = make_store("Scenario Store")
    _, headers = make_user()

    assert store_view(client, headers, store_id)["overall_rating"] is None

    resp = client.post("/api/ratings", json={"store_id": store_id, "value": 4}, headers=headers)
    assert resp.status_code == 201
    view = store_view(client, headers, store_id)
    assert (view["overall_rating"], view["rating_count"], view["user_submitted_rating"]) == (4.0, 1, 4)

    resp = client.put("/api/ratings", json={"store_id": store_id, "value": 2}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["value"] == 2
    view = store_view(client, headers, store_id)
    assert (view["overall_rating"], view["rating_count"], view["user_submitted_rating"]) == (2.0, 1, 2)


def test_second_submit_conflicts(client, db, make_user, make_store):
    store_id = make_store("Once Only")
    _, headers = make_user()
    assert client.post("/api/ratings", json={"store_id": store_id, "value": 3}, headers=headers).status_code == 201
    resp = client.post("/api/ratings", json={"store_id": store_id, "value": 5}, headers=headers)
    assert resp.status_code == 409
    assert db["rating"].count_documents({}) == 1
    assert db["rating"].find_one()["value"] == 3


def test_modify_without_rating_not_found(client, db, make_user, make_store):
    store_id = make_store("Never Rated")
    _, headers = make_user()
    resp = client.put("/api/ratings", json={"store_id": store_id, "value": 3}, headers=headers)
    assert resp.status_code == 404
    assert db["rating"].count_documents({}) == 0


@pytest.mark.parametrize("value", [0, 6, -3, 4.5, "4", True])
def test_out_of_range_values_rejected(client, db, make_user, make_store, value):
    store_id = make_store("Strict Store")
    _, headers = make_user()
    assert client.post("/api/ratings", json={"store_id": store_id, "value": value}, headers=headers).status_code == 400
    db["rating"].insert_one({"user_id": "someone", "store_id": store_id, "value": 3})
    assert client.put("/api/ratings", json={"store_id": store_id, "value": value}, headers=headers).status_code == 400


def test_submit_unknown_store(client, make_user):
    _, headers = make_user()
    assert client.post("/api/ratings", json={"store_id": "0" * 24, "value": 3}, headers=headers).status_code == 404
    assert client.post("/api/ratings", json={"store_id": "bogus", "value": 3}, headers=headers).status_code == 400


def test_only_normal_users_rate(client, admin, make_user, make_store):
    store_id = make_store("Role Store")
    _, owner_headers = make_user(Role.STORE_OWNER)
    body = {"store_id": store_id, "value": 3}
    assert client.post("/api/ratings", json=body, headers=admin[1]).status_code == 403
    assert client.post("/api/ratings", json=body, headers=owner_headers).status_code == 403
    assert client.put("/api/ratings", json=body, headers=owner_headers).status_code == 403
    assert client.post("/api/ratings", json=body).status_code == 401


def test_service_rejects_duplicates_and_bad_values(db, make_user, make_store):
    store_id = make_store("Service Store")
    uid, _ = make_user()
    service = RatingService(db)
    service.submit(uid, store_id, 5)
    with pytest.raises(ConflictError):
        service.submit(uid, store_id, 1)
    with pytest.raises(ValidationError):
        service.submit(uid, store_id, 9)
    with pytest.raises(ValidationError):
        service.modify(uid, store_id, 0)
    with pytest.raises(NotFoundError):
        service.modify("other-user", store_id, 2)
    assert aggregate_ratings(db["rating"].find({"store_id": store_id}), caller_id=uid).caller_value == 5


def test_unique_index_rejects_racing_insert(db, make_user, make_store):
    store_id = make_store("Race Store")
    uid, _ = make_user()
    service = RatingService(db)
    service.submit(uid, store_id, 4)
    # the loser of a race passes the existence check; the unique index still rejects it
    service._existing = lambda user_id, store_id: None
    with pytest.raises(ConflictError):
        service.submit(uid, store_id, 2)
