import pytest
from fastapi.testclient import TestClient

from lending import api as api_module
from lending.config import settings
from lending.errors import (
    AlreadyReturned,
    BorrowingNotFound,
    InvalidArgument,
    InvalidState,
    InvariantViolation,
    LimitExceeded,
    OutOfStock,
    TransientStoreConflict,
    UserInactive,
)

HEADERS = {"X-API-Key": settings.api_key}


@pytest.fixture
def client(db):
    api_module.app.dependency_overrides[api_module.get_database] = lambda: db
    try:
        yield TestClient(api_module.app)
    finally:
        api_module.app.dependency_overrides.clear()


@pytest.fixture
def reader(client):
    response = client.post("/users", headers=HEADERS, json={"username": "api_reader", "email": "api@example.com"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def title(client):
    payload = {"isbn": "9780000000408", "title": "API Book", "total_copies": 2}
    response = client.post("/books", headers=HEADERS, json=payload)
    assert response.status_code == 201
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["db"] is True


def test_borrow_and_return_flow(client, reader, title):
    response = client.post(
        "/borrowings", headers=HEADERS,
        json={"user_id": reader["user_id"], "book_id": title["book_id"], "loan_days": 14},
    )
    assert response.status_code == 201
    borrowing = response.json()
    assert borrowing["status"] == "borrowed"
    assert client.get(f"/books/{title['book_id']}").json()["available_copies"] == 1

    fine = client.get(f"/borrowings/{borrowing['borrowing_id']}/fine").json()
    assert fine["amount"] == 0
    assert fine["finalized"] is False

    response = client.post(f"/borrowings/{borrowing['borrowing_id']}/return", headers=HEADERS)
    assert response.status_code == 200
    assert response.json()["returned"] is True
    assert client.get(f"/books/{title['book_id']}").json()["available_copies"] == 2

    response = client.post(f"/borrowings/{borrowing['borrowing_id']}/return", headers=HEADERS)
    assert response.status_code == 409
    assert response.json()["code"] == "already_returned"

    settled = client.post(f"/borrowings/{borrowing['borrowing_id']}/fine", headers=HEADERS).json()
    assert settled["finalized"] is True
    assert client.get(f"/borrowings/{borrowing['borrowing_id']}").json()["fine_amount"] == 0


def test_rejections_carry_codes(client, reader, title):
    response = client.post("/borrowings", headers=HEADERS, json={"user_id": 999999, "book_id": title["book_id"]})
    assert response.status_code == 404
    assert response.json()["code"] == "user_not_found"

    response = client.post("/borrowings", headers=HEADERS, json={"book_id": title["book_id"]})
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_argument"

    client.patch(f"/users/{reader['user_id']}/status", headers=HEADERS, json={"status": "inactive"})
    response = client.post("/borrowings", headers=HEADERS, json={"user_id": reader["user_id"], "book_id": title["book_id"]})
    assert response.status_code == 409
    assert response.json() == {"code": "user_inactive", "detail": "user is not active"}


def test_out_of_stock_over_http(client, title):
    users = [
        client.post("/users", headers=HEADERS, json={"username": f"u{i}", "email": f"u{i}@example.com"}).json()
        for i in range(3)
    ]
    codes = []
    for user in users:
        response = client.post("/borrowings", headers=HEADERS, json={"user_id": user["user_id"], "book_id": title["book_id"]})
        codes.append(response.json().get("code", "ok"))
    assert codes == ["ok", "ok", "out_of_stock"]


def test_user_borrowings_listing(client, reader, title):
    client.post("/borrowings", headers=HEADERS, json={"user_id": reader["user_id"], "book_id": title["book_id"]})
    response = client.get(f"/users/{reader['user_id']}/borrowings")
    assert response.status_code == 200
    assert len(response.json()) == 1


def test_unknown_borrowing_is_404(client):
    response = client.get("/borrowings/4242")
    assert response.status_code == 404
    assert response.json()["code"] == "borrowing_not_found"


def test_mutation_with_invalid_api_key(client, title):
    response = client.post("/borrowings", headers={"X-API-Key": "invalid-key"}, json={"user_id": 1, "book_id": 1})
    assert response.status_code == 403


@pytest.mark.parametrize(
    "error, status",
    [
        (InvalidArgument(), 422),
        (BorrowingNotFound(), 404),
        (UserInactive(), 409),
        (LimitExceeded(), 409),
        (OutOfStock(), 409),
        (AlreadyReturned(), 409),
        (InvalidState(), 409),
        (TransientStoreConflict(), 503),
        (InvariantViolation(), 500),
    ],
)
def test_status_for_error(error, status):
    assert api_module.status_for(error) == status


def test_create_book_with_bad_isbn(client):
    payload = {"isbn": "9780000000409", "title": "Typo", "total_copies": 1}
    response = client.post("/books", headers=HEADERS, json=payload)
    assert response.status_code == 422
    assert response.json()["code"] == "invalid_argument"
