from tests.conftest import auth_headers

ADMIN = auth_headers("admin@example.com")
CREATOR = auth_headers("creator@example.com")
ALICE = auth_headers("alice@example.com")
BOB = auth_headers("bob@example.com")


async def create_confirmed(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload, headers=CREATOR)
    contest_id = response.json()["data"]["id"]
    await client.patch(f"/api/contests/{contest_id}", json={"status": "confirmed"}, headers=ADMIN)
    return contest_id


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


async def test_create_contest_requires_token(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload)

    assert response.status_code == 401
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "authentication_required"


async def test_create_contest_rejects_bad_token(client, contest_payload):
    response = await client.post(
        "/api/contests",
        json=contest_payload,
        headers={"Authorization": "Bearer not-a-jwt"}
    )
    assert response.status_code == 401


async def test_plain_user_cannot_create(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload, headers=ALICE)

    assert response.status_code == 403
    assert response.json()["code"] == "forbidden"


async def test_request_validation_is_400(client):
    response = await client.post("/api/contests", json={"name": "x"}, headers=CREATOR)

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "validation_error"
    assert "price" in body["errors"]


async def test_create_and_fetch_contest(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload, headers=CREATOR)

    assert response.status_code == 201
    created = response.json()["data"]
    assert created["status"] == "pending"
    assert created["participants"] == 0

    fetched = await client.get(f"/api/contests/{created['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["name"] == contest_payload["name"]


async def test_unknown_contest_is_404(client):
    response = await client.get("/api/contests/0123456789abcdef01234567")

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


async def test_review_twice_conflicts(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload, headers=CREATOR)
    contest_id = response.json()["data"]["id"]

    first = await client.patch(f"/api/contests/{contest_id}", json={"status": "confirmed"}, headers=ADMIN)
    second = await client.patch(f"/api/contests/{contest_id}", json={"status": "rejected"}, headers=ADMIN)

    assert first.status_code == 200
    assert first.json()["data"]["status"] == "confirmed"
    assert second.status_code == 409
    assert second.json()["code"] == "conflict"


async def test_review_without_status(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload, headers=CREATOR)
    contest_id = response.json()["data"]["id"]

    review = await client.patch(f"/api/contests/{contest_id}", json={}, headers=ADMIN)

    assert review.status_code == 400


async def test_edit_and_delete_pending(client, contest_payload):
    response = await client.post("/api/contests", json=contest_payload, headers=CREATOR)
    contest_id = response.json()["data"]["id"]

    edited = await client.patch(f"/api/contests/edit/{contest_id}", json={"name": "New name"}, headers=CREATOR)
    assert edited.status_code == 200
    assert edited.json()["data"]["name"] == "New name"

    blocked = await client.patch(f"/api/contests/edit/{contest_id}", json={"participants": 9}, headers=CREATOR)
    assert blocked.status_code == 400

    deleted = await client.delete(f"/api/contests/{contest_id}", headers=CREATOR)
    assert deleted.status_code == 200
    assert (await client.get(f"/api/contests/{contest_id}")).status_code == 404


async def test_payment_to_winner_flow(client, gateway, contest_payload):
    contest_id = await create_confirmed(client, contest_payload)

    checkout = await client.post("/api/create-checkout-session", json={"contest_id": contest_id}, headers=ALICE)
    assert checkout.status_code == 200
    session_id = checkout.json()["data"]["session_id"]
    assert checkout.json()["data"]["url"].endswith(session_id)

    unpaid = await client.post("/api/verify-payment", json={"session_id": session_id})
    assert unpaid.status_code == 400
    assert unpaid.json()["code"] == "payment_incomplete"

    gateway.mark_paid(session_id)
    verified = await client.post("/api/verify-payment", json={"session_id": session_id})
    repeated = await client.post("/api/verify-payment", json={"session_id": session_id})

    assert verified.status_code == 200
    assert verified.json()["data"]["already_registered"] is False
    assert repeated.json()["message"] == "Already registered"
    assert repeated.json()["data"]["already_registered"] is True

    contest = (await client.get(f"/api/contests/{contest_id}")).json()["data"]
    assert contest["participants"] == 1

    participated = await client.get("/api/participated-contests/alice@example.com", headers=ALICE)
    assert [c["id"] for c in participated.json()["data"]["contests"]] == [contest_id]

    submitted = await client.post(f"/api/submissions/{contest_id}", json={"submission_link": "http://a"}, headers=ALICE)
    assert submitted.status_code == 201
    submission_id = submitted.json()["data"]["id"]

    duplicate = await client.post(f"/api/submissions/{contest_id}", json={"submission_link": "http://a"}, headers=ALICE)
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_submission"

    listing = await client.get(f"/api/submissions/contest/{contest_id}", headers=CREATOR)
    assert listing.json()["data"]["total"] == 1

    declared = await client.post(
        f"/api/contests/{contest_id}/declare-winner",
        json={"submission_id": submission_id},
        headers=CREATOR
    )
    assert declared.status_code == 200
    data = declared.json()["data"]
    assert data["contest"]["status"] == "ended"
    assert data["contest"]["winner_email"] == "alice@example.com"
    assert data["submission"]["is_winner"] is True

    audit = await client.get(f"/api/contests/{contest_id}/audit", headers=CREATOR)
    actions = {entry["action"] for entry in audit.json()["data"]["entries"]}
    assert {"contest_created", "contest_confirmed", "payment_received", "winner_declared"} <= actions


async def test_submit_without_payment_forbidden(client, contest_payload):
    contest_id = await create_confirmed(client, contest_payload)

    response = await client.post(f"/api/submissions/{contest_id}", json={"submission_link": "http://b"}, headers=BOB)

    assert response.status_code == 403


async def test_payment_history_of_someone_else(client):
    response = await client.get("/api/payments/user/alice@example.com", headers=BOB)
    assert response.status_code == 403

    own = await client.get("/api/payments/user/alice@example.com", headers=ALICE)
    assert own.status_code == 200
    assert own.json()["data"]["payments"] == []


async def test_register_and_role_management(client):
    headers = auth_headers("carol@example.com")

    registered = await client.post("/api/users", json={"name": "Carol"}, headers=headers)
    again = await client.post("/api/users", json={"name": "Carol"}, headers=headers)

    assert registered.status_code == 201
    assert again.status_code == 200
    assert again.json()["message"] == "User already exists"

    role = await client.get("/api/users/role/carol@example.com")
    assert role.json()["data"]["role"] == "user"

    denied = await client.patch("/api/users/role/carol@example.com", json={"role": "creator"}, headers=ALICE)
    assert denied.status_code == 403

    promoted = await client.patch("/api/users/role/carol@example.com", json={"role": "creator"}, headers=ADMIN)
    assert promoted.status_code == 200
    assert promoted.json()["data"]["role"] == "creator"

    invalid = await client.patch("/api/users/role/carol@example.com", json={"role": "wizard"}, headers=ADMIN)
    assert invalid.status_code == 400


async def test_admin_reconcile(client, db, contest_payload):
    contest_id = await create_confirmed(client, contest_payload)
    await db.payments.insert_one({"contest_id": contest_id, "user_email": "bob@example.com", "amount": 10.0})

    denied = await client.post("/api/admin/reconcile", headers=CREATOR)
    assert denied.status_code == 403

    response = await client.post("/api/admin/reconcile", headers=ADMIN)
    assert response.status_code == 200
    corrected = response.json()["data"]["participants"]["corrected"]
    assert corrected == [{"contest_id": contest_id, "before": 0, "after": 1}]


async def test_admin_scheduler_status(client):
    response = await client.get("/api/admin/scheduler", headers=ADMIN)

    assert response.status_code == 200
    assert "jobs" in response.json()["data"]
