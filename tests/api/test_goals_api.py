import uuid
from decimal import Decimal

from dreamsaver.core.config import settings
from dreamsaver.models.goal import GoalStatus
from dreamsaver.utils.settlement import settle_payment
from fakes import OTHER_USER_ID, USER_ID


async def create_goal(client, headers, product_id, target="1000.00", status="ACTIVE"):
    response = await client.post(
        "/api/v1/goals",
        json={"product_id": str(product_id), "target_amount": target, "status": status},
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def test_requires_authentication(client):
    response = await client.get("/api/v1/goals")
    assert response.status_code == 401


async def test_rejects_an_invalid_token(client):
    response = await client.get("/api/v1/goals", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_token_can_come_from_a_cookie(client, auth_headers):
    token = auth_headers["Authorization"].split(" ", 1)[1]
    client.cookies.set("access_token", token)
    response = await client.get("/api/v1/goals")
    assert response.status_code == 200


async def test_create_and_list_goals(client, auth_headers, product):
    created = await create_goal(client, auth_headers, product.id)
    assert created["message"] == "New goal created"
    assert created["goal"]["status"] == "ACTIVE"
    assert Decimal(created["goal"]["locked_price"]) == Decimal("1000.00")

    draft = await create_goal(client, auth_headers, product.id, target="500.00", status="DRAFT")
    updated = await create_goal(client, auth_headers, product.id, target="600.00", status="DRAFT")
    assert updated["message"] == "Draft updated"
    assert updated["goal"]["id"] == draft["goal"]["id"]

    response = await client.get("/api/v1/goals", headers=auth_headers)
    assert response.status_code == 200
    body = response.json()
    assert [g["id"] for g in body["active"]] == [created["goal"]["id"]]
    assert [g["id"] for g in body["drafts"]] == [draft["goal"]["id"]]
    assert body["terminal"] == []


async def test_create_rejects_bad_input(client, auth_headers, product):
    response = await client.post(
        "/api/v1/goals",
        json={"product_id": str(product.id), "target_amount": "-1"},
        headers=auth_headers,
    )
    assert response.status_code == 422

    response = await client.post(
        "/api/v1/goals",
        json={"product_id": str(uuid.uuid4()), "target_amount": "10"},
        headers=auth_headers,
    )
    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_goal_detail_includes_deposits(client, auth_headers, product, db):
    created = await create_goal(client, auth_headers, product.id)
    goal_id = uuid.UUID(created["goal"]["id"])
    await settle_payment(db, goal_id, USER_ID, "250", "cs_1")

    response = await client.get(f"/api/v1/goals/{goal_id}", headers=auth_headers)

    assert response.status_code == 200
    body = response.json()
    assert Decimal(body["saved"]) == Decimal("250.00")
    assert body["progress_percent"] == 25.0
    assert Decimal(body["remaining_amount"]) == Decimal("750.00")
    assert [d["provider_reference"] for d in body["deposits"]] == ["cs_1"]

    response = await client.get(f"/api/v1/goals/{goal_id}/deposits", headers=auth_headers)
    assert [Decimal(d["amount"]) for d in response.json()] == [Decimal("250.00")]


async def test_other_users_cannot_see_a_goal(client, auth_headers, other_auth_headers, product):
    created = await create_goal(client, auth_headers, product.id)

    response = await client.get(f"/api/v1/goals/{created['goal']['id']}", headers=other_auth_headers)

    assert response.status_code == 403
    assert response.json() == {"detail": "Not authorized", "code": "NOT_AUTHORIZED"}


async def test_unknown_goal_is_404(client, auth_headers):
    response = await client.get(f"/api/v1/goals/{uuid.uuid4()}", headers=auth_headers)
    assert response.status_code == 404


async def test_activate_a_draft(client, auth_headers, product):
    draft = await create_goal(client, auth_headers, product.id, status="DRAFT")

    response = await client.post(f"/api/v1/goals/{draft['goal']['id']}/activate", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "ACTIVE"

    response = await client.post(f"/api/v1/goals/{draft['goal']['id']}/activate", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "ILLEGAL_TRANSITION"


class TestDepositFlow:
    async def test_checkout_then_confirm(self, client, auth_headers, product, gateway):
        created = await create_goal(client, auth_headers, product.id, target="1000.00")
        goal_id = created["goal"]["id"]

        response = await client.post(
            f"/api/v1/goals/{goal_id}/deposit", json={"amount": "400.00"}, headers=auth_headers
        )
        assert response.status_code == 200
        session_id = response.json()["session_id"]
        assert response.json()["checkout_url"].endswith(session_id)
        assert gateway.sessions[session_id].metadata["goalIds"] == goal_id
        assert gateway.success_urls[session_id].startswith(f"{settings.FRONTEND_URL.rstrip('/')}/goals/{goal_id}?payment=success")

        # Nothing settles before the payment is confirmed
        detail = await client.get(f"/api/v1/goals/{goal_id}", headers=auth_headers)
        assert Decimal(detail.json()["saved"]) == Decimal("0")

        gateway.mark_paid(session_id)
        response = await client.post(
            f"/api/v1/goals/{goal_id}/confirm",
            json={"amount": "400.00", "provider_reference": session_id},
            headers=auth_headers,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["completed"] is False
        assert body["replayed"] is False
        assert Decimal(body["goal"]["saved"]) == Decimal("400.00")

    async def test_confirm_is_idempotent(self, client, auth_headers, product, gateway):
        goal_id = (await create_goal(client, auth_headers, product.id, target="400.00"))["goal"]["id"]
        session = await gateway.paid_session([goal_id], "400.00")
        payload = {"amount": "400.00", "provider_reference": session.id}

        first = await client.post(f"/api/v1/goals/{goal_id}/confirm", json=payload, headers=auth_headers)
        second = await client.post(f"/api/v1/goals/{goal_id}/confirm", json=payload, headers=auth_headers)

        assert first.json()["completed"] is True
        assert second.status_code == 200
        assert second.json()["replayed"] is True
        assert second.json()["goal"]["status"] == "COMPLETED"
        deposits = await client.get(f"/api/v1/goals/{goal_id}/deposits", headers=auth_headers)
        assert len(deposits.json()) == 1

    async def test_unpaid_session_is_not_settled(self, client, auth_headers, product, gateway):
        goal_id = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        session = await gateway.create_checkout_session(Decimal("100.00"), "x", "s", "c")

        response = await client.post(
            f"/api/v1/goals/{goal_id}/confirm",
            json={"amount": "100.00", "provider_reference": session.id},
            headers=auth_headers,
        )

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_amount_must_match_the_paid_session(self, client, auth_headers, product, gateway):
        goal_id = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        session = await gateway.paid_session([goal_id], "100.00")

        response = await client.post(
            f"/api/v1/goals/{goal_id}/confirm",
            json={"amount": "900.00", "provider_reference": session.id},
            headers=auth_headers,
        )

        assert response.status_code == 400

    async def test_session_paid_for_one_goal_cannot_fund_another(self, client, auth_headers, product, gateway):
        goal_a = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        goal_b = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        session = await gateway.paid_session([goal_a], "500.00")
        payload = {"amount": "500.00", "provider_reference": session.id}

        first = await client.post(f"/api/v1/goals/{goal_a}/confirm", json=payload, headers=auth_headers)
        second = await client.post(f"/api/v1/goals/{goal_b}/confirm", json=payload, headers=auth_headers)

        assert first.status_code == 200
        assert second.status_code == 400
        detail = await client.get(f"/api/v1/goals/{goal_b}", headers=auth_headers)
        assert Decimal(detail.json()["saved"]) == Decimal("0")
        assert detail.json()["deposits"] == []

    async def test_session_paid_by_someone_else_is_rejected(self, client, auth_headers, product, gateway):
        goal_id = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        session = await gateway.paid_session([goal_id], "100.00", user_id=OTHER_USER_ID)

        response = await client.post(
            f"/api/v1/goals/{goal_id}/confirm",
            json={"amount": "100.00", "provider_reference": session.id},
            headers=auth_headers,
        )

        assert response.status_code == 400

    async def test_multi_goal_session_confirms_only_this_goals_share(self, client, auth_headers, product, gateway):
        goal_a = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        goal_b = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        session = await gateway.paid_session([goal_a, goal_b], "100.00")

        whole = await client.post(
            f"/api/v1/goals/{goal_a}/confirm",
            json={"amount": "100.00", "provider_reference": session.id},
            headers=auth_headers,
        )
        assert whole.status_code == 400

        share = await client.post(
            f"/api/v1/goals/{goal_a}/confirm",
            json={"amount": "50.00", "provider_reference": session.id},
            headers=auth_headers,
        )
        assert share.status_code == 200
        assert Decimal(share.json()["goal"]["saved"]) == Decimal("50.00")

        other = await client.post(
            f"/api/v1/goals/{goal_b}/confirm",
            json={"amount": "50.00", "provider_reference": session.id},
            headers=auth_headers,
        )
        assert Decimal(other.json()["goal"]["saved"]) == Decimal("50.00")

    async def test_completed_goal_refuses_checkout(self, client, auth_headers, make_goal):
        goal = await make_goal(target="100.00", saved="100.00", status=GoalStatus.COMPLETED)

        response = await client.post(
            f"/api/v1/goals/{goal.id}/deposit", json={"amount": "10.00"}, headers=auth_headers
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Goal already completed. Deposits are locked."


class TestDelete:
    async def test_deleting_a_draft(self, client, auth_headers, product):
        goal_id = (await create_goal(client, auth_headers, product.id, status="DRAFT"))["goal"]["id"]

        response = await client.delete(f"/api/v1/goals/{goal_id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["action"] == "DELETED"

        response = await client.get(f"/api/v1/goals/{goal_id}", headers=auth_headers)
        assert response.status_code == 404

    async def test_funded_goal_is_refunded(self, client, auth_headers, product, db):
        goal_id = (await create_goal(client, auth_headers, product.id))["goal"]["id"]
        await settle_payment(db, uuid.UUID(goal_id), USER_ID, "200", "cs_1")

        response = await client.delete(f"/api/v1/goals/{goal_id}", headers=auth_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["action"] == "REFUNDED"
        assert Decimal(body["refund"]["refundable"]) == Decimal("200.00")
        detail = await client.get(f"/api/v1/goals/{goal_id}", headers=auth_headers)
        assert detail.json()["status"] == "REFUNDED"
        assert len(detail.json()["deposits"]) == 1


class TestRedeem:
    async def test_redeem_completed_goal(self, client, auth_headers, make_goal, delivery_client):
        goal = await make_goal(target="100.00", saved="100.00", status=GoalStatus.COMPLETED)

        response = await client.post(
            f"/api/v1/goals/{goal.id}/redeem",
            json={"address_id": "addr-1", "delivery_date": "2026-12-01"},
            headers=auth_headers,
        )

        assert response.status_code == 200
        assert response.json()["delivery_id"] == "dlv_1"
        assert response.json()["goal"]["redeemed_at"] is not None
        assert len(delivery_client.calls) == 1

    async def test_delivery_outage_is_a_bad_gateway(self, client, auth_headers, make_goal, delivery_client):
        goal = await make_goal(target="100.00", saved="100.00", status=GoalStatus.COMPLETED)
        delivery_client.fail = True

        response = await client.post(
            f"/api/v1/goals/{goal.id}/redeem",
            json={"address_id": "addr-1", "delivery_date": "2026-12-01"},
            headers=auth_headers,
        )

        assert response.status_code == 502
        assert response.json()["code"] == "GATEWAY_ERROR"
