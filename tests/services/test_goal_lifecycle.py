import uuid
from datetime import date, datetime, timedelta
from decimal import Decimal

import pytest

from dreamsaver.core.database import utcnow
from dreamsaver.core.errors import (
    AuthorizationError,
    ConflictError,
    GatewayError,
    IllegalTransitionError,
    NotFoundError,
    ValidationError,
)
from dreamsaver.crud.deposit import get_deposits_for_goal
from dreamsaver.crud.goal import delete_draft_goal, get_goal
from dreamsaver.crud.price_lock import get_price_lock_for_goal
from dreamsaver.models.goal import GoalStatus
from dreamsaver.models.price_lock import PriceLockStatus
from dreamsaver.utils.goal_lifecycle import (
    CancelAction,
    activate_goal,
    cancel_goal,
    create_or_update_goal,
    expire_stale_drafts,
    get_goal_for_user,
    list_goals,
    quote_refund,
    redeem_goal,
)
from dreamsaver.utils.settlement import settle_payment
from fakes import OTHER_USER_ID, USER_ID, FakeDeliveryClient


class TestCreate:
    async def test_active_goal_locks_the_current_price(self, db, product):
        goal, created = await create_or_update_goal(db, USER_ID, product.id, "1000")

        assert created
        assert goal.status is GoalStatus.ACTIVE
        assert goal.saved == Decimal("0")
        assert goal.locked_price == Decimal("1000.00")
        lock = await get_price_lock_for_goal(db, goal.id)
        assert lock.status is PriceLockStatus.ACTIVE
        assert lock.locked_by == USER_ID

    async def test_saving_a_draft_twice_updates_it(self, db, product):
        draft, created = await create_or_update_goal(db, USER_ID, product.id, "500", status=GoalStatus.DRAFT)
        again, created_again = await create_or_update_goal(db, USER_ID, product.id, "750", status="DRAFT")

        assert created and not created_again
        assert again.id == draft.id
        assert again.target_amount == Decimal("750.00")

    async def test_moving_a_draft_date_moves_its_price_lock(self, db, product):
        first_date = datetime(2031, 1, 1)
        later_date = datetime(2031, 6, 30)
        draft, _ = await create_or_update_goal(
            db, USER_ID, product.id, "500", target_date=first_date, status=GoalStatus.DRAFT
        )
        await create_or_update_goal(db, USER_ID, product.id, "500", target_date=later_date, status=GoalStatus.DRAFT)

        assert (await get_goal(db, draft.id)).end_date == later_date
        assert (await get_price_lock_for_goal(db, draft.id)).expires_at == later_date

    async def test_active_goals_are_never_reused(self, db, product):
        first, _ = await create_or_update_goal(db, USER_ID, product.id, "1000")
        second, created = await create_or_update_goal(db, USER_ID, product.id, "1000")

        assert created
        assert first.id != second.id

    async def test_active_goal_next_to_a_draft(self, db, product):
        draft, _ = await create_or_update_goal(db, USER_ID, product.id, "1000", status=GoalStatus.DRAFT)
        active, created = await create_or_update_goal(db, USER_ID, product.id, "1000")

        assert created
        assert active.id != draft.id
        assert (await get_goal(db, draft.id)).status is GoalStatus.DRAFT

    async def test_unknown_product(self, db):
        with pytest.raises(NotFoundError):
            await create_or_update_goal(db, USER_ID, uuid.uuid4(), "100")

    @pytest.mark.parametrize("target", ["0", "-10", "abc", "10.999"])
    async def test_invalid_target(self, db, product, target):
        with pytest.raises(ValidationError):
            await create_or_update_goal(db, USER_ID, product.id, target)

    @pytest.mark.parametrize("status", ["COMPLETED", "REFUNDED", "BOGUS"])
    async def test_new_goals_start_as_draft_or_active(self, db, product, status):
        with pytest.raises(ValidationError):
            await create_or_update_goal(db, USER_ID, product.id, "100", status=status)


class TestActivate:
    async def test_activation_re_snapshots_the_price(self, db, product):
        draft, _ = await create_or_update_goal(db, USER_ID, product.id, "1000", status=GoalStatus.DRAFT)
        product.price = Decimal("1200.00")
        await db.commit()

        goal = await activate_goal(db, draft.id, USER_ID)

        assert goal.status is GoalStatus.ACTIVE
        assert goal.locked_price == Decimal("1200.00")
        assert (await get_price_lock_for_goal(db, goal.id)).locked_price == Decimal("1200.00")

    async def test_only_drafts_can_be_activated(self, db, make_goal):
        goal_id = (await make_goal(status=GoalStatus.ACTIVE)).id
        with pytest.raises(IllegalTransitionError):
            await activate_goal(db, goal_id, USER_ID)

    async def test_someone_elses_draft(self, db, make_goal):
        goal_id = (await make_goal(status=GoalStatus.DRAFT)).id
        with pytest.raises(AuthorizationError):
            await activate_goal(db, goal_id, OTHER_USER_ID)

    async def test_expired_draft_cannot_be_activated(self, db, product):
        draft, _ = await create_or_update_goal(
            db, USER_ID, product.id, "100", target_date=utcnow() - timedelta(days=1), status=GoalStatus.DRAFT
        )
        draft_id = draft.id

        with pytest.raises(ConflictError):
            await activate_goal(db, draft_id, USER_ID)
        assert (await get_goal(db, draft_id)).status is GoalStatus.DRAFT


class TestCancel:
    async def test_draft_is_deleted_with_its_price_lock(self, db, product):
        draft, _ = await create_or_update_goal(db, USER_ID, product.id, "1000", status=GoalStatus.DRAFT)
        draft_id = draft.id

        result = await cancel_goal(db, draft_id, USER_ID)

        assert result.action is CancelAction.DELETED
        assert result.refund is None
        assert await get_price_lock_for_goal(db, draft_id) is None
        with pytest.raises(NotFoundError):
            await get_goal_for_user(db, draft_id, USER_ID)

    async def test_funded_goal_is_refunded_and_keeps_its_deposits(self, db, product):
        goal, _ = await create_or_update_goal(db, USER_ID, product.id, "1000")
        await settle_payment(db, goal.id, USER_ID, "200", "cs_1")

        result = await cancel_goal(db, goal.id, USER_ID)

        assert result.action is CancelAction.REFUNDED
        assert result.refund.saved == Decimal("200.00")
        reloaded = await get_goal_for_user(db, goal.id, USER_ID)
        assert reloaded.status is GoalStatus.REFUNDED
        deposits = await get_deposits_for_goal(db, goal.id)
        assert [d.amount for d in deposits] == [Decimal("200.00")]
        assert (await get_price_lock_for_goal(db, goal.id)).status is PriceLockStatus.RELEASED

    async def test_active_goal_without_funds_is_deleted(self, db, product):
        goal, _ = await create_or_update_goal(db, USER_ID, product.id, "1000")
        result = await cancel_goal(db, goal.id, USER_ID)
        assert result.action is CancelAction.DELETED
        assert await get_goal(db, result.goal_id) is None

    @pytest.mark.parametrize("status", [GoalStatus.COMPLETED, GoalStatus.REFUNDED])
    async def test_terminal_goals_cannot_be_cancelled(self, db, make_goal, status):
        goal_id = (await make_goal(saved="1000.00", status=status)).id
        with pytest.raises(ConflictError):
            await cancel_goal(db, goal_id, USER_ID)
        assert await get_goal(db, goal_id) is not None

    async def test_someone_elses_goal(self, db, make_goal):
        goal_id = (await make_goal()).id
        with pytest.raises(AuthorizationError):
            await cancel_goal(db, goal_id, OTHER_USER_ID)
        assert await get_goal(db, goal_id) is not None

    def test_refund_quote_applies_the_fee(self):
        quote = quote_refund(Decimal("200.00"), Decimal("5"))
        assert quote.fee == Decimal("10.00")
        assert quote.refundable == Decimal("190.00")


class TestListAndExpire:
    async def test_goals_are_partitioned_by_status(self, db, make_goal):
        draft_id = (await make_goal(status=GoalStatus.DRAFT)).id
        active_id = (await make_goal(status=GoalStatus.ACTIVE)).id
        completed_id = (await make_goal(saved="1000.00", status=GoalStatus.COMPLETED)).id
        await make_goal(user_id=OTHER_USER_ID)

        goals = await list_goals(db, USER_ID)

        assert [g.id for g in goals["drafts"]] == [draft_id]
        assert [g.id for g in goals["active"]] == [active_id]
        assert [g.id for g in goals["terminal"]] == [completed_id]

    async def test_stale_drafts_are_expired(self, db, product):
        yesterday = utcnow() - timedelta(days=1)
        stale, _ = await create_or_update_goal(
            db, USER_ID, product.id, "100", target_date=yesterday, status=GoalStatus.DRAFT
        )
        stale_id = stale.id
        other_stale, _ = await create_or_update_goal(
            db, OTHER_USER_ID, product.id, "100", target_date=yesterday, status=GoalStatus.DRAFT
        )
        overdue_active, _ = await create_or_update_goal(db, USER_ID, product.id, "100", target_date=yesterday)

        assert await expire_stale_drafts(db, user_id=USER_ID) == 1

        assert await get_goal(db, stale_id) is None
        assert await get_price_lock_for_goal(db, stale_id) is None
        assert await get_goal(db, other_stale.id) is not None
        assert (await get_goal(db, overdue_active.id)).status is GoalStatus.ACTIVE

    async def test_sweeping_all_users(self, db, product):
        past = datetime(2020, 1, 1)
        await create_or_update_goal(db, USER_ID, product.id, "100", target_date=past, status=GoalStatus.DRAFT)
        await create_or_update_goal(db, OTHER_USER_ID, product.id, "100", target_date=past, status=GoalStatus.DRAFT)
        future, _ = await create_or_update_goal(
            db, "user-3", product.id, "100", target_date=utcnow() + timedelta(days=30), status=GoalStatus.DRAFT
        )

        assert await expire_stale_drafts(db) == 2
        assert await get_goal(db, future.id) is not None

    async def test_goal_activated_after_the_scan_is_not_deleted(self, db, product):
        goal, _ = await create_or_update_goal(
            db, USER_ID, product.id, "100", target_date=datetime(2020, 1, 1), status=GoalStatus.DRAFT
        )
        goal_id = goal.id
        goal.status = GoalStatus.ACTIVE
        await db.commit()

        assert not await delete_draft_goal(db, goal_id)
        await db.commit()

        assert (await get_goal(db, goal_id)).status is GoalStatus.ACTIVE
        assert await get_price_lock_for_goal(db, goal_id) is not None


class TestRedeem:
    async def test_completed_goal_is_handed_to_delivery(self, db, make_goal):
        goal = await make_goal(target="100.00", saved="100.00", status=GoalStatus.COMPLETED)
        client = FakeDeliveryClient()

        redeemed = await redeem_goal(db, goal.id, USER_ID, "addr-1", date(2026, 12, 1), client)

        assert redeemed.delivery_id == "dlv_1"
        assert redeemed.is_redeemed
        assert client.calls == [(goal.id, "addr-1", date(2026, 12, 1))]

    async def test_redeeming_twice_is_rejected(self, db, make_goal):
        goal_id = (await make_goal(target="100.00", saved="100.00", status=GoalStatus.COMPLETED)).id
        client = FakeDeliveryClient()
        await redeem_goal(db, goal_id, USER_ID, "addr-1", date(2026, 12, 1), client)

        with pytest.raises(ConflictError):
            await redeem_goal(db, goal_id, USER_ID, "addr-1", date(2026, 12, 1), client)
        assert len(client.calls) == 1

    async def test_only_completed_goals_can_be_redeemed(self, db, make_goal):
        goal_id = (await make_goal(status=GoalStatus.ACTIVE)).id
        with pytest.raises(ConflictError):
            await redeem_goal(db, goal_id, USER_ID, "addr-1", date(2026, 12, 1), FakeDeliveryClient())

    async def test_delivery_failure_leaves_the_goal_unredeemed(self, db, make_goal):
        goal_id = (await make_goal(target="100.00", saved="100.00", status=GoalStatus.COMPLETED)).id

        with pytest.raises(GatewayError):
            await redeem_goal(db, goal_id, USER_ID, "addr-1", date(2026, 12, 1), FakeDeliveryClient(fail=True))

        reloaded = await get_goal(db, goal_id)
        assert reloaded.redeemed_at is None
        assert reloaded.delivery_id is None
