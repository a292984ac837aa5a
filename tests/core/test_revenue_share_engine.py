import pytest
import threading
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import MagicMock

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.core.exceptions import ConcurrentWriteError, MissingAgentError, SponsorCycleError
from app.core.revenue_share_engine import compute_revenue_shares, record_revenue_shares, sponsor_rate_for
from app.db.session import run_in_transaction
from app.models.agent import Agent
from app.models.enums import AgentType, CapType
from app.models.revenue_share import RevenueShare
from app.models.transaction import Transaction
from app.schemas.transaction import TransactionCreate
from app.crud import crud_transaction
from tests.conftest import TestingSessionLocal, make_agent, make_chain, make_transaction

pytestmark = pytest.mark.core


def _shares(transaction):
    return [(s.tier, s.recipient_agent_id, s.amount) for s in transaction.revenue_shares]


def test_sponsor_rate_follows_closer_type():
    assert sponsor_rate_for(Agent(agent_type="principal")) == Decimal("0.125")
    assert sponsor_rate_for(Agent(agent_type="support")) == Decimal("0.02")

def test_first_principal_sale_pays_sponsor_in_full(db_session: Session):
    sponsor = make_agent(db_session, cap_type=CapType.STANDARD)
    closer = make_agent(db_session, sponsor=sponsor)

    transaction = make_transaction(db_session, closer, date(2024, 3, 1))

    assert transaction.company_gci == Decimal("9000")
    assert _shares(transaction) == [(1, sponsor.id, Decimal("1125"))]
    share = transaction.revenue_shares[0]
    assert share.proposed_amount == Decimal("1125")
    assert share.source_agent_id == closer.id
    assert share.calculation_details["capped"] is False
    assert share.calculation_details["rate"] == "0.125"

def test_second_sale_clamped_to_remaining_cap(db_session: Session):
    sponsor = make_agent(db_session, cap_type=CapType.STANDARD)
    closer = make_agent(db_session, sponsor=sponsor)

    make_transaction(db_session, closer, date(2024, 3, 1))
    second = make_transaction(db_session, closer, date(2024, 6, 1))
    third = make_transaction(db_session, closer, date(2024, 9, 1))

    assert second.revenue_shares[0].amount == Decimal("875")
    assert second.revenue_shares[0].calculation_details["already_paid"] == "1125.00"
    assert second.revenue_shares[0].calculation_details["capped"] is True
    # Cap exhausted: still a line item, for zero
    assert _shares(third) == [(1, sponsor.id, Decimal("0"))]

def test_cap_resets_on_sponsor_anniversary(db_session: Session):
    sponsor = make_agent(db_session, anniversary_date=date(2021, 7, 1))
    closer = make_agent(db_session, sponsor=sponsor)

    make_transaction(db_session, closer, date(2024, 1, 10))
    make_transaction(db_session, closer, date(2024, 2, 10))
    next_year = make_transaction(db_session, closer, date(2024, 7, 1))

    assert next_year.revenue_shares[0].amount == Decimal("1125")

def test_support_closer_pays_two_percent_until_cap(db_session: Session):
    sponsor = make_agent(db_session, agent_type=AgentType.SUPPORT)
    closer = make_agent(db_session, agent_type=AgentType.SUPPORT, sponsor=sponsor)

    first = make_transaction(
        db_session, closer, date(2024, 3, 1), sale_amount=Decimal("4000000"), commission_percentage=Decimal("10")
    )
    assert first.company_gci == Decimal("60000")
    assert first.revenue_shares[0].amount == Decimal("1200")

    second = make_transaction(
        db_session, closer, date(2024, 4, 1), sale_amount=Decimal("2000000"),
        commission_percentage=Decimal("10"), company_gci=Decimal("100000"),
    )
    assert second.revenue_shares[0].proposed_amount == Decimal("2000")
    assert second.revenue_shares[0].amount == Decimal("800")

def test_team_cap_principal_sponsor(db_session: Session):
    sponsor = make_agent(db_session, cap_type=CapType.TEAM)
    closer = make_agent(db_session, sponsor=sponsor)

    make_transaction(db_session, closer, date(2024, 3, 1))
    second = make_transaction(db_session, closer, date(2024, 3, 2))

    assert second.revenue_shares[0].amount == Decimal("0")
    assert second.revenue_shares[0].calculation_details["max_allowance"] == "1000"

def test_cap_is_per_recipient_not_per_closer(db_session: Session):
    sponsor = make_agent(db_session)
    closer_a = make_agent(db_session, sponsor=sponsor)
    closer_b = make_agent(db_session, sponsor=sponsor)

    make_transaction(db_session, closer_a, date(2024, 3, 1))
    other = make_transaction(db_session, closer_b, date(2024, 3, 2))

    assert other.revenue_shares[0].amount == Decimal("875")

def test_sponsor_chain_pays_at_most_five_tiers(db_session: Session):
    chain = make_chain(db_session, 7)
    closer = chain[-1]

    transaction = make_transaction(db_session, closer, date(2024, 3, 1))

    assert [s.tier for s in transaction.revenue_shares] == [1, 2, 3, 4, 5]
    assert [s.recipient_agent_id for s in transaction.revenue_shares] == [a.id for a in reversed(chain[1:6])]
    assert all(s.amount == Decimal("1125") for s in transaction.revenue_shares)
    assert chain[0].id not in {s.recipient_agent_id for s in transaction.revenue_shares}

def test_tiers_have_no_gaps_when_middle_sponsor_capped(db_session: Session):
    top = make_agent(db_session)
    middle = make_agent(db_session, sponsor=top, cap_type=CapType.TEAM)
    closer = make_agent(db_session, sponsor=middle)
    other_closer = make_agent(db_session, sponsor=middle)

    make_transaction(db_session, other_closer, date(2024, 3, 1))  # Uses up middle's $1,000
    transaction = make_transaction(db_session, closer, date(2024, 3, 2))

    assert _shares(transaction) == [
        (1, middle.id, Decimal("0")),
        (2, top.id, Decimal("875")),
    ]

def test_root_closer_gets_no_line_items(db_session: Session):
    closer = make_agent(db_session)
    transaction = make_transaction(db_session, closer, date(2024, 3, 1))
    assert transaction.revenue_shares == []

def test_cap_sum_never_exceeds_cap(db_session: Session):
    sponsor = make_agent(db_session, anniversary_date=date(2020, 5, 5))
    closers = [make_agent(db_session, sponsor=sponsor) for _ in range(3)]

    for month in range(1, 13):
        make_transaction(
            db_session, closers[month % 3], date(2024, month, 10),
            sale_amount=Decimal("730000"), commission_percentage=Decimal("2.5"),
        )

    paid_by_window = {}
    for window_start, window_end in [(date(2023, 5, 5), date(2024, 5, 4)), (date(2024, 5, 5), date(2025, 5, 4))]:
        paid_by_window[window_start] = sum(
            share.amount
            for share in db_session.query(RevenueShare).join(Transaction).filter(
                RevenueShare.recipient_agent_id == sponsor.id,
                Transaction.transaction_date >= window_start,
                Transaction.transaction_date <= window_end,
            )
        )
        assert paid_by_window[window_start] <= Decimal("2000")

    # Eight sales of $342.19 proposed each in the later window: the cap is hit exactly
    assert paid_by_window[date(2024, 5, 5)] == Decimal("2000")
    assert paid_by_window[date(2023, 5, 5)] == Decimal("342.19") * 4

def test_concurrent_sales_never_push_sponsor_past_cap(db_session: Session):
    sponsor = make_agent(db_session, cap_type=CapType.STANDARD)
    closer_ids = [make_agent(db_session, sponsor=sponsor).id for _ in range(4)]
    start = threading.Barrier(len(closer_ids))
    errors = []

    def close_sale(closer_id: int):
        session = TestingSessionLocal()
        try:
            start.wait()
            make_transaction(session, SimpleNamespace(id=closer_id), date(2024, 3, 1))
        except Exception as exc:
            errors.append(exc)
        finally:
            session.close()

    threads = [threading.Thread(target=close_sale, args=(closer_id,)) for closer_id in closer_ids]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    # Writers that lose every retry are rejected, never over-paid
    assert all(isinstance(exc, ConcurrentWriteError) for exc in errors), errors
    db_session.expire_all()
    total = db_session.query(func.coalesce(func.sum(RevenueShare.amount), 0)).filter(
        RevenueShare.recipient_agent_id == sponsor.id
    ).scalar()
    assert Decimal(str(total)) <= Decimal("2000")
    if not errors:
        assert Decimal(str(total)) == Decimal("2000")
        assert db_session.query(Transaction).count() == len(closer_ids)

def test_regeneration_is_idempotent(db_session: Session):
    top, middle, closer = make_chain(db_session, 3)
    make_transaction(db_session, closer, date(2024, 2, 1))
    transaction = make_transaction(db_session, closer, date(2024, 3, 1))

    def snapshot():
        return [
            (s.tier, s.source_agent_id, s.recipient_agent_id, s.amount, s.proposed_amount, s.calculation_details)
            for s in transaction.revenue_shares
        ]

    before = snapshot()
    run_in_transaction(db_session, lambda: record_revenue_shares(db_session, transaction))
    db_session.refresh(transaction)
    assert snapshot() == before

def test_compute_does_not_write(db_session: Session):
    sponsor = make_agent(db_session)
    closer = make_agent(db_session, sponsor=sponsor)
    transaction = make_transaction(db_session, closer, date(2024, 3, 1))

    items = compute_revenue_shares(db_session, transaction)
    db_session.rollback()
    assert [(i.tier, i.amount) for i in items] == [(1, Decimal("1125"))]
    assert db_session.query(RevenueShare).count() == 1

def test_cycle_aborts_without_persisting_anything(db_session: Session):
    top, middle, closer = make_chain(db_session, 3)
    db_session.query(Agent).filter(Agent.id == top.id).update({"sponsor_id": closer.id})
    db_session.commit()

    with pytest.raises(SponsorCycleError):
        make_transaction(db_session, closer, date(2024, 3, 1))

    assert db_session.query(Transaction).count() == 0
    assert db_session.query(RevenueShare).count() == 0

def test_missing_closer_aborts_without_persisting_anything(db_session: Session):
    with pytest.raises(MissingAgentError):
        crud_transaction.create_transaction(db_session, obj_in=TransactionCreate(
            agent_id=4242,
            property_address="1 Nowhere Lane",
            sale_amount=Decimal("100000"),
            commission_percentage=Decimal("3"),
            transaction_date=date(2024, 3, 1),
        ))
    assert db_session.query(Transaction).count() == 0


def _operational_error():
    return OperationalError("INSERT INTO revenue_share ...", {}, Exception("database is locked"))

def test_run_in_transaction_retries_lost_races():
    db = MagicMock()
    operation = MagicMock(side_effect=[_operational_error(), _operational_error(), "done"])

    assert run_in_transaction(db, operation, retries=3) == "done"
    assert operation.call_count == 3
    assert db.rollback.call_count == 2
    db.commit.assert_called_once()

def test_run_in_transaction_gives_up_after_retries():
    db = MagicMock()
    operation = MagicMock(side_effect=_operational_error())

    with pytest.raises(ConcurrentWriteError):
        run_in_transaction(db, operation, retries=2)
    assert operation.call_count == 3
    db.commit.assert_not_called()

def test_run_in_transaction_rolls_back_other_errors_without_retry():
    db = MagicMock()
    operation = MagicMock(side_effect=SponsorCycleError(1, 2))

    with pytest.raises(SponsorCycleError):
        run_in_transaction(db, operation)
    assert operation.call_count == 1
    db.rollback.assert_called_once()
