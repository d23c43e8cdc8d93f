from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database import Base
from ledger import ReaderFailure, ScopeNotFound
from models import Account, Budget, BudgetStatus, Category, Transaction, TransactionType
from services import AccountStatisticsService

JAN_START = datetime(2026, 1, 1)
JAN_END = datetime(2026, 1, 31, 23, 59, 59)


def make_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    return SessionLocal()


def seed_basics(session):
    wallet = Account(name="Wallet", type="expense")
    savings = Account(name="Savings", type="expense")
    food = Category(name="Food", type=TransactionType.expense)
    salary = Category(name="Salary", type=TransactionType.income)
    transfer = Category(name="Transfer", type=TransactionType.transfer)
    session.add_all([wallet, savings, food, salary, transfer])
    session.commit()
    return wallet, savings, food, salary, transfer


def add_txn(
    session,
    account,
    category,
    amount,
    when,
    type=TransactionType.expense,
    destination=None,
):
    txn = Transaction(
        account_id=account.id,
        destination_account_id=destination.id if destination else None,
        category_id=category.id,
        type=type,
        amount=amount,
        date=when,
    )
    session.add(txn)
    session.commit()
    return txn


def test_category_heatmap_sums_ten_expenses() -> None:
    session = make_session()
    wallet, _, food, salary, _ = seed_basics(session)
    for day in range(10):
        add_txn(session, wallet, food, 5_000, datetime(2026, 1, 2 + day, 12, 0))
    add_txn(
        session, wallet, salary, 90_000, datetime(2026, 1, 3), TransactionType.income
    )

    heatmap = AccountStatisticsService(session).category_heatmap(
        wallet.id, JAN_START, JAN_END
    )

    assert heatmap.total_spending == 50_000
    assert heatmap.category_count == 1
    assert heatmap.data[0].category_name == "Food"
    assert heatmap.data[0].total_count == 10
    assert heatmap.data[0].percentage_of_total == 100.0


def test_boundary_instants_are_included_and_neighbours_excluded() -> None:
    session = make_session()
    wallet, _, food, _, _ = seed_basics(session)
    start = datetime(2026, 1, 10, 8, 30, 0)
    end = datetime(2026, 1, 20, 17, 45, 0)
    add_txn(session, wallet, food, 1_000, start)
    add_txn(session, wallet, food, 2_000, end)
    add_txn(session, wallet, food, 4_000, start - timedelta(seconds=1))
    add_txn(session, wallet, food, 8_000, end + timedelta(seconds=1))

    service = AccountStatisticsService(session)

    assert service.category_heatmap(wallet.id, start, end).total_spending == 3_000
    assert service.time_frequency(wallet.id, start, end).total_transactions == 2


def test_inverted_range_yields_empty_but_complete_results() -> None:
    session = make_session()
    wallet, _, food, _, _ = seed_basics(session)
    add_txn(session, wallet, food, 5_000, datetime(2026, 1, 15))

    stats = AccountStatisticsService(session).statistics(
        wallet.id,
        datetime(2026, 2, 1),
        datetime(2026, 1, 1),
        opening_balance=250,
        now=datetime(2026, 1, 20),
    )

    assert stats.category_heatmap.total_spending == 0
    assert stats.category_heatmap.category_count == 0
    assert stats.time_frequency_heatmap.total_transactions == 0
    assert stats.burn_rate.total_spending == 0
    assert stats.burn_rate.daily_average_spend == 0
    assert stats.monthly_velocity.data == []
    assert stats.cash_flow_pulse.ending_balance == 250
    assert stats.budget_health.total_budgets == 0


def test_adding_and_deleting_a_transaction_reverts_totals() -> None:
    session = make_session()
    wallet, _, food, _, _ = seed_basics(session)
    add_txn(session, wallet, food, 1_500, datetime(2026, 1, 5))
    service = AccountStatisticsService(session)

    before = service.category_heatmap(wallet.id, JAN_START, JAN_END).total_spending
    extra = add_txn(session, wallet, food, 700, datetime(2026, 1, 6))
    outside = add_txn(session, wallet, food, 900, datetime(2026, 2, 6))
    during = service.category_heatmap(wallet.id, JAN_START, JAN_END).total_spending

    extra.deleted_at = datetime(2026, 1, 7)
    session.delete(outside)
    session.commit()
    after = service.category_heatmap(wallet.id, JAN_START, JAN_END).total_spending

    assert (before, during, after) == (1_500, 2_200, 1_500)


def test_cash_flow_pulse_follows_both_transfer_directions() -> None:
    session = make_session()
    wallet, savings, food, salary, transfer = seed_basics(session)
    add_txn(
        session, wallet, salary, 5_000, datetime(2026, 3, 1, 9), TransactionType.income
    )
    add_txn(session, wallet, food, 2_000, datetime(2026, 3, 2, 10))
    add_txn(
        session,
        wallet,
        transfer,
        1_000,
        datetime(2026, 3, 3, 11),
        TransactionType.transfer,
        destination=savings,
    )
    add_txn(
        session,
        savings,
        transfer,
        500,
        datetime(2026, 3, 3, 12),
        TransactionType.transfer,
        destination=wallet,
    )

    service = AccountStatisticsService(session)
    start, end = datetime(2026, 3, 1), datetime(2026, 3, 4, 23, 59, 59)
    pulse = service.cash_flow_pulse(wallet.id, start, end, opening_balance=10_000)

    assert pulse.starting_balance == 10_000
    assert pulse.ending_balance == 12_500
    assert [p.balance for p in pulse.data] == [15_000, 13_000, 12_500, 12_500]
    assert pulse.min_balance == 10_000
    assert pulse.max_balance == 15_000
    assert pulse.trend_direction == "decreasing"

    assert service.cash_flow_pulse(savings.id, start, end).ending_balance == 500
    assert service.time_frequency(wallet.id, start, end).total_transactions == 4
    # transfers never count as spending
    assert service.burn_rate(wallet.id, start, end).total_spending == 2_000


def test_burn_rate_reports_running_budget_status() -> None:
    session = make_session()
    wallet, _, food, _, _ = seed_basics(session)
    add_txn(session, wallet, food, 4_000, datetime(2026, 1, 5))
    add_txn(session, wallet, food, 4_500, datetime(2026, 1, 15))
    session.add(
        Budget(
            name="January",
            account_id=wallet.id,
            amount_limit=10_000,
            period_start=JAN_START,
            period_end=JAN_END,
            status=BudgetStatus.active,
        )
    )
    session.commit()

    rate = AccountStatisticsService(session).burn_rate(
        wallet.id, JAN_START, JAN_END, now=datetime(2026, 1, 20)
    )

    assert rate.total_spending == 8_500
    assert rate.spending_days == 2
    assert rate.daily_average_spend == pytest.approx(8_500 / 31)
    assert rate.monthly_average_spend > rate.weekly_average_spend > rate.daily_average_spend
    assert rate.budget_limit_status == "at-risk"
    assert rate.days_remaining == 11


def test_budget_health_splits_active_and_past_budgets() -> None:
    session = make_session()
    wallet, _, food, _, _ = seed_basics(session)
    add_txn(session, wallet, food, 4_000, datetime(2026, 1, 5))
    add_txn(session, wallet, food, 4_500, datetime(2026, 1, 15))
    add_txn(session, wallet, food, 3_000, datetime(2025, 12, 10))
    add_txn(session, wallet, food, 2_000, datetime(2025, 11, 10))
    session.add_all(
        [
            Budget(
                name="January",
                account_id=wallet.id,
                amount_limit=10_000,
                period_start=JAN_START,
                period_end=JAN_END,
                status=BudgetStatus.active,
            ),
            Budget(
                name="December",
                account_id=wallet.id,
                amount_limit=5_000,
                period_start=datetime(2025, 12, 1),
                period_end=datetime(2025, 12, 31, 23, 59, 59),
                status=BudgetStatus.inactive,
            ),
            Budget(
                name="November",
                account_id=wallet.id,
                amount_limit=1_000,
                period_start=datetime(2025, 11, 1),
                period_end=datetime(2025, 11, 30, 23, 59, 59),
                status=BudgetStatus.inactive,
            ),
        ]
    )
    session.commit()

    health = AccountStatisticsService(session).budget_health(
        wallet.id, datetime(2025, 11, 1), JAN_END, now=datetime(2026, 1, 20)
    )

    assert [b.budget_name for b in health.active_budgets] == ["January"]
    assert health.active_budgets[0].amount_spent == 8_500
    assert health.active_budgets[0].status == "warning"
    assert [b.budget_name for b in health.past_budgets] == ["December", "November"]
    assert [b.status for b in health.past_budgets] == ["achieved", "exceeded"]
    assert health.overall_status == "at-risk"
    assert health.total_budgets == 3
    assert health.achievement_rate == 50.0


def test_budget_spend_uses_the_budget_period_not_the_query_range() -> None:
    session = make_session()
    wallet, _, food, _, _ = seed_basics(session)
    add_txn(session, wallet, food, 6_000, datetime(2026, 1, 3))
    add_txn(session, wallet, food, 5_000, datetime(2026, 1, 25))
    session.add(
        Budget(
            name="January",
            account_id=wallet.id,
            amount_limit=10_000,
            period_start=JAN_START,
            period_end=JAN_END,
        )
    )
    session.commit()

    health = AccountStatisticsService(session).budget_health(
        wallet.id, datetime(2026, 1, 20), datetime(2026, 1, 22), now=datetime(2026, 1, 21)
    )

    assert health.active_budgets[0].amount_spent == 11_000
    assert health.active_budgets[0].status == "exceeded"
    assert health.overall_status == "concerning"


def test_composite_matches_individual_dimensions() -> None:
    session = make_session()
    wallet, _, food, salary, _ = seed_basics(session)
    add_txn(session, wallet, food, 1_200, datetime(2026, 1, 4, 9))
    add_txn(session, wallet, food, 800, datetime(2026, 2, 11, 19))
    add_txn(
        session, wallet, salary, 3_000, datetime(2026, 2, 1), TransactionType.income
    )
    service = AccountStatisticsService(session)
    start, end = datetime(2026, 1, 1), datetime(2026, 2, 28, 23, 59, 59)
    now = datetime(2026, 3, 1)

    stats = service.statistics(wallet.id, start, end, now=now)

    assert stats.account_id == wallet.id
    assert stats.category_heatmap == service.category_heatmap(wallet.id, start, end)
    assert stats.monthly_velocity == service.monthly_velocity(wallet.id, start, end)
    assert stats.time_frequency_heatmap == service.time_frequency(wallet.id, start, end)
    assert stats.burn_rate == service.burn_rate(wallet.id, start, end, now=now)
    assert [row.month for row in stats.monthly_velocity.data] == ["2026-01", "2026-02"]
    assert stats.cash_flow_pulse.ending_balance == 1_000


def test_unknown_account_raises_for_every_dimension() -> None:
    session = make_session()
    seed_basics(session)
    service = AccountStatisticsService(session)
    calls = [
        lambda: service.statistics(999, JAN_START, JAN_END),
        lambda: service.category_heatmap(999, JAN_START, JAN_END),
        lambda: service.monthly_velocity(999, JAN_START, JAN_END),
        lambda: service.time_frequency(999, JAN_START, JAN_END),
        lambda: service.cash_flow_pulse(999, JAN_START, JAN_END),
        lambda: service.burn_rate(999, JAN_START, JAN_END),
        lambda: service.budget_health(999, JAN_START, JAN_END),
    ]

    for call in calls:
        with pytest.raises(ScopeNotFound):
            call()


def test_soft_deleted_account_is_not_found() -> None:
    session = make_session()
    wallet, _, _, _, _ = seed_basics(session)
    wallet.deleted_at = datetime(2026, 1, 1)
    session.commit()

    with pytest.raises(ScopeNotFound):
        AccountStatisticsService(session).burn_rate(wallet.id, JAN_START, JAN_END)


def test_store_errors_surface_as_reader_failure() -> None:
    engine = create_engine("sqlite+pysqlite:///:memory:")
    session = sessionmaker(bind=engine)()

    with pytest.raises(ReaderFailure):
        AccountStatisticsService(session).category_heatmap(1, JAN_START, JAN_END)
