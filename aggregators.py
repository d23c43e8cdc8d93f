"""Pure reducers that fold one ledger snapshot into a reporting shape.

Every function takes the entries already limited to the query range and
returns a fully populated result even for an empty input.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Optional, Sequence

from ledger import LedgerEntry
from models import TransactionType
from periods import QueryRange, days_in_month, iter_days, iter_months, month_key
from schemas import (
    AccountDistribution,
    AccountShare,
    AverageTransactionSize,
    BurnRate,
    CashFlowPoint,
    CashFlowPulse,
    CategoryHeatmap,
    CategoryHeatmapEntry,
    DayOfWeekEntry,
    DayOfWeekPattern,
    FrequencyEntry,
    MonthlyVelocity,
    TimeBucket,
    TimeFrequencyHeatmap,
    VelocityEntry,
)

DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)
TIME_OF_DAY = (
    ("night", 0, 5),
    ("morning", 6, 11),
    ("afternoon", 12, 17),
    ("evening", 18, 23),
)
FREQUENCY_ORDER = ("daily", "weekly", "monthly", "irregular")


def day_index(moment: datetime) -> int:
    """Sunday-first weekday index."""
    return (moment.weekday() + 1) % 7


def time_of_day(moment: datetime) -> str:
    return TIME_OF_DAY[moment.hour // 6][0]


def median(values: Sequence[int]) -> int:
    if not values:
        return 0
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    # halves round to the even neighbour
    half, odd = divmod(ordered[mid - 1] + ordered[mid], 2)
    return half + (half & 1 if odd else 0)


def floor_average(total: int, count: int) -> int:
    return total // count if count else 0


def largest_remainder_percentages(amounts: Sequence[int]) -> list[int]:
    """Integer percentages of ``amounts`` that always add up to 100."""
    total = sum(amounts)
    if total <= 0:
        return [0] * len(amounts)
    floors = [amount * 100 // total for amount in amounts]
    remainders = [amount * 100 % total for amount in amounts]
    missing = 100 - sum(floors)
    order = sorted(
        range(len(amounts)), key=lambda i: (-remainders[i], -amounts[i], i)
    )
    for i in order[:missing]:
        floors[i] += 1
    return floors


def signed_delta(entry: LedgerEntry, account_id: int) -> int:
    if entry.type == TransactionType.income:
        return entry.amount
    if entry.type == TransactionType.expense:
        return -entry.amount
    if entry.account_id == account_id:
        return -entry.amount
    if entry.destination_account_id == account_id:
        return entry.amount
    return 0


def _trend(first: int, last: int) -> str:
    if last > first:
        return "increasing"
    if last < first:
        return "decreasing"
    return "stable"


def _spending_trend(older: int, recent: int) -> str:
    if recent * 100 > older * 110:
        return "increasing"
    if recent * 100 < older * 90:
        return "decreasing"
    return "stable"


def _expenses(
    entries: Sequence[LedgerEntry], account_id: Optional[int] = None
) -> list[LedgerEntry]:
    return [
        e
        for e in entries
        if e.type == TransactionType.expense
        and (account_id is None or e.account_id == account_id)
    ]


def category_heatmap(
    entries: Sequence[LedgerEntry],
    account_id: int,
    category_names: dict[int, str],
) -> CategoryHeatmap:
    totals: dict[int, int] = defaultdict(int)
    counts: Counter[int] = Counter()
    for entry in _expenses(entries, account_id):
        totals[entry.category_id] += entry.amount
        counts[entry.category_id] += 1

    total_spending = sum(totals.values())
    data = [
        CategoryHeatmapEntry(
            category_id=category_id,
            category_name=category_names.get(category_id, ""),
            total_count=counts[category_id],
            total_amount=amount,
            percentage_of_total=(
                round(amount / total_spending * 100, 2) if total_spending else 0.0
            ),
        )
        for category_id, amount in sorted(
            totals.items(), key=lambda item: (-item[1], item[0])
        )
    ]
    return CategoryHeatmap(
        data=data, total_spending=total_spending, category_count=len(totals)
    )


def time_frequency_heatmap(entries: Sequence[LedgerEntry]) -> TimeFrequencyHeatmap:
    grid: Counter[tuple[int, str]] = Counter(
        (day_index(e.date), time_of_day(e.date)) for e in entries
    )
    buckets = [
        TimeBucket(day_of_week=DAY_NAMES[day], time_of_day=name, count=grid[(day, name)])
        for day in range(7)
        for name, _, _ in TIME_OF_DAY
    ]

    gaps: Counter[str] = Counter()
    ordered = sorted(entries, key=lambda e: (e.date, e.id))
    for previous, current in zip(ordered, ordered[1:]):
        days = (current.date - previous.date).total_seconds() / 86400
        if days <= 1:
            gaps["daily"] += 1
        elif days <= 7:
            gaps["weekly"] += 1
        elif days <= 30:
            gaps["monthly"] += 1
        else:
            gaps["irregular"] += 1

    data = [
        FrequencyEntry(frequency=name, count=gaps[name])
        for name in sorted(
            (name for name in FREQUENCY_ORDER if gaps[name]),
            key=lambda name: (-gaps[name], FREQUENCY_ORDER.index(name)),
        )
    ]
    return TimeFrequencyHeatmap(
        data=data,
        buckets=buckets,
        most_common_pattern=data[0].frequency if data else "",
        total_transactions=len(entries),
    )


def burn_rate(
    entries: Sequence[LedgerEntry],
    query_range: QueryRange,
    account_id: int,
    *,
    budget_limit_status: str = "no-budget",
    days_remaining: int = 0,
) -> BurnRate:
    expenses = _expenses(entries, account_id)
    total_spending = sum(e.amount for e in expenses)
    daily = total_spending / max(1, query_range.days)
    return BurnRate(
        total_spending=total_spending,
        daily_average_spend=daily,
        weekly_average_spend=daily * 7,
        monthly_average_spend=daily * 30,
        spending_days=len({e.date.date() for e in expenses}),
        days_remaining=days_remaining,
        budget_limit_status=budget_limit_status,
    )


def cash_flow_pulse(
    entries: Sequence[LedgerEntry],
    query_range: QueryRange,
    account_id: int,
    *,
    opening_balance: int = 0,
) -> CashFlowPulse:
    daily_net: dict[date, int] = defaultdict(int)
    for entry in sorted(entries, key=lambda e: (e.date, e.id)):
        daily_net[entry.date.date()] += signed_delta(entry, account_id)

    running = opening_balance
    low = high = opening_balance
    points: list[CashFlowPoint] = []
    for day in iter_days(query_range):
        running += daily_net.get(day, 0)
        low = min(low, running)
        high = max(high, running)
        points.append(CashFlowPoint(date=day, balance=running))

    trend = "stable"
    if len(points) > 1:
        trend = _trend(points[0].balance, points[-1].balance)

    return CashFlowPulse(
        data=points,
        starting_balance=opening_balance,
        ending_balance=running,
        min_balance=low,
        max_balance=high,
        trend_direction=trend,
    )


def monthly_velocity(
    entries: Sequence[LedgerEntry],
    query_range: QueryRange,
    *,
    account_id: Optional[int] = None,
) -> MonthlyVelocity:
    """Zero-filled per-month series over every month the range touches.

    With ``account_id`` transfers are signed from that account's side;
    without it (category scope) they only add to the counts and gross
    transfer amount.
    """
    months = {
        (year, month): VelocityEntry(month=month_key(date(year, month, 1)))
        for year, month in iter_months(query_range)
    }

    for entry in entries:
        row = months.get((entry.date.year, entry.date.month))
        if row is None:
            continue
        row.total_count += 1
        if entry.type == TransactionType.income:
            row.income_count += 1
            row.income_amount += entry.amount
            row.net += entry.amount
        elif entry.type == TransactionType.expense:
            row.expense_count += 1
            row.expense_amount += entry.amount
            row.net -= entry.amount
        else:
            row.transfer_count += 1
            if account_id is None:
                row.transfer_amount += entry.amount
            else:
                delta = signed_delta(entry, account_id)
                row.transfer_amount -= delta
                row.net += delta

    for (year, month), row in months.items():
        row.amount = row.expense_amount
        row.daily_average = round(row.expense_amount / days_in_month(year, month))
        volume = row.income_amount + row.expense_amount
        row.income_percentage = (
            round(row.income_amount / volume * 100, 2) if volume else 0.0
        )

    data = list(months.values())
    total_income = sum(row.income_amount for row in data)
    total_expense = sum(row.expense_amount for row in data)
    trend = "stable"
    if len(data) >= 2:
        trend = _spending_trend(data[0].expense_amount, data[-1].expense_amount)

    return MonthlyVelocity(
        data=data,
        average_monthly_spend=floor_average(total_expense, len(data)),
        total_income=total_income,
        total_expense=total_expense,
        net_flow=total_income - total_expense,
        trend_direction=trend,
    )


def account_distribution(
    entries: Sequence[LedgerEntry], account_names: dict[int, str]
) -> AccountDistribution:
    totals: dict[int, int] = defaultdict(int)
    for entry in _expenses(entries):
        totals[entry.account_id] += entry.amount

    ranked = sorted(totals.items(), key=lambda item: (-item[1], item[0]))
    percentages = largest_remainder_percentages([amount for _, amount in ranked])
    return AccountDistribution(
        total_spending=sum(totals.values()),
        accounts=[
            AccountShare(
                account_id=account_id,
                account_name=account_names.get(account_id, ""),
                amount=amount,
                percentage=percentage,
            )
            for (account_id, amount), percentage in zip(ranked, percentages)
        ],
    )


def average_transaction_size(entries: Sequence[LedgerEntry]) -> AverageTransactionSize:
    expense_amounts = [e.amount for e in entries if e.type == TransactionType.expense]
    income_amounts = [e.amount for e in entries if e.type == TransactionType.income]
    expense_count = len(expense_amounts)
    income_count = len(income_amounts)
    return AverageTransactionSize(
        transaction_count=expense_count + income_count,
        average_amount=floor_average(sum(expense_amounts), expense_count),
        median_amount=median(expense_amounts),
        min_amount=min(expense_amounts, default=0),
        max_amount=max(expense_amounts, default=0),
        expense_count=expense_count,
        income_count=income_count,
        average_income_amount=floor_average(sum(income_amounts), income_count),
        median_income_amount=median(income_amounts),
        min_income_amount=min(income_amounts, default=0),
        max_income_amount=max(income_amounts, default=0),
        income_to_expense_ratio=(
            income_count / expense_count if expense_count else 0.0
        ),
    )


def day_of_week_pattern(entries: Sequence[LedgerEntry]) -> DayOfWeekPattern:
    data = [DayOfWeekEntry(day_of_week=name) for name in DAY_NAMES]
    for entry in entries:
        row = data[day_index(entry.date)]
        row.transaction_count += 1
        if entry.type == TransactionType.expense:
            row.expense_count += 1
            row.expense_total += entry.amount
        elif entry.type == TransactionType.income:
            row.income_count += 1
            row.income_total += entry.amount

    most_active_day = ""
    highest_spend_day = ""
    max_count = 0
    max_spend = 0
    for row in data:
        row.total_amount = row.expense_total
        row.expense_average = floor_average(row.expense_total, row.expense_count)
        row.income_average = floor_average(row.income_total, row.income_count)
        row.average_amount = row.expense_average
        if row.transaction_count > max_count:
            max_count = row.transaction_count
            most_active_day = row.day_of_week
        if row.expense_total > max_spend:
            max_spend = row.expense_total
            highest_spend_day = row.day_of_week

    return DayOfWeekPattern(
        data=data,
        most_active_day=most_active_day,
        highest_spend_day=highest_spend_day,
        total_transactions=len(entries),
    )
