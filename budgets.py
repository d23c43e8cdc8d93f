from __future__ import annotations

from datetime import datetime
from typing import Optional, Sequence

from ledger import BudgetRow, LedgerEntry
from models import BudgetStatus, TransactionType
from periods import QueryRange
from schemas import (
    BudgetHealth,
    BudgetHealthEntry,
    BudgetUtilization,
    BudgetUtilizationEntry,
)


def budget_window(budgets: Sequence[BudgetRow]) -> Optional[QueryRange]:
    """Smallest range covering every budget period, or None without budgets."""
    if not budgets:
        return None
    return QueryRange(
        min(b.period_start for b in budgets), max(b.period_end for b in budgets)
    )


def budget_spent(budget: BudgetRow, entries: Sequence[LedgerEntry]) -> int:
    return sum(
        e.amount
        for e in entries
        if e.type == TransactionType.expense
        and budget.period_start <= e.date <= budget.period_end
        and (budget.category_id is None or e.category_id == budget.category_id)
        and (budget.account_id is None or e.account_id == budget.account_id)
    )


def _days_until(moment: datetime, now: datetime) -> int:
    return max(0, int((moment - now).total_seconds() // 86400))


def _percentage(spent: int, limit: int) -> float:
    return spent / limit * 100 if limit > 0 else 0.0


def current_budget_status(
    budgets: Sequence[BudgetRow],
    entries: Sequence[LedgerEntry],
    *,
    now: datetime,
    warning_ratio: float,
) -> tuple[str, int]:
    """Limit status and days left for the active budget running at ``now``."""
    running = [
        b
        for b in budgets
        if b.status == BudgetStatus.active and b.period_start <= now <= b.period_end
    ]
    if not running:
        return "no-budget", 0
    budget = min(running, key=lambda b: (b.period_end, b.id))
    if budget.amount_limit <= 0:
        return "no-budget", 0

    spent = budget_spent(budget, entries)
    if spent >= budget.amount_limit:
        status = "exceeded"
    elif spent > budget.amount_limit * warning_ratio:
        status = "at-risk"
    else:
        status = "within"
    return status, _days_until(budget.period_end, now)


def budget_health(
    budgets: Sequence[BudgetRow],
    entries: Sequence[LedgerEntry],
    *,
    now: datetime,
    warning_ratio: float,
    past_limit: int,
) -> BudgetHealth:
    active: list[BudgetHealthEntry] = []
    past: list[BudgetHealthEntry] = []

    for budget in budgets:
        spent = budget_spent(budget, entries)
        used = _percentage(spent, budget.amount_limit)
        is_active = budget.period_end >= now or budget.status == BudgetStatus.active
        if is_active:
            if used >= 100:
                status = "exceeded"
            elif used >= warning_ratio * 100:
                status = "warning"
            else:
                status = "on-track"
        else:
            status = "achieved" if spent <= budget.amount_limit else "exceeded"

        entry = BudgetHealthEntry(
            budget_id=budget.id,
            budget_name=budget.name,
            period_start=budget.period_start,
            period_end=budget.period_end,
            amount_limit=budget.amount_limit,
            amount_spent=spent,
            percentage_used=used,
            status=status,
            days_remaining=_days_until(budget.period_end, now) if is_active else 0,
        )
        (active if is_active else past).append(entry)

    active.sort(key=lambda e: (e.period_end, e.budget_id))
    past.sort(key=lambda e: (e.period_end, e.budget_id), reverse=True)
    past = past[:past_limit]
    achieved = sum(1 for e in past if e.status == "achieved")

    overall = "healthy"
    if any(e.status == "exceeded" for e in active):
        overall = "concerning"
    elif any(e.status == "warning" for e in active):
        overall = "at-risk"

    return BudgetHealth(
        active_budgets=active,
        past_budgets=past,
        overall_status=overall,
        total_budgets=len(active) + len(past),
        achievement_rate=achieved / len(past) * 100 if past else 0.0,
    )


def budget_utilization(
    budgets: Sequence[BudgetRow], entries: Sequence[LedgerEntry]
) -> BudgetUtilization:
    rows = []
    for budget in sorted(budgets, key=lambda b: (b.period_start, b.id), reverse=True):
        spent = budget_spent(budget, entries)
        limit = budget.amount_limit
        rows.append(
            BudgetUtilizationEntry(
                budget_id=budget.id,
                name=budget.name,
                limit=limit,
                spent=spent,
                remaining=max(0, limit - spent),
                utilization=spent / limit if limit > 0 else 0.0,
                period_start=budget.period_start,
                period_end=budget.period_end,
            )
        )
    return BudgetUtilization(budgets=rows)
