from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

import aggregators
import budgets
from config import Settings, get_settings
from ledger import BudgetRow, LedgerEntry, LedgerReader, Scope
from periods import DateInput, QueryRange, resolve_range, to_utc
from schemas import (
    AccountDistribution,
    AccountStatistics,
    AverageTransactionSize,
    BudgetHealth,
    BudgetUtilization,
    BurnRate,
    CashFlowPulse,
    CategoryHeatmap,
    CategoryStatistics,
    DayOfWeekPattern,
    MonthlyVelocity,
    TimeFrequencyHeatmap,
)

logger = logging.getLogger(__name__)


def _resolve_now(now: Optional[DateInput]) -> datetime:
    return to_utc(now if now is not None else datetime.now(timezone.utc))


class _StatisticsService:
    scope_factory: Callable[[int], Scope]

    def __init__(
        self,
        session: Session,
        *,
        reader: Optional[LedgerReader] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.reader = reader or LedgerReader(session)
        self.settings = settings or get_settings()

    def _snapshot(
        self, scope_id: int, start_date: DateInput, end_date: DateInput
    ) -> tuple[Scope, QueryRange, list[LedgerEntry]]:
        scope, query_range = self._scope_and_range(scope_id, start_date, end_date)
        entries = self.reader.fetch_transactions(scope, query_range)
        logger.info(
            f"{scope.kind.value}_statistics: id={scope_id} "
            f"range={query_range.label()} empty={query_range.empty} "
            f"transactions={len(entries)}"
        )
        return scope, query_range, entries

    def _scope_and_range(
        self, scope_id: int, start_date: DateInput, end_date: DateInput
    ) -> tuple[Scope, QueryRange]:
        return self.scope_factory(scope_id), resolve_range(start_date, end_date)

    def _budgets_with_spend(
        self, scope: Scope, query_range: QueryRange
    ) -> tuple[list[BudgetRow], list[LedgerEntry]]:
        """Budgets overlapping the range plus the entries covering their periods."""
        rows = self.reader.fetch_budgets(scope, query_range)
        window = budgets.budget_window(rows)
        entries = self.reader.fetch_transactions(scope, window) if window else []
        return rows, entries


class AccountStatisticsService(_StatisticsService):
    scope_factory = staticmethod(Scope.account)

    def statistics(
        self,
        account_id: int,
        start_date: DateInput,
        end_date: DateInput,
        *,
        opening_balance: int = 0,
        now: Optional[DateInput] = None,
    ) -> AccountStatistics:
        scope, query_range, entries = self._snapshot(account_id, start_date, end_date)
        moment = _resolve_now(now)
        return AccountStatistics(
            account_id=account_id,
            period=query_range.label(),
            category_heatmap=self._category_heatmap(scope, entries),
            monthly_velocity=aggregators.monthly_velocity(
                entries, query_range, account_id=account_id
            ),
            time_frequency_heatmap=aggregators.time_frequency_heatmap(entries),
            cash_flow_pulse=aggregators.cash_flow_pulse(
                entries, query_range, account_id, opening_balance=opening_balance
            ),
            burn_rate=self._burn_rate(scope, query_range, entries, moment),
            budget_health=self._budget_health(scope, query_range, moment),
        )

    def category_heatmap(
        self, account_id: int, start_date: DateInput, end_date: DateInput
    ) -> CategoryHeatmap:
        scope, _, entries = self._snapshot(account_id, start_date, end_date)
        return self._category_heatmap(scope, entries)

    def monthly_velocity(
        self, account_id: int, start_date: DateInput, end_date: DateInput
    ) -> MonthlyVelocity:
        _, query_range, entries = self._snapshot(account_id, start_date, end_date)
        return aggregators.monthly_velocity(entries, query_range, account_id=account_id)

    def time_frequency(
        self, account_id: int, start_date: DateInput, end_date: DateInput
    ) -> TimeFrequencyHeatmap:
        _, _, entries = self._snapshot(account_id, start_date, end_date)
        return aggregators.time_frequency_heatmap(entries)

    def cash_flow_pulse(
        self,
        account_id: int,
        start_date: DateInput,
        end_date: DateInput,
        *,
        opening_balance: int = 0,
    ) -> CashFlowPulse:
        _, query_range, entries = self._snapshot(account_id, start_date, end_date)
        return aggregators.cash_flow_pulse(
            entries, query_range, account_id, opening_balance=opening_balance
        )

    def burn_rate(
        self,
        account_id: int,
        start_date: DateInput,
        end_date: DateInput,
        *,
        now: Optional[DateInput] = None,
    ) -> BurnRate:
        scope, query_range, entries = self._snapshot(account_id, start_date, end_date)
        return self._burn_rate(scope, query_range, entries, _resolve_now(now))

    def budget_health(
        self,
        account_id: int,
        start_date: DateInput,
        end_date: DateInput,
        *,
        now: Optional[DateInput] = None,
    ) -> BudgetHealth:
        scope, query_range = self._scope_and_range(account_id, start_date, end_date)
        return self._budget_health(scope, query_range, _resolve_now(now))

    def _category_heatmap(
        self, scope: Scope, entries: list[LedgerEntry]
    ) -> CategoryHeatmap:
        names = self.reader.fetch_category_names(e.category_id for e in entries)
        return aggregators.category_heatmap(entries, scope.id, names)

    def _burn_rate(
        self,
        scope: Scope,
        query_range: QueryRange,
        entries: list[LedgerEntry],
        now: datetime,
    ) -> BurnRate:
        # the budget running today, whether or not it overlaps the requested range
        running, spend_entries = self._budgets_with_spend(scope, QueryRange(now, now))
        status, days_remaining = budgets.current_budget_status(
            running,
            spend_entries,
            now=now,
            warning_ratio=self.settings.budget_warning_ratio,
        )
        return aggregators.burn_rate(
            entries,
            query_range,
            scope.id,
            budget_limit_status=status,
            days_remaining=days_remaining,
        )

    def _budget_health(
        self, scope: Scope, query_range: QueryRange, now: datetime
    ) -> BudgetHealth:
        rows, spend_entries = self._budgets_with_spend(scope, query_range)
        return budgets.budget_health(
            rows,
            spend_entries,
            now=now,
            warning_ratio=self.settings.budget_warning_ratio,
            past_limit=self.settings.past_budget_limit,
        )


class CategoryStatisticsService(_StatisticsService):
    scope_factory = staticmethod(Scope.category)

    def statistics(
        self, category_id: int, start_date: DateInput, end_date: DateInput
    ) -> CategoryStatistics:
        scope, query_range, entries = self._snapshot(category_id, start_date, end_date)
        return CategoryStatistics(
            category_id=category_id,
            period=query_range.label(),
            spending_velocity=aggregators.monthly_velocity(entries, query_range),
            account_distribution=self._account_distribution(entries),
            average_transaction_size=aggregators.average_transaction_size(entries),
            day_of_week_pattern=aggregators.day_of_week_pattern(entries),
            budget_utilization=self._budget_utilization(scope, query_range),
        )

    def spending_velocity(
        self, category_id: int, start_date: DateInput, end_date: DateInput
    ) -> MonthlyVelocity:
        _, query_range, entries = self._snapshot(category_id, start_date, end_date)
        return aggregators.monthly_velocity(entries, query_range)

    def account_distribution(
        self, category_id: int, start_date: DateInput, end_date: DateInput
    ) -> AccountDistribution:
        _, _, entries = self._snapshot(category_id, start_date, end_date)
        return self._account_distribution(entries)

    def average_transaction_size(
        self, category_id: int, start_date: DateInput, end_date: DateInput
    ) -> AverageTransactionSize:
        _, _, entries = self._snapshot(category_id, start_date, end_date)
        return aggregators.average_transaction_size(entries)

    def day_of_week_pattern(
        self, category_id: int, start_date: DateInput, end_date: DateInput
    ) -> DayOfWeekPattern:
        _, _, entries = self._snapshot(category_id, start_date, end_date)
        return aggregators.day_of_week_pattern(entries)

    def budget_utilization(
        self, category_id: int, start_date: DateInput, end_date: DateInput
    ) -> BudgetUtilization:
        scope, query_range = self._scope_and_range(category_id, start_date, end_date)
        return self._budget_utilization(scope, query_range)

    def _account_distribution(self, entries: list[LedgerEntry]) -> AccountDistribution:
        names = self.reader.fetch_account_names(e.account_id for e in entries)
        return aggregators.account_distribution(entries, names)

    def _budget_utilization(
        self, scope: Scope, query_range: QueryRange
    ) -> BudgetUtilization:
        rows, spend_entries = self._budgets_with_spend(scope, query_range)
        return budgets.budget_utilization(rows, spend_entries)
