import datetime as dt
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

TrendDirection = Literal["increasing", "decreasing", "stable"]


class StatisticsModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryHeatmapEntry(StatisticsModel):
    category_id: int
    category_name: str
    total_count: int
    total_amount: int
    percentage_of_total: float


class CategoryHeatmap(StatisticsModel):
    data: list[CategoryHeatmapEntry] = Field(default_factory=list)
    total_spending: int = 0
    category_count: int = 0


class FrequencyEntry(StatisticsModel):
    frequency: Literal["daily", "weekly", "monthly", "irregular"]
    count: int


class TimeBucket(StatisticsModel):
    day_of_week: str
    time_of_day: Literal["night", "morning", "afternoon", "evening"]
    count: int = 0


class TimeFrequencyHeatmap(StatisticsModel):
    data: list[FrequencyEntry] = Field(default_factory=list)
    buckets: list[TimeBucket] = Field(default_factory=list)
    most_common_pattern: str = ""
    total_transactions: int = 0


class BurnRate(StatisticsModel):
    total_spending: int = 0
    daily_average_spend: float = 0
    weekly_average_spend: float = 0
    monthly_average_spend: float = 0
    spending_days: int = 0
    days_remaining: int = 0
    budget_limit_status: Literal["within", "at-risk", "exceeded", "no-budget"] = (
        "no-budget"
    )


class CashFlowPoint(StatisticsModel):
    date: dt.date
    balance: int


class CashFlowPulse(StatisticsModel):
    data: list[CashFlowPoint] = Field(default_factory=list)
    starting_balance: int = 0
    ending_balance: int = 0
    min_balance: int = 0
    max_balance: int = 0
    trend_direction: TrendDirection = "stable"


class VelocityEntry(StatisticsModel):
    month: str
    amount: int = 0
    total_count: int = 0
    income_count: int = 0
    expense_count: int = 0
    transfer_count: int = 0
    income_amount: int = 0
    expense_amount: int = 0
    transfer_amount: int = 0
    net: int = 0
    daily_average: int = 0
    income_percentage: float = 0


class MonthlyVelocity(StatisticsModel):
    data: list[VelocityEntry] = Field(default_factory=list)
    average_monthly_spend: int = 0
    total_income: int = 0
    total_expense: int = 0
    net_flow: int = 0
    trend_direction: TrendDirection = "stable"


class AccountShare(StatisticsModel):
    account_id: int
    account_name: str
    amount: int
    percentage: int


class AccountDistribution(StatisticsModel):
    total_spending: int = 0
    accounts: list[AccountShare] = Field(default_factory=list)


class AverageTransactionSize(StatisticsModel):
    transaction_count: int = 0
    average_amount: int = 0
    median_amount: int = 0
    min_amount: int = 0
    max_amount: int = 0
    expense_count: int = 0
    income_count: int = 0
    average_income_amount: int = 0
    median_income_amount: int = 0
    min_income_amount: int = 0
    max_income_amount: int = 0
    income_to_expense_ratio: float = 0


class DayOfWeekEntry(StatisticsModel):
    day_of_week: str
    total_amount: int = 0
    transaction_count: int = 0
    average_amount: int = 0
    expense_count: int = 0
    income_count: int = 0
    expense_total: int = 0
    income_total: int = 0
    expense_average: int = 0
    income_average: int = 0


class DayOfWeekPattern(StatisticsModel):
    data: list[DayOfWeekEntry] = Field(default_factory=list)
    most_active_day: str = ""
    highest_spend_day: str = ""
    total_transactions: int = 0


class BudgetHealthEntry(StatisticsModel):
    budget_id: int
    budget_name: str
    period_start: datetime
    period_end: datetime
    amount_limit: int
    amount_spent: int
    percentage_used: float
    status: Literal["on-track", "warning", "exceeded", "achieved"]
    days_remaining: int = 0


class BudgetHealth(StatisticsModel):
    active_budgets: list[BudgetHealthEntry] = Field(default_factory=list)
    past_budgets: list[BudgetHealthEntry] = Field(default_factory=list)
    overall_status: Literal["healthy", "at-risk", "concerning"] = "healthy"
    total_budgets: int = 0
    achievement_rate: float = 0


class BudgetUtilizationEntry(StatisticsModel):
    budget_id: int
    name: str
    limit: int
    spent: int
    remaining: int
    utilization: float
    period_start: datetime
    period_end: datetime


class BudgetUtilization(StatisticsModel):
    budgets: list[BudgetUtilizationEntry] = Field(default_factory=list)


class AccountStatistics(StatisticsModel):
    account_id: int
    period: str
    category_heatmap: CategoryHeatmap
    monthly_velocity: MonthlyVelocity
    time_frequency_heatmap: TimeFrequencyHeatmap
    cash_flow_pulse: CashFlowPulse
    burn_rate: BurnRate
    budget_health: BudgetHealth


class CategoryStatistics(StatisticsModel):
    category_id: int
    period: str
    spending_velocity: MonthlyVelocity
    account_distribution: AccountDistribution
    average_transaction_size: AverageTransactionSize
    day_of_week_pattern: DayOfWeekPattern
    budget_utilization: BudgetUtilization
