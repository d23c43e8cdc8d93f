import logging
from datetime import datetime
from typing import Annotated, Callable, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Query
from sqlalchemy.orm import Session

from config import get_settings
from database import session_scope
from ledger import ReaderFailure, ScopeNotFound
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
from services import AccountStatisticsService, CategoryStatisticsService

logging.basicConfig(level=get_settings().log_level)

app = FastAPI(title="Ledger Statistics")

T = TypeVar("T")


def get_db():
    with session_scope() as session:
        yield session


def _run(compute: Callable[[], T]) -> T:
    try:
        return compute()
    except ScopeNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ReaderFailure as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc


StartDate = Annotated[datetime, Query(alias="startDate")]
EndDate = Annotated[datetime, Query(alias="endDate")]
OpeningBalance = Annotated[int, Query(alias="openingBalance")]


@app.get("/accounts/{account_id}/statistics", response_model=AccountStatistics)
def account_statistics(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    opening_balance: OpeningBalance = 0,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(
        lambda: service.statistics(
            account_id, start_date, end_date, opening_balance=opening_balance
        )
    )


@app.get(
    "/accounts/{account_id}/statistics/category-heatmap",
    response_model=CategoryHeatmap,
)
def account_category_heatmap(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(lambda: service.category_heatmap(account_id, start_date, end_date))


@app.get(
    "/accounts/{account_id}/statistics/monthly-velocity",
    response_model=MonthlyVelocity,
)
def account_monthly_velocity(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(lambda: service.monthly_velocity(account_id, start_date, end_date))


@app.get(
    "/accounts/{account_id}/statistics/time-frequency",
    response_model=TimeFrequencyHeatmap,
)
def account_time_frequency(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(lambda: service.time_frequency(account_id, start_date, end_date))


@app.get(
    "/accounts/{account_id}/statistics/cash-flow-pulse",
    response_model=CashFlowPulse,
)
def account_cash_flow_pulse(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    opening_balance: OpeningBalance = 0,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(
        lambda: service.cash_flow_pulse(
            account_id, start_date, end_date, opening_balance=opening_balance
        )
    )


@app.get("/accounts/{account_id}/statistics/burn-rate", response_model=BurnRate)
def account_burn_rate(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(lambda: service.burn_rate(account_id, start_date, end_date))


@app.get(
    "/accounts/{account_id}/statistics/budget-health", response_model=BudgetHealth
)
def account_budget_health(
    account_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = AccountStatisticsService(db)
    return _run(lambda: service.budget_health(account_id, start_date, end_date))


@app.get("/categories/{category_id}/statistics", response_model=CategoryStatistics)
def category_statistics(
    category_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = CategoryStatisticsService(db)
    return _run(lambda: service.statistics(category_id, start_date, end_date))


@app.get(
    "/categories/{category_id}/statistics/spending-velocity",
    response_model=MonthlyVelocity,
)
def category_spending_velocity(
    category_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = CategoryStatisticsService(db)
    return _run(lambda: service.spending_velocity(category_id, start_date, end_date))


@app.get(
    "/categories/{category_id}/statistics/account-distribution",
    response_model=AccountDistribution,
)
def category_account_distribution(
    category_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = CategoryStatisticsService(db)
    return _run(
        lambda: service.account_distribution(category_id, start_date, end_date)
    )


@app.get(
    "/categories/{category_id}/statistics/average-transaction-size",
    response_model=AverageTransactionSize,
)
def category_average_transaction_size(
    category_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = CategoryStatisticsService(db)
    return _run(
        lambda: service.average_transaction_size(category_id, start_date, end_date)
    )


@app.get(
    "/categories/{category_id}/statistics/day-of-week-pattern",
    response_model=DayOfWeekPattern,
)
def category_day_of_week_pattern(
    category_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = CategoryStatisticsService(db)
    return _run(
        lambda: service.day_of_week_pattern(category_id, start_date, end_date)
    )


@app.get(
    "/categories/{category_id}/statistics/budget-utilization",
    response_model=BudgetUtilization,
)
def category_budget_utilization(
    category_id: int,
    start_date: StartDate,
    end_date: EndDate,
    db: Session = Depends(get_db),
):
    service = CategoryStatisticsService(db)
    return _run(
        lambda: service.budget_utilization(category_id, start_date, end_date)
    )


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
