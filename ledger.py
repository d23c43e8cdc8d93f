from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models import Account, Budget, BudgetStatus, Category, Transaction, TransactionType
from periods import QueryRange

logger = logging.getLogger(__name__)


class ScopeNotFound(LookupError):
    def __init__(self, scope: "Scope") -> None:
        super().__init__(f"{scope.kind.value.capitalize()} not found")
        self.scope = scope


class ReaderFailure(RuntimeError):
    pass


class ScopeKind(str, Enum):
    account = "account"
    category = "category"


@dataclass(frozen=True)
class Scope:
    kind: ScopeKind
    id: int

    @classmethod
    def account(cls, account_id: int) -> "Scope":
        return cls(ScopeKind.account, account_id)

    @classmethod
    def category(cls, category_id: int) -> "Scope":
        return cls(ScopeKind.category, category_id)


@dataclass(frozen=True)
class LedgerEntry:
    id: int
    account_id: int
    category_id: int
    type: TransactionType
    amount: int
    date: datetime
    destination_account_id: Optional[int] = None


@dataclass(frozen=True)
class BudgetRow:
    id: int
    name: str
    amount_limit: int
    period_start: datetime
    period_end: datetime
    status: BudgetStatus = BudgetStatus.active
    account_id: Optional[int] = None
    category_id: Optional[int] = None


class LedgerReader:
    """Read-only view of the ledger tables for one statistics call."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def require_scope(self, scope: Scope) -> None:
        model = Account if scope.kind == ScopeKind.account else Category
        stmt = select(model.id).where(model.id == scope.id, model.deleted_at.is_(None))
        found = self._run(lambda: self.session.scalar(stmt))
        if found is None:
            raise ScopeNotFound(scope)

    def fetch_transactions(
        self, scope: Scope, query_range: QueryRange
    ) -> list[LedgerEntry]:
        self.require_scope(scope)
        if query_range.empty:
            return []

        stmt = (
            select(Transaction)
            .where(
                Transaction.deleted_at.is_(None),
                Transaction.date.between(query_range.start, query_range.end),
            )
            .order_by(Transaction.date.asc(), Transaction.id.asc())
        )
        if scope.kind == ScopeKind.account:
            stmt = stmt.where(
                or_(
                    Transaction.account_id == scope.id,
                    Transaction.destination_account_id == scope.id,
                )
            )
        else:
            stmt = stmt.where(Transaction.category_id == scope.id)

        rows = self._run(lambda: self.session.scalars(stmt).all())
        return [
            LedgerEntry(
                id=row.id,
                account_id=row.account_id,
                category_id=row.category_id,
                type=row.type,
                amount=row.amount,
                date=row.date,
                destination_account_id=row.destination_account_id,
            )
            for row in rows
        ]

    def fetch_budgets(self, scope: Scope, query_range: QueryRange) -> list[BudgetRow]:
        self.require_scope(scope)
        if query_range.empty:
            return []

        owner = Budget.account_id if scope.kind == ScopeKind.account else Budget.category_id
        stmt = (
            select(Budget)
            .where(
                owner == scope.id,
                Budget.deleted_at.is_(None),
                Budget.period_start <= query_range.end,
                Budget.period_end >= query_range.start,
            )
            .order_by(Budget.period_start.asc(), Budget.id.asc())
        )
        rows = self._run(lambda: self.session.scalars(stmt).all())
        return [
            BudgetRow(
                id=row.id,
                name=row.name,
                amount_limit=row.amount_limit,
                period_start=row.period_start,
                period_end=row.period_end,
                status=row.status,
                account_id=row.account_id,
                category_id=row.category_id,
            )
            for row in rows
        ]

    def fetch_account_names(self, ids: Iterable[int]) -> dict[int, str]:
        wanted = set(ids)
        if not wanted:
            return {}
        stmt = select(Account.id, Account.name).where(Account.id.in_(wanted))
        rows = self._run(lambda: self.session.execute(stmt).all())
        return {row.id: row.name for row in rows}

    def fetch_category_names(self, ids: Iterable[int]) -> dict[int, str]:
        wanted = set(ids)
        if not wanted:
            return {}
        stmt = select(Category.id, Category.name).where(Category.id.in_(wanted))
        rows = self._run(lambda: self.session.execute(stmt).all())
        return {row.id: row.name for row in rows}

    def _run(self, query):
        try:
            return query()
        except SQLAlchemyError as exc:
            logger.exception("ledger_read_failed")
            raise ReaderFailure("Ledger store unavailable") from exc
