from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Iterator, Union

DateInput = Union[datetime, str]


@dataclass(frozen=True)
class QueryRange:
    """Inclusive ``[start, end]`` window in naive UTC.

    An inverted request resolves to an empty range: ``start == end`` and
    ``empty`` is set, so nothing is ever contained in it.
    """

    start: datetime
    end: datetime
    empty: bool = False

    def contains(self, moment: datetime) -> bool:
        return not self.empty and self.start <= moment <= self.end

    @property
    def days(self) -> int:
        if self.empty:
            return 0
        return (self.end.date() - self.start.date()).days + 1

    def label(self) -> str:
        return f"{self.start.isoformat()} to {self.end.isoformat()}"


def to_utc(value: DateInput) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def resolve_range(start_date: DateInput, end_date: DateInput) -> QueryRange:
    start = to_utc(start_date)
    end = to_utc(end_date)
    if end < start:
        return QueryRange(start, start, empty=True)
    return QueryRange(start, end)


def month_key(moment: Union[date, datetime]) -> str:
    return f"{moment.year:04d}-{moment.month:02d}"


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        return (date(year + 1, 1, 1) - date(year, 12, 1)).days
    return (date(year, month + 1, 1) - date(year, month, 1)).days


def iter_days(query_range: QueryRange) -> Iterator[date]:
    if query_range.empty:
        return
    current = query_range.start.date()
    last = query_range.end.date()
    while current <= last:
        yield current
        current += date.resolution


def iter_months(query_range: QueryRange) -> Iterator[tuple[int, int]]:
    if query_range.empty:
        return
    month_index = query_range.start.year * 12 + (query_range.start.month - 1)
    last_index = query_range.end.year * 12 + (query_range.end.month - 1)
    while month_index <= last_index:
        yield month_index // 12, (month_index % 12) + 1
        month_index += 1
