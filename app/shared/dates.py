from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from app.shared.errors import InvalidArgument
from app.shared.schema import as_naive_utc


def parse_query_date(value: Optional[str], name: str) -> Optional[datetime]:
    """Parse an ISO date or datetime from a query string; blank means not given."""
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return as_naive_utc(datetime.fromisoformat(text))
    except ValueError as e:
        raise InvalidArgument(f"Invalid {name}: {value!r}") from e


def end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


@dataclass(frozen=True)
class DateRange:
    """Inclusive range; ``end`` already extended to the end of its day."""
    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @classmethod
    def parse(cls, start_date: Optional[str] = None, end_date: Optional[str] = None) -> "DateRange":
        start = parse_query_date(start_date, "startDate")
        end = parse_query_date(end_date, "endDate")
        return cls(start=start, end=end_of_day(end) if end is not None else None)

    def as_filter(self, field: str) -> dict:
        condition = {}
        if self.start is not None:
            condition["$gte"] = self.start
        if self.end is not None:
            condition["$lte"] = self.end
        return {field: condition} if condition else {}
