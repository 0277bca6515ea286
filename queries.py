"""Read-only queries over a loaded :class:`~store.Snapshot`."""

import math
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from store import Company, Employee, Snapshot

DEFAULT_LIMIT = 20
MAX_LIMIT = 100


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
class CompanyView(Company):
    """A company together with its employees."""

    employees: List[Employee] = Field(default_factory=list)


class CompanyFilters(BaseModel):
    limit: Optional[float] = None
    offset: Optional[float] = None
    company_name: Optional[str] = None
    employee_name: Optional[str] = None
    active: Optional[bool] = None


class ListMetadata(BaseModel):
    limit: int
    offset: int
    count: int
    total: int


class CompanyListResponse(BaseModel):
    data: List[CompanyView]
    metadata: ListMetadata


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _is_finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value)


def clamp_limit(limit: Optional[float]) -> int:
    if not _is_finite(limit):
        return DEFAULT_LIMIT
    return int(max(1, min(limit, MAX_LIMIT)))


def clamp_offset(offset: Optional[float]) -> int:
    if not _is_finite(offset):
        return 0
    return int(max(0, offset))


def company_view(snapshot: Snapshot, company: Company) -> CompanyView:
    return CompanyView(
        **company.model_dump(),
        employees=list(snapshot.employees_for(company.id)),
    )


def _employee_matches(employee: Employee, query: str) -> bool:
    first = employee.first_name.lower()
    last = employee.last_name.lower()
    return query in first or query in last or query in f"{first} {last}"


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def list_companies(snapshot: Snapshot, filters: CompanyFilters) -> CompanyListResponse:
    """Filter, count and paginate companies in load order.

    Filters are ANDed: ``active`` equality, then a case-insensitive
    substring of the company name, then a case-insensitive substring of any
    employee's first, last or full name. ``total`` counts the filtered set
    before the ``[offset, offset + limit)`` window is applied.
    """
    filtered: Sequence[Company] = snapshot.companies

    if filters.active is not None:
        filtered = [c for c in filtered if c.active is filters.active]

    if filters.company_name:
        query = filters.company_name.lower()
        filtered = [c for c in filtered if query in c.name.lower()]

    if filters.employee_name:
        query = filters.employee_name.lower()
        filtered = [
            c
            for c in filtered
            if any(_employee_matches(e, query) for e in snapshot.employees_for(c.id))
        ]

    total = len(filtered)
    limit = clamp_limit(filters.limit)
    offset = clamp_offset(filters.offset)
    data = [company_view(snapshot, c) for c in filtered[offset : offset + limit]]

    return CompanyListResponse(
        data=data,
        metadata=ListMetadata(limit=limit, offset=offset, count=len(data), total=total),
    )


def get_by_ids(snapshot: Snapshot, ids: Sequence[int]) -> List[Optional[CompanyView]]:
    """Resolve each id in order; unknown ids yield ``None`` in their slot."""
    views: List[Optional[CompanyView]] = []
    for company_id in ids:
        company = snapshot.get_company(company_id)
        views.append(company_view(snapshot, company) if company is not None else None)
    return views
