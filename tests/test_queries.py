import math
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
from queries import CompanyFilters, clamp_limit, clamp_offset, get_by_ids, list_companies
from store import Company, Employee, Snapshot


@pytest.fixture
def snapshot():
    companies = [
        Company(id=1, name="Acme", active=True),
        Company(id=2, name="Beta", active=False),
        Company(id=3, name="Acme Labs"),
    ]
    employees = [
        Employee(id=10, company_id=1, first_name="Jane", last_name="Doe", role="Eng"),
        Employee(id=11, company_id=3, first_name="John", last_name="Smith", role="Ops"),
        Employee(id=12, company_id=1, first_name="Max", last_name="Power", role="PM"),
        Employee(id=13, company_id=99, first_name="Nobody", last_name="Home", role="Ghost"),
    ]
    return Snapshot(companies, employees)


def _ids(result):
    return [view.id for view in result.data]


def test_active_filter(snapshot):
    result = list_companies(snapshot, CompanyFilters(active=True))
    assert _ids(result) == [1]
    assert result.metadata.total == 1
    assert [e.first_name for e in result.data[0].employees] == ["Jane", "Max"]

    # unknown active status never matches
    assert _ids(list_companies(snapshot, CompanyFilters(active=False))) == [2]


def test_company_name_filter_is_case_insensitive(snapshot):
    assert _ids(list_companies(snapshot, CompanyFilters(company_name="aCmE"))) == [1, 3]


@pytest.mark.parametrize(
    "query, expected",
    [("jan", [1]), ("SMITH", [3]), ("jane doe", [1]), ("e d", [1]), ("home", []), ("zzz", [])],
)
def test_employee_name_filter(snapshot, query, expected):
    assert _ids(list_companies(snapshot, CompanyFilters(employee_name=query))) == expected


def test_filters_compose_as_and(snapshot):
    filters = CompanyFilters(company_name="acme", employee_name="john")
    assert _ids(list_companies(snapshot, filters)) == [3]
    filters = CompanyFilters(company_name="acme", employee_name="john", active=True)
    assert _ids(list_companies(snapshot, filters)) == []


def test_empty_strings_impose_no_constraint(snapshot):
    result = list_companies(snapshot, CompanyFilters(company_name="", employee_name=""))
    assert _ids(result) == [1, 2, 3]


def test_listing_keeps_load_order_and_empty_employees(snapshot):
    result = list_companies(snapshot, CompanyFilters())
    assert _ids(result) == [1, 2, 3]
    assert result.data[1].employees == []
    assert result.metadata.limit == 20
    assert result.metadata.offset == 0


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
@pytest.mark.parametrize("offset", [0, 1, 2, 3, 7])
def test_pagination_window(snapshot, limit, offset):
    result = list_companies(snapshot, CompanyFilters(limit=limit, offset=offset))
    assert result.metadata.count == min(limit, max(0, 3 - offset))
    assert len(result.data) == result.metadata.count
    assert result.metadata.total == 3
    assert _ids(result) == [1, 2, 3][offset : offset + limit]


def test_clamping():
    assert clamp_limit(None) == 20
    assert clamp_limit(math.nan) == 20
    assert clamp_limit(math.inf) == 20
    assert clamp_limit(0) == 1
    assert clamp_limit(-4) == 1
    assert clamp_limit(500) == 100
    assert clamp_limit(7.9) == 7
    assert clamp_offset(None) == 0
    assert clamp_offset(math.nan) == 0
    assert clamp_offset(-3) == 0
    assert clamp_offset(4) == 4


def test_metadata_reports_clamped_values(snapshot):
    result = list_companies(snapshot, CompanyFilters(limit=1000, offset=-1))
    assert result.metadata.model_dump() == {"limit": 100, "offset": 0, "count": 3, "total": 3}


def test_get_by_ids_preserves_positions(snapshot):
    views = get_by_ids(snapshot, [404, 1, 404])
    assert views[0] is None
    assert views[1].id == 1
    assert views[2] is None


def test_get_by_ids_resolves_duplicates_independently(snapshot):
    views = get_by_ids(snapshot, [3, 3, 2])
    assert [v.id for v in views] == [3, 3, 2]
    assert [e.id for e in views[0].employees] == [11]
    assert views[2].employees == []


def test_orphaned_employees_never_surface(snapshot):
    assert get_by_ids(snapshot, [99]) == [None]
    assert _ids(list_companies(snapshot, CompanyFilters(employee_name="nobody"))) == []


def test_get_by_ids_empty_input(snapshot):
    assert get_by_ids(snapshot, []) == []
