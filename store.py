"""Loading and indexing of the company/employee dataset.

Documents are read from two directories of ``*.json`` files, one per
entity kind. Loading is tolerant: an unreadable file is skipped with a
warning, an invalid record is dropped silently. The result is an immutable
:class:`Snapshot` that every request reads from.
"""

import json
import logging
import math
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("companies")

RawRecord = Dict[str, Any]

# Checked in this order; the first key present wins.
ENVELOPE_KEYS = ("company", "employee", "data")


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------
class Company(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    industry: Optional[str] = None
    active: Optional[bool] = None
    website: Optional[str] = None
    telephone: Optional[str] = None
    slogan: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class Employee(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    company_id: int
    first_name: str
    last_name: str
    role: str
    email: Optional[str] = None


class Snapshot:
    """Read-only in-memory dataset with its lookup indexes."""

    def __init__(self, companies: Iterable[Company], employees: Iterable[Employee]):
        self._companies: Tuple[Company, ...] = tuple(companies)
        self._employees: Tuple[Employee, ...] = tuple(employees)

        by_id: Dict[int, Company] = {}
        for company in self._companies:
            by_id[company.id] = company

        by_company: Dict[int, List[Employee]] = {}
        for employee in self._employees:
            by_company.setdefault(employee.company_id, []).append(employee)

        self._by_id: Mapping[int, Company] = MappingProxyType(by_id)
        self._by_company: Mapping[int, Tuple[Employee, ...]] = MappingProxyType(
            {cid: tuple(staff) for cid, staff in by_company.items()}
        )

    @property
    def companies(self) -> Tuple[Company, ...]:
        """Companies in load order."""
        return self._companies

    @property
    def employees(self) -> Tuple[Employee, ...]:
        """Employees in load order."""
        return self._employees

    @property
    def companies_by_id(self) -> Mapping[int, Company]:
        return self._by_id

    @property
    def employees_by_company_id(self) -> Mapping[int, Tuple[Employee, ...]]:
        return self._by_company

    def get_company(self, company_id: int) -> Optional[Company]:
        return self._by_id.get(company_id)

    def employees_for(self, company_id: int) -> Tuple[Employee, ...]:
        """Return the employees of *company_id*, empty if it has none."""
        return self._by_company.get(company_id, ())

    @property
    def orphaned_employees(self) -> Tuple[Employee, ...]:
        """Employees whose company is not part of the dataset."""
        return tuple(e for e in self._employees if e.company_id not in self._by_id)


# ---------------------------------------------------------------------------
# Document shapes
# ---------------------------------------------------------------------------
class DocumentShape(str, Enum):
    SEQUENCE = "sequence"
    ENVELOPE = "envelope"
    RECORD = "record"
    EMPTY = "empty"


def classify_document(document: Any) -> Tuple[DocumentShape, List[Any]]:
    """Return the shape of a parsed JSON *document* and its raw items."""
    if isinstance(document, list):
        return DocumentShape.SEQUENCE, list(document)
    if isinstance(document, dict):
        for key in ENVELOPE_KEYS:
            if _is_set(document.get(key)):
                return DocumentShape.ENVELOPE, [document[key]]
        return DocumentShape.RECORD, [document]
    return DocumentShape.EMPTY, []


def _is_set(value: Any) -> bool:
    """Empty strings, zero, false and null do not select an envelope key.

    Empty objects and arrays still do.
    """
    if value is None or value is False or value == "":
        return False
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    return True


def extract_records(document: Any) -> List[RawRecord]:
    """Return the raw records carried by *document*.

    Items that are not JSON objects can never normalize, so they are
    discarded here.
    """
    _, items = classify_document(document)
    return [item for item in items if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------
def parse_float(text: str) -> float:
    """Parse numeric *text*; blank text is 0 and anything unparsable is NaN."""
    if not text.strip():
        return 0.0
    if "_" in text:
        return math.nan
    try:
        return float(text)
    except ValueError:
        return math.nan


def to_number(value: Any) -> Optional[Union[int, float]]:
    """Coerce *value* to a finite number, or ``None``.

    Native ints are returned unchanged so large ids keep their exact value.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            float(value)
        except OverflowError:
            return None
        return value
    if isinstance(value, float):
        number = value
    elif isinstance(value, str):
        number = parse_float(value)
    else:
        return None
    return number if math.isfinite(number) else None


def to_bool(value: Any) -> Optional[bool]:
    """Coerce *value* to a boolean; unrecognised values are unknown (``None``)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.lower()
        if lowered == "true":
            return True
        if lowered == "false":
            return False
        return None
    if isinstance(value, (int, float)):
        if value == 1:
            return True
        if value == 0:
            return False
    return None


def to_id(value: Any) -> Optional[int]:
    """Coerce *value* to a positive integer identifier, or ``None``."""
    number = to_number(value)
    if number is None or number <= 0:
        return None
    if isinstance(number, float):
        if not number.is_integer():
            return None
        number = int(number)
    return number


def to_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _required_text(value: Any) -> Optional[str]:
    text = to_text(value)
    return text or None


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------
COMPANY_TEXT_FIELDS = ("industry", "website", "telephone", "slogan", "address", "city", "country")


def normalize_company(raw: RawRecord) -> Optional[Company]:
    company_id = to_id(raw.get("id"))
    name = _required_text(raw.get("name"))
    if company_id is None or name is None:
        return None
    optional = {field: to_text(raw.get(field)) for field in COMPANY_TEXT_FIELDS}
    return Company(id=company_id, name=name, active=to_bool(raw.get("active")), **optional)


def normalize_employee(raw: RawRecord) -> Optional[Employee]:
    employee_id = to_id(raw.get("id"))
    company_id = to_id(raw.get("company_id"))
    first_name = _required_text(raw.get("first_name"))
    last_name = _required_text(raw.get("last_name"))
    role = _required_text(raw.get("role"))
    if None in (employee_id, company_id, first_name, last_name, role):
        return None
    return Employee(
        id=employee_id,
        company_id=company_id,
        first_name=first_name,
        last_name=last_name,
        role=role,
        email=to_text(raw.get("email")),
    )


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------
def read_json_records(directory: Union[str, Path]) -> List[RawRecord]:
    """Return every raw record found in the ``*.json`` files of *directory*.

    A missing or unlistable directory yields no records. Files that cannot
    be read or parsed are logged and skipped.
    """
    directory = Path(directory)
    try:
        paths = sorted(p for p in directory.iterdir() if p.name.endswith(".json"))
    except OSError:
        return []

    records: List[RawRecord] = []
    for path in paths:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                document = json.load(fh)
        except (OSError, ValueError, RecursionError) as e:
            logger.warning("Skipping invalid JSON %s: %s", path, e)
            continue
        records.extend(extract_records(document))
    return records


def _normalize_all(raws: Iterable[RawRecord], normalize: Callable[[RawRecord], Any]) -> List[Any]:
    return [item for item in map(normalize, raws) if item is not None]


def load_snapshot(companies_dir: Union[str, Path], employees_dir: Union[str, Path]) -> Snapshot:
    """Build a :class:`Snapshot` from the two source directories."""
    companies = _normalize_all(read_json_records(companies_dir), normalize_company)
    employees = _normalize_all(read_json_records(employees_dir), normalize_employee)
    snapshot = Snapshot(companies, employees)
    logger.info(
        "Loaded %d companies and %d employees (%d orphaned)",
        len(snapshot.companies),
        len(snapshot.employees),
        len(snapshot.orphaned_employees),
    )
    return snapshot
