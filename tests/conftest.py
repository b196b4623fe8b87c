"""Pytest fixtures for testing"""

import io
import pytest
from datetime import date, timedelta
from typing import Callable, Dict, Generator, List, Sequence
from fastapi.testclient import TestClient
from openpyxl import Workbook
from sqlalchemy.orm import sessionmaker, Session
from portfolio_assessment.api.main import create_app
from portfolio_assessment.api.dependencies import get_narrative_generator
from portfolio_assessment.infrastructure.database.models import Base
from portfolio_assessment.infrastructure.database.session import build_engine, create_tables, get_db
from portfolio_assessment.domain.models import AssessmentOptions, LoanRecord, PerformanceHistoryRecord
from portfolio_assessment.domain.narrative import NullNarrativeGenerator


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = build_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Fixed reference date so loan and appraisal ages are stable
AS_OF = date(2025, 1, 1)

STATES = ["TX", "CA", "FL", "NY", "GA"]
PROPERTY_TYPES = ["Multifamily", "Retail", "Office", "Industrial"]

LOAN_TAPE_HEADER = [
    "Loan ID",
    "Borrower Name",
    "Current Balance",
    "Interest Rate",
    "Payment Status",
    "Property Type",
    "Property State",
    "Current LTV",
    "DSCR",
    "Lien Position",
    "Appraisal Date",
]


def build_workbook(sheets: Dict[str, Sequence[Sequence]]) -> bytes:
    """Write an in-memory .xlsx with one sheet per entry, rows in order"""
    workbook = Workbook()
    workbook.remove(workbook.active)
    for title, rows in sheets.items():
        sheet = workbook.create_sheet(title)
        for row in rows:
            sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def loan_tape_row(
    loan_id: str,
    balance: float = 100_000,
    rate: float = 9.0,
    status: str = "Current",
    property_type: str = "Multifamily",
    state: str = "TX",
    ltv: float = 60,
    dscr: float = 1.6,
    lien: str = "1st",
    appraisal_date: date | None = None,
) -> List:
    """One spreadsheet row matching LOAN_TAPE_HEADER"""
    return [
        loan_id,
        f"Borrower {loan_id}",
        balance,
        rate,
        status,
        property_type,
        state,
        ltv,
        dscr,
        lien,
        appraisal_date or date.today() - timedelta(days=180),
    ]


def build_loan_tape(rows: Sequence[Sequence]) -> bytes:
    return build_workbook({"Loan Tape": [LOAN_TAPE_HEADER, *rows]})


def build_performance_history(months: int, default_pct: float = 0.5) -> bytes:
    """Monthly history sheet with a flat default percentage"""
    rows = [["Month", "Portfolio Balance", "Loan Count", "Default %"]]
    for offset in range(months):
        year = 2023 + offset // 12
        month = offset % 12 + 1
        rows.append([date(year, month, 1), 1_200_000, 12, default_pct])
    return build_workbook({"Performance History": rows})


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    create_tables(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database and no narrative backend"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_narrative_generator] = lambda: NullNarrativeGenerator()
    return TestClient(app)


@pytest.fixture
def make_workbook() -> Callable[[Dict[str, Sequence[Sequence]]], bytes]:
    return build_workbook


@pytest.fixture
def loan_row() -> Callable[..., List]:
    return loan_tape_row


@pytest.fixture
def make_loan_tape() -> Callable[[Sequence[Sequence]], bytes]:
    return build_loan_tape


@pytest.fixture
def make_history() -> Callable[..., bytes]:
    return build_performance_history


@pytest.fixture
def options() -> AssessmentOptions:
    return AssessmentOptions(has_supporting_docs=True, has_structure_info=True, as_of=AS_OF)


@pytest.fixture
def sample_loans() -> list[LoanRecord]:
    """Twelve equal, performing, first-lien loans spread over 5 states and 4 property types"""
    return [
        LoanRecord(
            loan_id=f"L{i:03d}",
            current_balance=100_000,
            borrower_name=f"Borrower {i}",
            original_balance=120_000,
            interest_rate=9.0,
            origination_date=AS_OF - timedelta(days=360),
            maturity_date=AS_OF + timedelta(days=720),
            payment_status="current",
            property_type=PROPERTY_TYPES[i % len(PROPERTY_TYPES)],
            property_state=STATES[i % len(STATES)],
            current_ltv=60.0,
            dscr=1.6,
            lien_position="1st",
            appraisal_date=AS_OF - timedelta(days=180),
        )
        for i in range(12)
    ]


@pytest.fixture
def sample_history() -> list[PerformanceHistoryRecord]:
    """Twelve months of flat performance"""
    return [
        PerformanceHistoryRecord(
            period_month=date(2024, month, 1),
            portfolio_balance=1_200_000,
            loan_count=12,
            default_pct=0.5,
        )
        for month in range(1, 13)
    ]
