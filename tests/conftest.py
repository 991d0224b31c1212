"""
Statement Ledger - Test Configuration
=====================================
Pytest fixtures and markers.

- session_factory: temporary SQLite database (foreign keys enforced)
- seeded_transactions: two documents and six transactions for search tests
- client: FastAPI TestClient with isolated database, upload dir and the
  sample extraction backend
"""

import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import pytest_asyncio

# Add backend to path for imports
BACKEND_PATH = Path(__file__).parent.parent / "apps" / "backend"
sys.path.insert(0, str(BACKEND_PATH))


# =============================================================================
# Test Run Configuration
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Fast, in-process, temporary SQLite only"
    )
    config.addinivalue_line(
        "markers", "integration: HTTP API through TestClient against temporary SQLite"
    )


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Fresh schema in a temporary SQLite file."""
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
    from database.models import Base
    from database.session import create_engine_for_url

    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


async def insert_document(session, **overrides):
    """Insert a document row directly (bypassing upload validation)."""
    from database.models import DocumentModel, ProcessingStatus

    values = {
        "filename": "statement.pdf",
        "original_name": "statement.pdf",
        "file_size": 1024,
        "mime_type": "application/pdf",
        "processing_status": ProcessingStatus.PENDING,
    }
    values.update(overrides)

    doc = DocumentModel(**values)
    session.add(doc)
    await session.commit()
    return doc


async def insert_transaction(session, document_id, **overrides):
    from database.models import TransactionModel

    values = {
        "transaction_date": date(2024, 1, 1),
        "amount": Decimal("-10.00"),
        "description": "Test transaction",
    }
    values.update(overrides)

    row = TransactionModel(document_id=document_id, **values)
    session.add(row)
    await session.commit()
    return row


@pytest_asyncio.fixture
async def seeded_transactions(session):
    """
    Two documents, six transactions.

    Returns:
        dict mapping a short key to each TransactionModel, plus the documents
    """
    from database.models import TransactionType

    doc_a = await insert_document(session, filename="doc_a.pdf", original_name="january.pdf")
    doc_b = await insert_document(session, filename="doc_b.pdf", original_name="february.pdf")

    rows = {}
    rows["grocery"] = await insert_transaction(
        session, doc_a.id,
        transaction_date=date(2024, 1, 5), amount=Decimal("-45.20"),
        description="Grocery Store Purchase", account_number="****1111",
        vendor_name="Whole Foods", transaction_type=TransactionType.DEBIT,
    )
    rows["salary"] = await insert_transaction(
        session, doc_a.id,
        transaction_date=date(2024, 1, 10), amount=Decimal("2500.00"),
        description="Direct Deposit Salary", account_number="****1111",
        vendor_name="ACME Corp", transaction_type=TransactionType.CREDIT,
    )
    rows["atm"] = await insert_transaction(
        session, doc_a.id,
        transaction_date=date(2024, 1, 15), amount=Decimal("-150.75"),
        description="ATM Withdrawal", account_number="****2222",
        vendor_name="Chase ATM", transaction_type=TransactionType.DEBIT,
    )
    rows["fee"] = await insert_transaction(
        session, doc_b.id,
        transaction_date=date(2024, 1, 20), amount=Decimal("-12.00"),
        description="Monthly Service Fee", account_number="****2222",
        vendor_name=None, transaction_type=TransactionType.FEE,
    )
    rows["transfer"] = await insert_transaction(
        session, doc_b.id,
        transaction_date=date(2024, 2, 1), amount=Decimal("-500.00"),
        description="Transfer to Savings", account_number="****1111",
        vendor_name=None, transaction_type=TransactionType.TRANSFER,
    )
    rows["streaming"] = await insert_transaction(
        session, doc_b.id,
        transaction_date=date(2024, 2, 3), amount=Decimal("-8.99"),
        description="Streaming subscription", account_number=None,
        vendor_name="Netflix", transaction_type=TransactionType.OTHER,
    )

    return {"documents": (doc_a, doc_b), **rows}


# =============================================================================
# PDF Helpers
# =============================================================================

def make_statement_pdf(lines: list[str]) -> bytes:
    """Build a one-page PDF with each line drawn as Helvetica text."""

    def _escape(text: str) -> str:
        return text.replace("\\", "\\\\").replace("(", "\\(").replace(")", "\\)")

    ops = ["BT", "/F1 10 Tf", "50 750 Td"]
    for i, line in enumerate(lines):
        if i:
            ops.append("0 -14 Td")
        ops.append(f"({_escape(line)}) Tj")
    ops.append("ET")
    content = "\n".join(ops).encode("latin-1")

    objects = [
        b"<< /Type /Catalog /Pages 2 0 R >>",
        b"<< /Type /Pages /Kids [3 0 R] /Count 1 >>",
        b"<< /Type /Page /Parent 2 0 R /MediaBox [0 0 612 792] "
        b"/Contents 4 0 R /Resources << /Font << /F1 5 0 R >> >> >>",
        b"<< /Length " + str(len(content)).encode() + b" >>\nstream\n" + content + b"\nendstream",
        b"<< /Type /Font /Subtype /Type1 /BaseFont /Helvetica /Encoding /WinAnsiEncoding >>",
    ]

    out = bytearray(b"%PDF-1.4\n")
    offsets = []
    for number, body in enumerate(objects, start=1):
        offsets.append(len(out))
        out += f"{number} 0 obj\n".encode() + body + b"\nendobj\n"

    xref_offset = len(out)
    out += f"xref\n0 {len(objects) + 1}\n".encode()
    out += b"0000000000 65535 f \n"
    for offset in offsets:
        out += f"{offset:010d} 00000 n \n".encode()
    out += (
        f"trailer\n<< /Size {len(objects) + 1} /Root 1 0 R >>\n"
        f"startxref\n{xref_offset}\n%%EOF\n"
    ).encode()
    return bytes(out)


@pytest.fixture
def statement_pdf() -> bytes:
    return make_statement_pdf([
        "First National Bank",
        "Account Number: 000123456789",
        "Statement Period 01/01/2024 to 01/31/2024",
        "01/02/2024 Opening Balance 1,000.00",
        "01/05/2024 POS WHOLE FOODS MARKET -45.20 954.80",
        "01/10/2024 Direct Deposit from ACME Corp 2,500.00 3,454.80",
        "01/20/2024 Monthly Service Fee -12.00 3,442.80",
        "01/31/2024 Closing Balance 3,442.80",
    ])


# =============================================================================
# HTTP Test Client
# =============================================================================

@pytest.fixture
def app_env(tmp_path, monkeypatch):
    """Environment for an isolated app instance; returns the upload dir."""
    upload_dir = tmp_path / "uploads"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setenv("UPLOAD_DIR", str(upload_dir))
    monkeypatch.setenv("EXTRACTION_BACKEND", "sample")
    monkeypatch.setenv("SAMPLE_EXTRACTION_DELAY_SECONDS", "0")
    monkeypatch.setenv("PROCESS_ON_UPLOAD", "false")
    monkeypatch.setenv("ENVIRONMENT", "test")
    monkeypatch.setenv("DB_CONNECT_ATTEMPTS", "1")
    return upload_dir


@pytest.fixture
def client(app_env):
    """TestClient running startup/shutdown against the isolated environment."""
    from fastapi.testclient import TestClient
    from config import get_settings

    get_settings.cache_clear()
    from main import app

    with TestClient(app) as c:
        yield c

    get_settings.cache_clear()
