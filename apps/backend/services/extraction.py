"""
Statement Ledger - Transaction Extraction
=========================================
Turns a stored statement into ExtractedTransaction rows.

Two backends are available:
- pdf: pypdf text extraction + line-oriented statement parsing
- sample: deterministic mock keyed off the document's filename
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

from config import Settings, get_settings
from database.models import TransactionType
from exceptions import ExtractionError
from schemas import ExtractedTransaction

logger = logging.getLogger(__name__)


# =============================================================================
# Document Parser
# =============================================================================

class DocumentParser:
    """Parse PDFs into raw text."""

    @staticmethod
    async def parse_pdf(file_path: Path) -> tuple[str, dict]:
        """
        Extract text from PDF file.

        Args:
            file_path: Path to PDF file

        Returns:
            Tuple of (extracted_text, metadata_dict)
        """
        import pypdf

        def _read_pdf():
            reader = pypdf.PdfReader(file_path)
            text = ""
            for page in reader.pages:
                extract = page.extract_text()
                if extract:
                    text += extract + "\n"
            return text, len(reader.pages)

        try:
            loop = asyncio.get_running_loop()
            text, num_pages = await loop.run_in_executor(None, _read_pdf)
        except Exception as e:
            logger.error(f"Failed to parse PDF {file_path}: {e}")
            raise

        metadata = {
            "page_count": num_pages,
            "file_path": str(file_path),
            "parser": "pypdf",
        }
        return text, metadata


# =============================================================================
# Statement Text Parsing
# =============================================================================

# Leading date of a statement line, most specific first
DATE_PATTERNS = [
    (re.compile(r"^(\d{4}-\d{2}-\d{2})\b"), ("%Y-%m-%d",)),
    (re.compile(r"^(\d{1,2}/\d{1,2}/\d{4})\b"), ("%m/%d/%Y", "%d/%m/%Y")),
    (re.compile(r"^(\d{1,2}\.\d{1,2}\.\d{4})\b"), ("%d.%m.%Y",)),
    (re.compile(r"^(\d{1,2} [A-Za-z]{3} \d{4})\b"), ("%d %b %Y",)),
    (re.compile(r"^([A-Za-z]{3} \d{1,2}, \d{4})\b"), ("%b %d, %Y",)),
]

AMOUNT_TOKEN = r"\(?[-+]?[$€£]?\s?[-+]?\d[\d,]*\.\d{2}\)?(?:\s?(?:CR|DR))?"

# Description, amount, optional running balance
LINE_RE = re.compile(
    rf"^(?P<body>.*?)\s+(?P<amount>{AMOUNT_TOKEN})(?:\s+(?P<balance>{AMOUNT_TOKEN}))?\s*$",
    re.IGNORECASE,
)

ACCOUNT_RE = re.compile(
    r"Account\s*(?:Number|No\.?|#)\s*:?\s*(?P<number>[\dXx*][\dXx* \-]{3,})",
    re.IGNORECASE,
)

BALANCE_LINE_RE = re.compile(
    r"\b(?:opening|closing|beginning|ending|previous|new)\s+balance\b|^balance\b",
    re.IGNORECASE,
)

FEE_RE = re.compile(r"\b(?:fees?|charges?)\b", re.IGNORECASE)
TRANSFER_RE = re.compile(r"\b(?:transfer|xfer|zelle)\b", re.IGNORECASE)

VENDOR_PREPOSITION_RE = re.compile(r"\b(?:at|to|from)\s+(?P<vendor>\S.*?)\s*$", re.IGNORECASE)
CARD_PURCHASE_RE = re.compile(
    r"^(?:POS|PURCHASE|DEBIT CARD(?: PURCHASE)?)\s+(?P<vendor>\S.*?)\s*$",
    re.IGNORECASE,
)


def parse_statement_date(text: str) -> Optional[tuple[date, str]]:
    """
    Match a date at the start of a line.

    Returns:
        (parsed_date, remainder_of_line) or None
    """
    for pattern, formats in DATE_PATTERNS:
        m = pattern.match(text)
        if not m:
            continue
        for fmt in formats:
            try:
                parsed = datetime.strptime(m.group(1), fmt).date()
            except ValueError:
                continue
            return parsed, text[m.end():]
    return None


def parse_amount(token: str) -> Decimal:
    """
    Parse a statement amount.

    Handles currency symbols, thousands separators, a leading sign,
    parentheses for negatives and CR/DR suffixes (DR is money out).
    """
    t = token.strip().upper()
    negative = False

    if t.endswith("DR"):
        negative = True
        t = t[:-2].strip()
    elif t.endswith("CR"):
        t = t[:-2].strip()

    if t.startswith("(") and t.endswith(")"):
        negative = True
    t = t.strip("()")

    for symbol in ("$", "€", "£", ",", " "):
        t = t.replace(symbol, "")

    if t.startswith("-"):
        negative = True
    t = t.lstrip("+-")

    try:
        value = Decimal(t)
    except InvalidOperation:
        raise ValueError(f"Unparseable amount: {token!r}")

    return -value if negative else value


def infer_transaction_type(description: str, amount: Decimal) -> TransactionType:
    if FEE_RE.search(description):
        return TransactionType.FEE
    if TRANSFER_RE.search(description):
        return TransactionType.TRANSFER
    return TransactionType.DEBIT if amount < 0 else TransactionType.CREDIT


def infer_vendor(description: str) -> Optional[str]:
    m = VENDOR_PREPOSITION_RE.search(description) or CARD_PURCHASE_RE.match(description)
    if not m:
        return None
    return m.group("vendor")[:255]


def find_account_number(text: str) -> Optional[str]:
    """First account number in the text, masked to its last 4 digits."""
    m = ACCOUNT_RE.search(text)
    if not m:
        return None
    digits = re.sub(r"\D", "", m.group("number"))
    if len(digits) < 4:
        return None
    return "****" + digits[-4:]


def parse_statement_text(text: str) -> list[ExtractedTransaction]:
    """
    Parse statement text into transactions.

    A line is a transaction when it starts with a date and ends with an
    amount (optionally followed by a running balance). Balance summary
    lines are skipped.
    """
    account_number = find_account_number(text)
    transactions: list[ExtractedTransaction] = []

    for raw_line in text.splitlines():
        line = " ".join(raw_line.split())
        if not line:
            continue

        dated = parse_statement_date(line)
        if dated is None:
            continue
        transaction_date, rest = dated

        m = LINE_RE.match(rest)
        if not m:
            continue

        description = m.group("body").strip(" -:")
        if not description or BALANCE_LINE_RE.search(description):
            continue

        # pydantic's ValidationError is a ValueError: out-of-range amounts land here too
        try:
            amount = parse_amount(m.group("amount"))
            transaction = ExtractedTransaction(
                transaction_date=transaction_date,
                amount=amount,
                description=description,
                account_number=account_number,
                vendor_name=infer_vendor(description),
                transaction_type=infer_transaction_type(description, amount),
            )
        except ValueError:
            logger.debug(f"Skipping line with bad amount: {line}")
            continue

        transactions.append(transaction)

    return transactions


# =============================================================================
# Extractors
# =============================================================================

class StatementExtractor(ABC):
    """Produces transactions for a stored document."""

    name: str = "base"

    @abstractmethod
    async def extract(self, document) -> list[ExtractedTransaction]:
        """
        Args:
            document: Object with `filename` and `original_name` attributes

        Raises:
            Exception: Any failure; its message is stored on the document
        """


class SampleStatementExtractor(StatementExtractor):
    """
    Deterministic mock extractor.

    A filename containing "empty" yields nothing, one containing "error"
    fails, anything else yields two fixed transactions.
    """

    name = "sample"

    def __init__(self, delay_seconds: float = 0.1):
        self.delay_seconds = delay_seconds

    async def extract(self, document) -> list[ExtractedTransaction]:
        names = f"{document.filename} {document.original_name or ''}"

        if "empty" in names:
            return []

        if "error" in names:
            raise ExtractionError("PDF parsing failed - corrupted file", filename=document.filename)

        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)

        return [
            ExtractedTransaction(
                transaction_date=date(2024, 1, 15),
                amount=Decimal("-150.75"),
                description="ATM Withdrawal",
                account_number="****1234",
                vendor_name="Chase ATM",
                transaction_type=TransactionType.DEBIT,
            ),
            ExtractedTransaction(
                transaction_date=date(2024, 1, 16),
                amount=Decimal("2500.00"),
                description="Direct Deposit Salary",
                account_number="****1234",
                vendor_name="ACME Corp",
                transaction_type=TransactionType.CREDIT,
            ),
        ]


class PdfStatementExtractor(StatementExtractor):
    """Reads the stored PDF with pypdf and parses its statement lines."""

    name = "pdf"

    def __init__(self, upload_dir: str):
        self.upload_dir = Path(upload_dir)

    async def extract(self, document) -> list[ExtractedTransaction]:
        file_path = self.upload_dir / document.filename
        if not file_path.exists():
            raise ExtractionError(
                f"Stored file not found: {document.filename}",
                filename=document.filename,
                backend=self.name,
            )

        text, metadata = await DocumentParser.parse_pdf(file_path)
        transactions = parse_statement_text(text)

        logger.info(
            f"Parsed {document.filename}: {metadata['page_count']} pages, "
            f"{len(transactions)} transactions"
        )
        return transactions


def get_extractor(settings: Optional[Settings] = None) -> StatementExtractor:
    """Build the extractor selected by EXTRACTION_BACKEND."""
    settings = settings or get_settings()

    if settings.extraction_backend == "sample":
        return SampleStatementExtractor(delay_seconds=settings.sample_extraction_delay_seconds)
    return PdfStatementExtractor(upload_dir=settings.upload_dir)
