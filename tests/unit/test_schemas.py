"""
Unit Tests - Pydantic Schema Validation
=======================================
Test request validation and response serialization.
"""

import json
from datetime import date, datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

pytestmark = pytest.mark.unit


class TestCreateTransactionRequest:
    """Tests for CreateTransactionRequest."""

    def test_amount_rounded_half_up(self):
        from schemas import CreateTransactionRequest

        request = CreateTransactionRequest(
            document_id=1,
            transaction_date="2024-01-15",
            amount="10.005",
            description="Coffee",
        )

        assert request.amount == Decimal("10.01")
        assert request.transaction_date == date(2024, 1, 15)

    def test_negative_amount_rounded_half_up(self):
        from schemas import CreateTransactionRequest

        request = CreateTransactionRequest(
            document_id=1, transaction_date="2024-01-15", amount="-2.345", description="x"
        )

        assert request.amount == Decimal("-2.35")

    def test_nullable_fields_default_to_none(self):
        from schemas import CreateTransactionRequest

        request = CreateTransactionRequest(
            document_id=1, transaction_date="2024-01-15", amount=1, description="x"
        )

        assert request.account_number is None
        assert request.vendor_name is None
        assert request.transaction_type is None

    def test_empty_description_allowed(self):
        from schemas import CreateTransactionRequest, UpdateTransactionRequest

        request = CreateTransactionRequest(
            document_id=1, transaction_date="2024-01-15", amount=1, description=""
        )

        assert request.description == ""
        assert UpdateTransactionRequest(description="").changes() == {"description": ""}

    def test_unknown_transaction_type_fails(self):
        from schemas import CreateTransactionRequest

        with pytest.raises(ValidationError):
            CreateTransactionRequest(
                document_id=1, transaction_date="2024-01-15", amount=1,
                description="x", transaction_type="refund",
            )

    def test_amount_out_of_range_fails(self):
        from schemas import CreateTransactionRequest

        with pytest.raises(ValidationError):
            CreateTransactionRequest(
                document_id=1, transaction_date="2024-01-15",
                amount="12345678901.00", description="x",
            )


class TestUpdateRequests:
    """Partial update semantics depend on which keys were sent."""

    def test_update_transaction_changes_only_sent_fields(self):
        from schemas import UpdateTransactionRequest

        request = UpdateTransactionRequest.model_validate({"description": "New", "vendor_name": None})

        assert request.changes() == {"description": "New", "vendor_name": None}

    def test_update_transaction_rounds_amount(self):
        from schemas import UpdateTransactionRequest

        request = UpdateTransactionRequest(amount="3.333")

        assert request.changes() == {"amount": Decimal("3.33")}

    def test_status_request_tracks_error_message_presence(self):
        from schemas import UpdateDocumentStatusRequest

        omitted = UpdateDocumentStatusRequest.model_validate({"processing_status": "failed"})
        explicit_null = UpdateDocumentStatusRequest.model_validate(
            {"processing_status": "failed", "error_message": None}
        )

        assert omitted.error_message_provided is False
        assert explicit_null.error_message_provided is True

    def test_status_request_rejects_unknown_status(self):
        from schemas import UpdateDocumentStatusRequest

        with pytest.raises(ValidationError):
            UpdateDocumentStatusRequest(processing_status="archived")


class TestSearchTransactionsRequest:

    def test_defaults(self):
        from schemas import SearchTransactionsRequest

        request = SearchTransactionsRequest()

        assert request.sort_by == "transaction_date"
        assert request.sort_order == "desc"
        assert request.page == 1
        assert request.limit == 20
        assert request.offset == 0

    def test_offset_from_page(self):
        from schemas import SearchTransactionsRequest

        assert SearchTransactionsRequest(page=3, limit=25).offset == 50

    @pytest.mark.parametrize("limit", [0, 101])
    def test_limit_bounds(self, limit):
        from schemas import SearchTransactionsRequest

        with pytest.raises(ValidationError):
            SearchTransactionsRequest(limit=limit)

    def test_page_must_be_positive(self):
        from schemas import SearchTransactionsRequest

        with pytest.raises(ValidationError):
            SearchTransactionsRequest(page=0)

    def test_unknown_sort_field_fails(self):
        from schemas import SearchTransactionsRequest

        with pytest.raises(ValidationError):
            SearchTransactionsRequest(sort_by="created_at")


class TestTransactionResponse:

    def test_amount_serialized_as_number(self):
        from schemas import TransactionResponse

        response = TransactionResponse(
            id=1,
            document_id=1,
            transaction_date=date(2024, 1, 15),
            amount=Decimal("-150.75"),
            description="ATM Withdrawal",
            transaction_type="debit",
            created_at=datetime(2024, 1, 15, 12, 0, 0),
        )

        payload = json.loads(response.model_dump_json())

        assert payload["amount"] == -150.75
        assert payload["transaction_type"] == "debit"
        assert payload["vendor_name"] is None
        assert response.amount == Decimal("-150.75")
