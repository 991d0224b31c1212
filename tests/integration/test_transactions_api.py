"""
Integration Tests - Transactions API
====================================
CRUD and search through the HTTP layer.
"""

import pytest

pytestmark = pytest.mark.integration

TX = "/api/v1/transactions"


@pytest.fixture
def document_id(client):
    response = client.post(
        "/api/v1/documents",
        files={"file": ("statement.pdf", b"%PDF-1.4\n", "application/pdf")},
    )
    return response.json()["id"]


@pytest.fixture
def seeded(client, document_id):
    """Five transactions created through the API, keyed by description."""
    payloads = [
        {"transaction_date": "2024-01-05", "amount": -45.20, "description": "Grocery Store Purchase",
         "account_number": "****1111", "vendor_name": "Whole Foods", "transaction_type": "debit"},
        {"transaction_date": "2024-01-10", "amount": 2500, "description": "Direct Deposit Salary",
         "account_number": "****1111", "vendor_name": "ACME Corp", "transaction_type": "credit"},
        {"transaction_date": "2024-01-15", "amount": -150.75, "description": "ATM Withdrawal",
         "account_number": "****2222", "vendor_name": "Chase ATM", "transaction_type": "debit"},
        {"transaction_date": "2024-01-20", "amount": -12, "description": "Monthly Service Fee",
         "account_number": "****2222", "transaction_type": "fee"},
        {"transaction_date": "2024-02-01", "amount": -500, "description": "Transfer to Savings",
         "account_number": "****1111", "transaction_type": "transfer"},
    ]
    created = {}
    for payload in payloads:
        response = client.post(TX, json={"document_id": document_id, **payload})
        assert response.status_code == 201
        created[payload["description"]] = response.json()
    return created


# =============================================================================
# CRUD
# =============================================================================

class TestTransactionCrud:

    def test_create_returns_transaction(self, client, document_id):
        response = client.post(TX, json={
            "document_id": document_id,
            "transaction_date": "2024-03-01",
            "amount": "10.005",
            "description": "Coffee",
        })

        assert response.status_code == 201
        body = response.json()
        assert body["amount"] == 10.01
        assert body["document_id"] == document_id
        assert body["vendor_name"] is None
        assert body["transaction_type"] is None
        assert body["id"] > 0

    def test_create_for_missing_document(self, client):
        response = client.post(TX, json={
            "document_id": 999,
            "transaction_date": "2024-03-01",
            "amount": 1,
            "description": "Orphan",
        })

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Document with ID 999 not found"

    def test_create_invalid_body(self, client, document_id):
        response = client.post(TX, json={
            "document_id": document_id,
            "transaction_date": "not-a-date",
            "amount": 1,
            "description": "x",
        })

        assert response.status_code == 422

    def test_list_newest_first(self, client, seeded):
        dates = [t["transaction_date"] for t in client.get(TX).json()]

        assert dates == ["2024-02-01", "2024-01-20", "2024-01-15", "2024-01-10", "2024-01-05"]

    def test_get_and_missing(self, client, seeded):
        atm = seeded["ATM Withdrawal"]

        assert client.get(f"{TX}/{atm['id']}").json() == atm
        assert client.get(f"{TX}/999").status_code == 404

    def test_partial_update(self, client, seeded):
        atm = seeded["ATM Withdrawal"]

        response = client.patch(f"{TX}/{atm['id']}", json={"vendor_name": None, "amount": -160})

        assert response.status_code == 200
        body = response.json()
        assert body["vendor_name"] is None
        assert body["amount"] == -160.0
        assert body["description"] == "ATM Withdrawal"

    def test_update_null_description_rejected(self, client, seeded):
        atm = seeded["ATM Withdrawal"]

        response = client.patch(f"{TX}/{atm['id']}", json={"description": None})

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "description cannot be null"

    def test_delete(self, client, seeded):
        fee = seeded["Monthly Service Fee"]

        response = client.delete(f"{TX}/{fee['id']}")

        assert response.json() == {"success": True, "id": fee["id"]}
        assert client.get(f"{TX}/{fee['id']}").status_code == 404
        assert len(client.get(TX).json()) == 4
        assert client.delete(f"{TX}/{fee['id']}").status_code == 404


# =============================================================================
# Search
# =============================================================================

class TestSearchEndpoint:

    def test_default_page(self, client, seeded):
        body = client.get(f"{TX}/search").json()

        assert body["total_count"] == 5
        assert body["page"] == 1
        assert body["limit"] == 20
        assert body["total_pages"] == 1
        assert body["transactions"][0]["description"] == "Transfer to Savings"

    def test_search_term_matches_vendor(self, client, seeded):
        body = client.get(f"{TX}/search", params={"search_term": "whole foods"}).json()

        assert [t["description"] for t in body["transactions"]] == ["Grocery Store Purchase"]

    def test_combined_filters(self, client, seeded):
        body = client.get(f"{TX}/search", params={
            "date_from": "2024-01-01",
            "date_to": "2024-01-31",
            "max_amount": "0",
            "account_number": "****2222",
        }).json()

        assert {t["description"] for t in body["transactions"]} == {
            "ATM Withdrawal", "Monthly Service Fee"
        }

    def test_blank_filters_ignored(self, client, seeded):
        body = client.get(
            f"{TX}/search?search_term=&account_number=&vendor_name="
        ).json()

        assert body["total_count"] == 5

    def test_type_filter(self, client, seeded):
        body = client.get(f"{TX}/search", params={"transaction_type": "debit"}).json()

        assert body["total_count"] == 2

    def test_sort_and_paginate(self, client, seeded):
        body = client.get(f"{TX}/search", params={
            "sort_by": "amount", "sort_order": "asc", "limit": 2, "page": 2,
        }).json()

        assert body["total_count"] == 5
        assert body["total_pages"] == 3
        assert [t["amount"] for t in body["transactions"]] == [-45.2, -12.0]

    @pytest.mark.parametrize("params", [
        {"limit": 101},
        {"limit": 0},
        {"page": 0},
        {"sort_by": "created_at"},
        {"sort_order": "sideways"},
        {"transaction_type": "refund"},
    ])
    def test_invalid_parameters(self, client, params):
        assert client.get(f"{TX}/search", params=params).status_code == 422
