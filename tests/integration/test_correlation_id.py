import logging
import uuid

import pytest
from rest_framework.test import APIClient

pytestmark = pytest.mark.integration


class TestCorrelationIdMiddleware:
    def test_returns_provided_request_id(self, client):
        custom_id = "my-custom-request-id-123"
        response = client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert response["X-Request-ID"] == custom_id

    def test_generates_uuid_when_no_request_id(self, client):
        response = client.get("/health")
        request_id = response["X-Request-ID"]
        assert str(uuid.UUID(request_id)) == request_id

    def test_correlation_id_in_logs(self, client, caplog):
        custom_id = "log-test-correlation-456"
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        found = any(custom_id in record.getMessage() for record in caplog.records)
        assert found, (
            f"correlation_id '{custom_id}' not found in log records: "
            f"{[r.getMessage() for r in caplog.records]}"
        )

    def test_correlation_id_reaches_order_logs(
        self, customer, make_variant, address, cod_method, caplog
    ):
        client = APIClient()
        client.force_authenticate(user=customer)
        payload = {
            "items": [{"variant_id": str(make_variant("CID-1").id), "quantity": 1}],
            "address_id": str(address.id),
            "payment_method_id": str(cod_method.id),
        }

        with caplog.at_level(logging.INFO):
            client.post(
                "/api/v1/orders/",
                payload,
                format="json",
                HTTP_X_REQUEST_ID="checkout-trace-789",
            )

        messages = [record.getMessage() for record in caplog.records]
        assert any(
            "order.created" in message and "checkout-trace-789" in message
            for message in messages
        ), messages
