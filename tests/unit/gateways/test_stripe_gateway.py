import unittest
from decimal import Decimal
from unittest.mock import MagicMock, patch

import stripe

from app.application.interfaces.payment_gateway import ChargeRequest
from app.domain.errors import ProviderError, ProviderErrorKind
from app.infrastructure.circuit_breaker import stripe_breaker
from app.infrastructure.gateways.stripe_gateway import StripeGateway


class TestStripeGateway(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        stripe_breaker.close()
        self.gateway = StripeGateway(api_key="sk_test_123")
        self.charge = ChargeRequest(
            amount=Decimal("320.50"),
            currency="USD",
            cart_id="BKG-FLT-20251101-ABC123",
            description="Flight JFK-MAD",
            customer_email="ana@example.com",
            return_url="https://app.example.com/checkout/done",
        )

    def tearDown(self):
        stripe_breaker.close()

    @patch("stripe.RequestsClient")
    def test_http_client_is_bounded_by_timeout(self, mock_client_cls):
        StripeGateway(api_key="sk_test_123", timeout_seconds=7.5)

        mock_client_cls.assert_called_once_with(timeout=7.5)
        self.assertIs(stripe.default_http_client, mock_client_cls.return_value)
        self.assertEqual(stripe.max_network_retries, 0)

    @patch("stripe.checkout.Session.create")
    async def test_create_charge_page(self, mock_create):
        mock_create.return_value = MagicMock(id="cs_test_1", url="https://checkout.stripe.com/c/cs_test_1")

        page = await self.gateway.create_charge_page(self.charge)

        self.assertEqual(page.transaction_ref, "cs_test_1")
        self.assertEqual(page.payment_url, "https://checkout.stripe.com/c/cs_test_1")
        kwargs = mock_create.call_args.kwargs
        self.assertEqual(kwargs["client_reference_id"], "BKG-FLT-20251101-ABC123")
        self.assertEqual(kwargs["line_items"][0]["price_data"]["unit_amount"], 32050)
        self.assertEqual(kwargs["line_items"][0]["price_data"]["currency"], "usd")
        self.assertEqual(kwargs["customer_email"], "ana@example.com")

    @patch("stripe.checkout.Session.retrieve")
    async def test_verify_paid_session(self, mock_retrieve):
        mock_retrieve.return_value = {
            "payment_status": "paid",
            "status": "complete",
            "amount_total": 32050,
            "currency": "usd",
            "payment_intent": "pi_123",
        }

        verification = await self.gateway.verify_payment("cs_test_1")

        self.assertTrue(verification.approved)
        self.assertEqual(verification.amount, Decimal("320.50"))
        self.assertEqual(verification.currency, "USD")

    @patch("stripe.checkout.Session.retrieve")
    async def test_verify_unpaid_session(self, mock_retrieve):
        mock_retrieve.return_value = {"payment_status": "unpaid", "status": "open", "currency": "usd"}

        verification = await self.gateway.verify_payment("cs_test_1")

        self.assertFalse(verification.approved)
        self.assertIsNone(verification.amount)

    @patch("stripe.Refund.create")
    @patch("stripe.checkout.Session.retrieve")
    async def test_refund_goes_through_payment_intent(self, mock_retrieve, mock_refund):
        mock_retrieve.return_value = {"payment_intent": "pi_123"}
        mock_refund.return_value = {"id": "re_1", "status": "succeeded"}

        result = await self.gateway.refund("cs_test_1", Decimal("270.50"), "USD")

        self.assertTrue(result.success)
        self.assertEqual(result.refund_ref, "re_1")
        self.assertEqual(mock_refund.call_args.kwargs["payment_intent"], "pi_123")
        self.assertEqual(mock_refund.call_args.kwargs["amount"], 27050)

    @patch("stripe.Refund.create")
    @patch("stripe.checkout.Session.retrieve")
    async def test_refund_without_payment(self, mock_retrieve, mock_refund):
        mock_retrieve.return_value = {"payment_intent": None}

        result = await self.gateway.refund("cs_test_1", Decimal("10.00"), "USD")

        self.assertFalse(result.success)
        mock_refund.assert_not_called()

    @patch("stripe.checkout.Session.retrieve")
    async def test_stripe_errors_become_provider_errors(self, mock_retrieve):
        mock_retrieve.side_effect = stripe.InvalidRequestError("No such checkout session", "id", http_status=404)

        with self.assertRaises(ProviderError) as ctx:
            await self.gateway.verify_payment("cs_missing")

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.INVALID_REQUEST)
        self.assertEqual(ctx.exception.http_status, 404)

    def test_callback_reference_from_event(self):
        reference = self.gateway.extract_callback_reference(
            {"type": "checkout.session.completed", "data": {"object": {"id": "cs_1", "client_reference_id": "CART-1"}}}
        )

        self.assertEqual(reference.transaction_ref, "cs_1")
        self.assertEqual(reference.cart_id, "CART-1")


if __name__ == "__main__":
    unittest.main()
