import unittest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from app.application.interfaces.payment_gateway import ChargeRequest
from app.domain.errors import ProviderError, ProviderErrorKind
from app.infrastructure.circuit_breaker import paytabs_breaker
from app.infrastructure.gateways.paytabs_gateway import PaytabsGateway


def _response(status_code, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    return resp


class TestPaytabsGateway(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        paytabs_breaker.close()
        self.gateway = PaytabsGateway(profile_id="12345", server_key="SKEY", base_url="https://paytabs.test")
        self.charge = ChargeRequest(
            amount=Decimal("320.5"),
            currency="USD",
            cart_id="BKG-FLT-20251101-ABC123",
            description="Flight JFK-MAD",
            customer_name="Ana Lopez",
            customer_email="ana@example.com",
            callback_url="https://api.example.com/api/v1/payments/paytabs/callback",
        )

    def tearDown(self):
        paytabs_breaker.close()

    def _mock_client(self, mock_client_cls, *responses):
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.post.side_effect = list(responses)
        mock_client_cls.return_value = mock_client
        return mock_client

    @patch("httpx.AsyncClient")
    async def test_create_charge_page(self, mock_client_cls):
        mock_client = self._mock_client(
            mock_client_cls,
            _response(200, {"tran_ref": "TST2233", "redirect_url": "https://secure.paytabs.com/payment/page/TST2233"}),
        )

        page = await self.gateway.create_charge_page(self.charge)

        self.assertEqual(page.transaction_ref, "TST2233")
        self.assertEqual(page.cart_id, "BKG-FLT-20251101-ABC123")
        self.assertEqual(page.gateway, "paytabs")

        call = mock_client.post.call_args
        self.assertEqual(call.args[0], "https://paytabs.test/payment/request")
        self.assertEqual(call.kwargs["headers"]["Authorization"], "SKEY")
        payload = call.kwargs["json"]
        self.assertEqual(payload["tran_type"], "sale")
        self.assertEqual(payload["cart_amount"], 320.5)
        self.assertEqual(payload["callback"], self.charge.callback_url)
        self.assertNotIn("return", payload)

    @patch("httpx.AsyncClient")
    async def test_charge_page_without_redirect_is_an_error(self, mock_client_cls):
        self._mock_client(mock_client_cls, _response(200, {"message": "Profile disabled"}))

        with self.assertRaises(ProviderError) as ctx:
            await self.gateway.create_charge_page(self.charge)

        self.assertEqual(ctx.exception.detail, "Profile disabled")

    @patch("httpx.AsyncClient")
    async def test_verify_approved_payment(self, mock_client_cls):
        self._mock_client(
            mock_client_cls,
            _response(
                200,
                {
                    "tran_ref": "TST2233",
                    "cart_amount": "320.50",
                    "cart_currency": "USD",
                    "payment_result": {"response_status": "A", "response_message": "Authorised"},
                    "payment_info": {"payment_method": "Visa"},
                },
            ),
        )

        verification = await self.gateway.verify_payment("TST2233")

        self.assertTrue(verification.approved)
        self.assertEqual(verification.amount, Decimal("320.50"))
        self.assertEqual(verification.payment_method, "Visa")

    @patch("httpx.AsyncClient")
    async def test_verify_declined_payment(self, mock_client_cls):
        self._mock_client(
            mock_client_cls,
            _response(
                200,
                {"tran_ref": "TST2233", "payment_result": {"response_status": "D", "response_message": "Declined"}},
            ),
        )

        verification = await self.gateway.verify_payment("TST2233")

        self.assertFalse(verification.approved)
        self.assertEqual(verification.status, "D")
        self.assertIsNone(verification.amount)

    @patch("httpx.AsyncClient")
    async def test_refund(self, mock_client_cls):
        mock_client = self._mock_client(
            mock_client_cls,
            _response(200, {"tran_ref": "TST9900", "payment_result": {"response_status": "A"}}),
        )

        result = await self.gateway.refund("TST2233", Decimal("270.50"), "USD", reason="Cancellation")

        self.assertTrue(result.success)
        self.assertEqual(result.refund_ref, "TST9900")
        payload = mock_client.post.call_args.kwargs["json"]
        self.assertEqual(payload["tran_type"], "refund")
        self.assertEqual(payload["tran_ref"], "TST2233")
        self.assertEqual(payload["cart_amount"], 270.5)

    @patch("httpx.AsyncClient")
    async def test_declined_refund(self, mock_client_cls):
        self._mock_client(
            mock_client_cls,
            _response(200, {"payment_result": {"response_status": "E", "response_message": "Already refunded"}}),
        )

        result = await self.gateway.refund("TST2233", Decimal("10.00"), "USD")

        self.assertFalse(result.success)
        self.assertEqual(result.message, "Already refunded")

    @patch("httpx.AsyncClient")
    async def test_rejected_request(self, mock_client_cls):
        self._mock_client(mock_client_cls, _response(400, {"code": 206, "message": "Invalid profile id"}))

        with self.assertRaises(ProviderError) as ctx:
            await self.gateway.verify_payment("TST2233")

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.INVALID_REQUEST)
        self.assertEqual(ctx.exception.http_status, 400)

    @patch("httpx.AsyncClient")
    async def test_network_failure(self, mock_client_cls):
        self._mock_client(mock_client_cls, httpx.ConnectError("connection refused"))

        with self.assertRaises(ProviderError) as ctx:
            await self.gateway.verify_payment("TST2233")

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.UPSTREAM_UNAVAILABLE)

    def test_callback_reference_accepts_both_spellings(self):
        snake = self.gateway.extract_callback_reference({"tran_ref": "TST1", "cart_id": "CART-1"})
        camel = self.gateway.extract_callback_reference({"tranRef": "TST2", "cartId": "CART-2"})

        self.assertEqual((snake.transaction_ref, snake.cart_id), ("TST1", "CART-1"))
        self.assertEqual((camel.transaction_ref, camel.cart_id), ("TST2", "CART-2"))


if __name__ == "__main__":
    unittest.main()
