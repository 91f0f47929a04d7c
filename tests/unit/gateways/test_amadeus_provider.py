import unittest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

from app.application.interfaces.flight_provider import SearchCriteria
from app.domain.entities.flight_offer import ProviderKind
from app.domain.entities.traveler import ContactInfo, Traveler, TravelerDocument
from app.domain.errors import ProviderError, ProviderErrorKind
from app.infrastructure.circuit_breaker import amadeus_breaker
from app.infrastructure.gateways import amadeus_normalizer
from app.infrastructure.gateways.amadeus_provider import (
    TOKEN_PATH,
    AmadeusFlightProvider,
    build_search_params,
)
from app.infrastructure.in_memory import StubAmadeusProvider

BASE_URL = "https://test.api.amadeus.test"


def _response(status_code, body=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body if body is not None else {}
    return resp


def _token_response(expires_in=1799):
    return _response(200, {"access_token": "tok_abc", "token_type": "Bearer", "expires_in": expires_in})


class TestAmadeusFlightProvider(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        amadeus_breaker.close()
        self.provider = AmadeusFlightProvider(client_id="cid", client_secret="secret", base_url=BASE_URL)
        self.criteria = SearchCriteria(
            origin="MEX", destination="MAD", departure_date="2025-12-15", return_date="2025-12-22", adults=2
        )
        self.raw_offer = StubAmadeusProvider().raw_offer(self.criteria)

    def tearDown(self):
        amadeus_breaker.close()

    def _mock_client(self, mock_client_cls, *responses):
        mock_client = AsyncMock()
        mock_client.__aenter__.return_value = mock_client
        mock_client.request.side_effect = list(responses)
        mock_client_cls.return_value = mock_client
        return mock_client

    @patch("httpx.AsyncClient")
    async def test_search_authenticates_then_queries(self, mock_client_cls):
        mock_client = self._mock_client(
            mock_client_cls, _token_response(), _response(200, {"data": [self.raw_offer]})
        )

        offers = await self.provider.search(self.criteria)

        self.assertEqual(len(offers), 1)
        self.assertEqual(offers[0].provider, ProviderKind.GDS)
        self.assertEqual(len(offers[0].itineraries), 2)
        self.assertEqual(offers[0].price.total, Decimal("320.50"))

        token_call, search_call = mock_client.request.call_args_list
        self.assertEqual(token_call.args, ("POST", f"{BASE_URL}{TOKEN_PATH}"))
        self.assertEqual(token_call.kwargs["data"]["grant_type"], "client_credentials")
        self.assertEqual(search_call.args, ("GET", f"{BASE_URL}/v2/shopping/flight-offers"))
        self.assertEqual(search_call.kwargs["headers"]["Authorization"], "Bearer tok_abc")
        self.assertEqual(search_call.kwargs["params"]["returnDate"], "2025-12-22")

    @patch("httpx.AsyncClient")
    async def test_token_is_cached_between_calls(self, mock_client_cls):
        mock_client = self._mock_client(
            mock_client_cls,
            _token_response(),
            _response(200, {"data": [self.raw_offer]}),
            _response(200, {"data": []}),
        )

        await self.provider.search(self.criteria)
        await self.provider.search(self.criteria)

        self.assertEqual(mock_client.request.call_count, 3)

    @patch("httpx.AsyncClient")
    async def test_authentication_failure(self, mock_client_cls):
        self._mock_client(
            mock_client_cls, _response(401, {"error": "invalid_client", "error_description": "Client not found"})
        )

        with self.assertRaises(ProviderError) as ctx:
            await self.provider.search(self.criteria)

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.UPSTREAM_UNAVAILABLE)
        self.assertEqual(ctx.exception.detail, "Client not found")

    @patch("httpx.AsyncClient")
    async def test_reprice_without_offers_means_expired(self, mock_client_cls):
        offer = amadeus_normalizer.normalize_offer(self.raw_offer)
        self._mock_client(
            mock_client_cls, _token_response(), _response(200, {"data": {"flightOffers": []}})
        )

        with self.assertRaises(ProviderError) as ctx:
            await self.provider.reprice(offer)

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.OFFER_EXPIRED)

    @patch("httpx.AsyncClient")
    async def test_create_order_sends_full_offer_and_travelers(self, mock_client_cls):
        offer = amadeus_normalizer.normalize_offer(self.raw_offer)
        raw_order = {
            "id": "eJzTd9f3NjIJdzUGAAp%2fAiY=",
            "associatedRecords": [{"reference": "KBR2SV", "originSystemCode": "GDS"}],
            "flightOffers": [self.raw_offer],
            "tickets": [{"documentType": "ETICKET", "documentNumber": "0572345678901"}],
        }
        mock_client = self._mock_client(mock_client_cls, _token_response(), _response(201, {"data": raw_order}))
        traveler = Traveler(
            first_name="Luis",
            last_name="Garcia",
            date_of_birth="1985-03-02",
            gender="MALE",
            documents=[TravelerDocument(number="G123456", expiry_date="2031-06-30", issuing_country="MX")],
        )

        order = await self.provider.create_order(
            offer, [traveler], ContactInfo(email="luis@example.com", phone="5512345678"), remarks="VIP"
        )

        self.assertEqual(order.booking_reference, "KBR2SV")
        self.assertEqual(order.total_amount, Decimal("320.50"))
        self.assertEqual(order.ticket_numbers, ["0572345678901"])

        data = mock_client.request.call_args.kwargs["json"]["data"]
        self.assertEqual(data["flightOffers"], [self.raw_offer])
        sent = data["travelers"][0]
        self.assertEqual(sent["id"], "1")
        self.assertEqual(sent["name"], {"firstName": "LUIS", "lastName": "GARCIA"})
        self.assertEqual(sent["documents"][0]["documentType"], "PASSPORT")
        self.assertEqual(sent["documents"][0]["nationality"], "MX")
        self.assertEqual(sent["contact"]["phones"][0]["number"], "5512345678")
        self.assertEqual(data["remarks"]["general"][0]["text"], "VIP")

    @patch("httpx.AsyncClient")
    async def test_cancel_with_empty_body(self, mock_client_cls):
        mock_client = self._mock_client(mock_client_cls, _token_response(), _response(204))

        result = await self.provider.cancel_order("ORDER123")

        self.assertEqual(result.provider_order_id, "ORDER123")
        self.assertIsNone(result.refund_amount)
        self.assertEqual(mock_client.request.call_args.args[0], "DELETE")

    @patch("httpx.AsyncClient")
    async def test_client_error_detail_is_kept(self, mock_client_cls):
        self._mock_client(
            mock_client_cls,
            _token_response(),
            _response(400, {"errors": [{"code": 477, "title": "INVALID FORMAT", "detail": "departureDate"}]}),
        )

        with self.assertRaises(ProviderError) as ctx:
            await self.provider.search(self.criteria)

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.INVALID_REQUEST)
        self.assertEqual(ctx.exception.detail, "departureDate")
        self.assertEqual(ctx.exception.provider, "amadeus")

    async def test_ancillaries_are_not_supported(self):
        with self.assertRaises(ProviderError) as ctx:
            await self.provider.get_ancillaries("1")

        self.assertEqual(ctx.exception.kind, ProviderErrorKind.INVALID_REQUEST)

    def test_search_params(self):
        params = build_search_params(
            SearchCriteria(origin="JFK", destination="LHR", departure_date="2025-12-01", children=1, non_stop=True)
        )

        self.assertEqual(params["originLocationCode"], "JFK")
        self.assertEqual(params["children"], 1)
        self.assertEqual(params["nonStop"], "true")
        self.assertNotIn("returnDate", params)
        self.assertNotIn("infants", params)


if __name__ == "__main__":
    unittest.main()
