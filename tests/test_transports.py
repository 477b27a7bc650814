"""Tests for transport selection and the requests transport."""

import unittest
from unittest import mock

from hurl.transports import CurlTransport, RequestsTransport, create_transport


class TestCreateTransport(unittest.TestCase):
    """Verify that the factory creates the correct transport type."""

    def test_creates_requests_transport(self):
        self.assertIsInstance(create_transport("requests"), RequestsTransport)

    def test_creates_curl_transport(self):
        self.assertIsInstance(create_transport("curl", impersonate="chrome110"), CurlTransport)

    def test_unknown_transport_raises_error(self):
        with self.assertRaises(ValueError) as ctx:
            create_transport("carrier-pigeon")
        self.assertIn("carrier-pigeon", str(ctx.exception))


class TestRequestsTransport(unittest.TestCase):
    """Verify the status code is returned and the timeout forwarded."""

    def test_get_returns_status_without_reading_body(self):
        response = mock.Mock(status_code=418)
        with mock.patch("requests.Session.get", return_value=response) as get:
            transport = RequestsTransport()
            self.assertEqual(transport.get("https://example.com", timeout=2.5), 418)
            transport.close()
        get.assert_called_once_with("https://example.com", timeout=2.5, stream=True)
        response.close.assert_called_once()

    def test_transport_errors_propagate(self):
        with mock.patch("requests.Session.get", side_effect=ConnectionError("refused")):
            transport = RequestsTransport()
            with self.assertRaises(ConnectionError):
                transport.get("https://example.com", timeout=1.0)
            transport.close()


if __name__ == "__main__":
    unittest.main()
