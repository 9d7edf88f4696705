import sys
import unittest
from pathlib import Path
from unittest import mock

import requests

FORM_SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(FORM_SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(FORM_SERVICE_ROOT))

from form_engine.reference_data import (  # noqa: E402
    ReferenceDataError,
    RemoteReferenceProvider,
    StaticReferenceProvider,
)


def _response(status_code=200, payload=None, text=""):
    response = mock.Mock()
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


class StaticProviderTests(unittest.TestCase):
    def test_rows_are_normalised(self):
        provider = StaticReferenceProvider(
            {1: [{"id": 7, "name": "Karnataka"}, {"value": "MH", "label": "Maharashtra"}, "  Goa ", "", 3]}
        )
        options = provider.fetch_children("1")
        self.assertEqual(
            [(option.value, option.label) for option in options],
            [("7", "Karnataka"), ("MH", "Maharashtra"), ("Goa", "Goa")],
        )

    def test_unknown_parent_has_no_children(self):
        self.assertEqual(StaticReferenceProvider({}).fetch_children("IN"), [])


class RemoteProviderTests(unittest.TestCase):
    def test_fetches_wrapped_rows(self):
        session = mock.Mock()
        session.get.return_value = _response(payload={"data": [{"id": 1, "name": "Mumbai"}]})
        provider = RemoteReferenceProvider("http://crm.local/api/", "cities", session=session, timeout=2)

        options = provider.fetch_children("MH")

        self.assertEqual([(option.value, option.label) for option in options], [("1", "Mumbai")])
        session.get.assert_called_once_with(
            "http://crm.local/api/cities/MH", headers={"Accept": "application/json"}, timeout=2
        )

    def test_retries_then_succeeds(self):
        session = mock.Mock()
        session.get.side_effect = [
            requests.ConnectionError("refused"),
            _response(payload=["Texas"]),
        ]
        provider = RemoteReferenceProvider("http://crm.local/api", "states", session=session)

        with mock.patch("form_engine.reference_data.time.sleep") as sleep:
            options = provider.fetch_children("US")

        self.assertEqual([option.value for option in options], ["Texas"])
        sleep.assert_called_once_with(0.5)

    def test_gives_up_after_retries(self):
        session = mock.Mock()
        session.get.return_value = _response(status_code=503, text="unavailable")
        provider = RemoteReferenceProvider("http://crm.local/api", "states", retries=3, session=session)

        with mock.patch("form_engine.reference_data.time.sleep") as sleep:
            with self.assertRaises(ReferenceDataError):
                provider.fetch_children("IN")

        self.assertEqual(session.get.call_count, 3)
        self.assertEqual([call.args[0] for call in sleep.call_args_list], [0.5, 1.0])

    def test_unexpected_payload_shape(self):
        session = mock.Mock()
        session.get.return_value = _response(payload={"data": {"id": 1}})
        provider = RemoteReferenceProvider("http://crm.local/api", "states", retries=1, session=session)

        with self.assertRaises(ReferenceDataError):
            provider.fetch_children("IN")


if __name__ == "__main__":
    unittest.main()
