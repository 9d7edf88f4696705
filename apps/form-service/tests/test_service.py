import importlib
import os
import sys
import unittest
from pathlib import Path
from unittest import mock

from fastapi.testclient import TestClient

FORM_SERVICE_ROOT = Path(__file__).resolve().parents[1]
if str(FORM_SERVICE_ROOT) not in sys.path:
    sys.path.insert(0, str(FORM_SERVICE_ROOT))

from form_engine.models import Option  # noqa: E402

_MODULES_TO_CLEAR = ("form_engine.main", "form_engine.reference_data")


def _reload_app():
    for module_name in _MODULES_TO_CLEAR:
        if module_name in sys.modules:
            del sys.modules[module_name]
    module = importlib.import_module("form_engine.main")
    return module.app


class ServiceTestCase(unittest.TestCase):
    def setUp(self):
        self._env_backup = {
            "ENABLE_DEV_ROUTES": os.environ.get("ENABLE_DEV_ROUTES"),
            "REFERENCE_DATA_URL": os.environ.get("REFERENCE_DATA_URL"),
        }
        for key in self._env_backup:
            os.environ.pop(key, None)
        for module_name in _MODULES_TO_CLEAR:
            sys.modules.pop(module_name, None)

    def tearDown(self):
        for module_name in _MODULES_TO_CLEAR:
            sys.modules.pop(module_name, None)
        for key, value in self._env_backup.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value


class FormEndpointTests(ServiceTestCase):
    def setUp(self):
        super().setUp()
        self.client = TestClient(_reload_app())

    def test_health(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "service": "form-service"})

    def test_lists_forms(self):
        response = self.client.get("/forms")
        self.assertEqual(response.status_code, 200)
        self.assertEqual([form["id"] for form in response.json()], ["lead", "deal", "opportunity"])

    def test_unknown_form_is_404(self):
        response = self.client.get("/forms/invoice/schema")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json().get("detail"), "form_not_found")

    def test_schema_is_serialised(self):
        response = self.client.get("/forms/lead/schema")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["id"], "lead")
        self.assertEqual(data["sections"][0]["key"], "companyInfo")
        self.assertIn("pipeline", data["quick_mode_fields"])
        self.assertEqual(data["scroll"]["trigger_ratio"], 0.2)

    def test_evaluate_resolves_dependent_options(self):
        response = self.client.post("/forms/lead/evaluate", json={"values": {"businessUnit": "KPO"}})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(
            [option["value"] for option in data["options"]["productServices"]],
            ["back-office-logistics", "back-office-recruitment"],
        )
        self.assertEqual(data["options"]["leadRemark"], [])
        self.assertIn("zipCode", data["visible"])
        self.assertNotIn("lostReason", data["visible"])

    def test_evaluate_quick_mode_and_search(self):
        response = self.client.post(
            "/forms/lead/evaluate",
            json={"mode": "quick", "values": {"companyName": "Acme Corp", "leadRemark": "Lost"}, "search_term": "acme"},
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertNotIn("zipCode", data["visible"])
        self.assertIn("lostReason", data["required"])
        self.assertEqual(data["matches"], ["companyName"])
        self.assertEqual(data["sections"], ["companyInfo", "customerInfo", "productInfo", "leadInfo"])

    def test_validate_reports_blank_required_fields(self):
        response = self.client.post("/forms/lead/validate", json={})
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertFalse(data["valid"])
        self.assertEqual(data["errors"]["pipeline"], "Pipeline is required")
        self.assertEqual(data["errors"]["mobileNumbers"], "At least one mobile number is required")

    def test_unknown_fields_rejected(self):
        response = self.client.post("/forms/deal/validate", json={"values": {"dealname": "Big", "colour": "red"}})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.json().get("detail"), {"unknown_fields": ["colour"]})

    def test_unknown_mode_rejected(self):
        response = self.client.post("/forms/deal/validate", json={"mode": "compact"})
        self.assertEqual(response.status_code, 422)


class ReferenceRouteTests(ServiceTestCase):
    def test_hidden_without_dev_routes(self):
        client = TestClient(_reload_app())
        response = client.get("/dev/reference/states/IN")
        self.assertEqual(response.status_code, 404)

    def test_requires_reference_url(self):
        os.environ["ENABLE_DEV_ROUTES"] = "true"
        client = TestClient(_reload_app())
        response = client.get("/dev/reference/states/IN")
        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.json().get("detail"), "REFERENCE_DATA_URL not configured")

    def test_returns_options(self):
        os.environ["ENABLE_DEV_ROUTES"] = "true"
        os.environ["REFERENCE_DATA_URL"] = "http://crm.local/api"
        client = TestClient(_reload_app())
        with mock.patch(
            "form_engine.main.RemoteReferenceProvider.fetch_children",
            return_value=[Option(value="MH", label="Maharashtra")],
        ) as fetch:
            response = client.get("/dev/reference/states/IN")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"options": [{"value": "MH", "label": "Maharashtra"}]})
        fetch.assert_called_once_with("IN")

    def test_lookup_failure_is_502(self):
        os.environ["ENABLE_DEV_ROUTES"] = "true"
        os.environ["REFERENCE_DATA_URL"] = "http://crm.local/api"
        client = TestClient(_reload_app())
        module = sys.modules["form_engine.main"]
        with mock.patch.object(
            module.RemoteReferenceProvider,
            "fetch_children",
            side_effect=module.ReferenceDataError("down"),
        ):
            response = client.get("/dev/reference/states/IN")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json().get("detail"), "reference_lookup_failed")


if __name__ == "__main__":
    unittest.main()
