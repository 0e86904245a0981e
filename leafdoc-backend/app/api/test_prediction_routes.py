import io
import os
import tempfile
from datetime import date, datetime
from unittest import TestCase, mock

from PIL import Image

from app import create_app
from app.core.errors import ClassifierError, StoreError
from app.ml.classification.invoker import Classifier
from app.services.remedy_service import SIMPLE_FALLBACK, THREE_PART_FALLBACKS

TODAY = date(2026, 10, 19)


def _png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (8, 8), (40, 160, 60)).save(buf, format="PNG")
    return buf.getvalue()


class StubClassifier(Classifier):
    def __init__(self):
        self.label = "Tomato_Early_blight"
        self.error = None

    def classify(self, image_path):
        if self.error is not None:
            raise self.error
        return self.label


class PredictionRoutesTest(TestCase):
    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.classifier = StubClassifier()
        self.text_client = mock.Mock()
        self.text_client.generate.return_value = "Apply fungicide weekly."

        self.app = create_app(
            {
                "TESTING": True,
                "DATABASE_URL": "sqlite://",
                "AUTO_CREATE_TABLES": True,
                "UPLOAD_DIR": self.tmp.name,
                "LOG_LEVEL": "WARNING",
            },
            classifier=self.classifier,
            text_client=self.text_client,
            today=lambda: TODAY,
        )
        self.client = self.app.test_client()
        self.store = self.app.extensions["leafdoc"]["store"]

    def tearDown(self):
        self.tmp.cleanup()

    def _headers(self, owner="alice"):
        return {"X-User-Id": owner}

    def _upload(self, owner="alice", data=None, filename="leaf.png"):
        payload = {} if data is False else {"image": (io.BytesIO(data or _png_bytes()), filename)}
        return self.client.post(
            "/api/predict/",
            data=payload,
            headers=self._headers(owner),
            content_type="multipart/form-data",
        )

    # --- predict ---

    def test_predict_success(self):
        resp = self._upload()

        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["diseaseName"], "Tomato_Early_blight")
        self.assertEqual(body["remedy"], "Apply fungicide weekly.")
        self.assertTrue(body["imagePath"].startswith("/uploads/"))
        self.assertTrue(body["imagePath"].endswith(".png"))
        saved = os.path.join(self.tmp.name, body["imagePath"].rsplit("/", 1)[-1])
        self.assertTrue(os.path.isfile(saved))
        self.assertEqual(len(self.store.list_by_owner("alice")), 1)

    def test_predict_remedy_fallback(self):
        self.text_client.generate.return_value = None
        resp = self._upload()
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["remedy"], SIMPLE_FALLBACK)

    def test_predict_without_file(self):
        resp = self._upload(data=False)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json(), {"error": "No image file uploaded."})

    def test_predict_rejects_non_image(self):
        resp = self._upload(data=b"definitely not an image", filename="leaf.png")
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.store.list_by_owner("alice"), [])

    def test_predict_classifier_failure(self):
        self.classifier.error = ClassifierError("nonzero-exit", 1)
        resp = self._upload()

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"error": "Prediction script failed to run."})
        self.assertEqual(self.store.list_by_owner("alice"), [])
        self.assertEqual(os.listdir(self.tmp.name), [])

    def test_predict_store_failure_removes_upload(self):
        with mock.patch.object(self.store, "create", side_effect=StoreError("saving prediction")):
            resp = self._upload()

        self.assertEqual(resp.status_code, 500)
        self.assertEqual(resp.get_json(), {"error": "Server error while saving prediction."})
        self.assertEqual(os.listdir(self.tmp.name), [])

    def test_requires_identity(self):
        resp = self.client.get("/api/predict/history")
        self.assertEqual(resp.status_code, 401)

    # --- history / stats / activity ---

    def test_history_newest_first(self):
        self.store.create("alice", "Tomato_healthy", "/uploads/a.png", "ok", created_at=datetime(2026, 10, 17, 8))
        self.store.create("alice", "Potato_Late_blight", "/uploads/b.png", "ok", created_at=datetime(2026, 10, 18, 8))
        self.store.create("bob", "Corn_Common_rust", "/uploads/c.png", "ok", created_at=datetime(2026, 10, 18, 9))

        resp = self.client.get("/api/predict/history", headers=self._headers())

        self.assertEqual(resp.status_code, 200)
        self.assertEqual([r["diseaseName"] for r in resp.get_json()], ["Potato_Late_blight", "Tomato_healthy"])

    def test_history_bad_paging(self):
        resp = self.client.get("/api/predict/history?limit=abc", headers=self._headers())
        self.assertEqual(resp.status_code, 400)

    def test_stats(self):
        for disease in ("Tomato_Early_blight", "Tomato_Early_blight", "Tomato_healthy"):
            self.store.create("alice", disease, "/uploads/a.png", "ok")

        resp = self.client.get("/api/predict/stats", headers=self._headers())

        self.assertEqual(resp.get_json(), [
            {"disease": "Tomato_Early_blight", "count": 2},
            {"disease": "Tomato_healthy", "count": 1},
        ])

    def test_activity(self):
        self.store.create("alice", "Tomato_healthy", "/uploads/a.png", "ok", created_at=datetime(2026, 10, 19, 8))

        resp = self.client.get("/api/predict/activity", headers=self._headers())

        body = resp.get_json()
        self.assertEqual(len(body), 7)
        self.assertEqual(body[-1], {"date": "2026-10-19", "day": "Mon", "healthy": 1, "diseased": 0})
        self.assertEqual(body[0]["date"], "2026-10-13")

    # --- delete ---

    def test_delete_scoped_to_owner(self):
        mine = self.store.create("alice", "Tomato_healthy", "/uploads/a.png", "ok")
        theirs = self.store.create("bob", "Tomato_healthy", "/uploads/b.png", "ok")

        resp = self.client.delete(
            "/api/predict/", json={"ids": [mine["id"], theirs["id"]]}, headers=self._headers()
        )

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["deleted"], 1)
        self.assertEqual(len(self.store.list_by_owner("bob")), 1)

    def test_delete_removes_uploaded_image(self):
        record = self._upload().get_json()
        saved = os.path.join(self.tmp.name, record["imagePath"].rsplit("/", 1)[-1])
        self.assertTrue(os.path.isfile(saved))

        resp = self.client.delete("/api/predict/", json={"ids": [record["id"]]}, headers=self._headers())

        self.assertEqual(resp.get_json()["deleted"], 1)
        self.assertFalse(os.path.exists(saved))

    def test_delete_via_post(self):
        mine = self.store.create("alice", "Tomato_healthy", "/uploads/a.png", "ok")
        resp = self.client.post("/api/predict/delete", json={"ids": [mine["id"]]}, headers=self._headers())
        self.assertEqual(resp.get_json()["deleted"], 1)

    def test_delete_requires_id_list(self):
        for body in ({}, {"ids": "abc"}, {"ids": [1, 2]}):
            resp = self.client.delete("/api/predict/", json=body, headers=self._headers())
            self.assertEqual(resp.status_code, 400)

    # --- remedy details ---

    def test_remedy_details_three_part(self):
        resp = self.client.post("/api/predict/remedy", json={"diseaseName": "Tomato_Early_blight"}, headers=self._headers())

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(set(resp.get_json()), {"chemical", "organic", "prevention"})
        self.assertEqual(self.text_client.generate.call_count, 3)

    def test_remedy_details_all_fallback(self):
        self.text_client.generate.return_value = None
        resp = self.client.post("/api/predict/remedy", json={"diseaseName": "Tomato_Early_blight"}, headers=self._headers())
        self.assertEqual(resp.get_json(), THREE_PART_FALLBACKS)

    def test_remedy_details_requires_name(self):
        resp = self.client.post("/api/predict/remedy", json={}, headers=self._headers())
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json(), {"error": "Disease name is required."})


class StructuredRemedyRouteTest(TestCase):
    def setUp(self):
        self.text_client = mock.Mock()
        app = create_app(
            {
                "TESTING": True,
                "DATABASE_URL": "sqlite://",
                "AUTO_CREATE_TABLES": True,
                "REMEDY_DETAIL_MODE": "structured",
                "LOG_LEVEL": "WARNING",
            },
            classifier=StubClassifier(),
            text_client=self.text_client,
        )
        self.client = app.test_client()

    def test_structured_plan(self):
        self.text_client.generate.return_value = (
            '{"medicineName": "Mancozeb", "howToUse": "Spray weekly", "steps": ["a", "b", "c"]}'
        )
        resp = self.client.post("/api/predict/remedy", json={"diseaseName": "Tomato_Early_blight"}, headers={"X-User-Id": "alice"})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["medicineName"], "Mancozeb")

    def test_structured_plan_unavailable(self):
        self.text_client.generate.return_value = None
        resp = self.client.post("/api/predict/remedy", json={"diseaseName": "Tomato_Early_blight"}, headers={"X-User-Id": "alice"})

        self.assertEqual(resp.status_code, 502)
        self.assertEqual(resp.get_json(), {"error": "Failed to fetch remedy details from AI."})
