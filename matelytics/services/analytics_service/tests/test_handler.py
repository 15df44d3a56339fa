"""Tests for Analytics Service HTTP handler.

Tests dashboard endpoints with k-anonymity enforcement.
"""
import pytest

from matelytics.services.analytics_service.handler import (
    app,
    AnalyticsHandler,
    set_handler,
)
from matelytics.services.analytics_service.config import AnalyticsConfig


@pytest.fixture
def client():
    """Flask test client."""
    app.config["TESTING"] = True
    with app.test_client() as client:
        yield client


@pytest.fixture
def handler():
    """Fresh handler for each test."""
    h = AnalyticsHandler(config=AnalyticsConfig(k_anonymity_threshold=5))
    set_handler(h)
    return h


def load_catalog(client, brands):
    for i, brand in enumerate(brands):
        response = client.post("/products", json={
            "_id": f"y{i}",
            "nombre": f"Yerba {i}",
            "marca": brand,
            "containsPalo": "si" if i % 3 else "no",
        })
        assert response.status_code == 201


def add_notes(client, product_id, engagement):
    for i, (likes, replies) in enumerate(engagement):
        response = client.post("/notes", json={
            "_id": f"{product_id}-n{i}",
            "user": f"user{i}",
            "product_id": product_id,
            "comment": f"Nota {i}",
            "likes": likes,
            "replies": replies,
        })
        assert response.status_code == 201


class TestHealthEndpoint:
    """Tests for /health and /ready endpoints."""

    def test_health_returns_200(self, client, handler):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["service"] == "analytics-service"

    def test_ready_returns_200(self, client, handler):
        response = client.get("/ready")

        assert response.status_code == 200
        assert response.get_json()["status"] == "ready"


class TestDistributionEndpoint:
    """Tests for /distributions/<field>."""

    def test_allowed_distribution(self, client, handler):
        load_catalog(client, ["Rosamonte"] * 4 + ["Taragui"] * 2 + [None])

        response = client.get("/distributions/brand")

        assert response.status_code == 200
        data = response.get_json()
        assert data["ok"] is True
        assert data["kAnonymityOk"] is True
        assert data["sampleSize"] == 7
        assert data["field"] == "brand"
        assert [b["value"] for b in data["data"]["buckets"]] == [
            "Rosamonte", "Taragui", "unspecified",
        ]
        assert data["data"]["total"] == 7

    def test_boolean_field(self, client, handler):
        load_catalog(client, ["A"] * 6)

        response = client.get("/distributions/contains-stems")

        data = response.get_json()
        assert data["ok"] is True
        assert data["data"]["buckets"][0] == {
            "value": True, "count": 4, "unspecified": False, "share": 66.67,
        }

    def test_top_n(self, client, handler):
        load_catalog(client, ["A", "A", "A", "B", "B", "C"])

        response = client.get("/distributions/brand?top_n=1")

        data = response.get_json()["data"]
        assert len(data["buckets"]) == 1
        assert data["otherCount"] == 3
        assert data["total"] == 6

    def test_small_catalog_suppressed(self, client, handler):
        load_catalog(client, ["Rosamonte", "Taragui"])

        response = client.get("/distributions/brand")

        assert response.status_code == 200
        data = response.get_json()
        assert data["ok"] is False
        assert data["kAnonymityOk"] is False
        assert data["hasData"] is True
        assert "data" not in data
        assert "Rosamonte" not in response.get_data(as_text=True)

    def test_empty_catalog_suppressed_without_data(self, client, handler):
        data = client.get("/distributions/brand").get_json()

        assert data["ok"] is False
        assert data["hasData"] is False

    def test_unknown_field_returns_400(self, client, handler):
        response = client.get("/distributions/flavour")

        assert response.status_code == 400
        assert "Unknown product field" in response.get_json()["error"]

    def test_invalid_top_n_returns_400(self, client, handler):
        response = client.get("/distributions/brand?top_n=abc")

        assert response.status_code == 400

    def test_narrow_filter_suppressed(self, client, handler):
        load_catalog(client, ["Rosamonte"] * 2 + ["Taragui"] * 8)

        response = client.get("/distributions/contains-stems?brand=Rosamonte")

        data = response.get_json()
        assert response.status_code == 200
        assert data["ok"] is False
        assert data["hasData"] is True
        assert data["filters"] == {"brand": "Rosamonte"}

    def test_broad_filter_allowed(self, client, handler):
        load_catalog(client, ["Rosamonte"] * 2 + ["Taragui"] * 8)

        data = client.get("/distributions/contains-stems?marca=Taragui").get_json()

        assert data["ok"] is True
        assert data["sampleSize"] == 8
        assert data["data"]["total"] == 8

    def test_flag_filter(self, client, handler):
        load_catalog(client, ["A"] * 9)

        data = client.get("/distributions/brand?contains_stems=si").get_json()

        assert data["ok"] is True
        assert data["data"]["total"] == 6
        assert data["filters"] == {"contains_stems": True}

    def test_invalid_flag_filter_returns_400(self, client, handler):
        response = client.get("/distributions/brand?contains_stems=maybe")

        assert response.status_code == 400

    def test_malformed_product_does_not_break_distribution(self, client, handler):
        load_catalog(client, ["Rosamonte"] * 5)

        response = client.post("/products", json={"_id": "p1", "marca": ["Rosamonte"]})

        assert response.status_code == 422
        distribution = client.get("/distributions/brand")
        assert distribution.status_code == 200
        assert distribution.get_json()["data"]["total"] == 5


class TestTopNotesEndpoint:
    """Tests for /notes/top."""

    def test_ranked_notes(self, client, handler):
        load_catalog(client, ["A"])
        add_notes(client, "y0", [(1, 4), (1, 10), (0, 0), (2, 0), (0, 1)])

        response = client.get("/notes/top?product_id=y0")

        data = response.get_json()
        assert data["ok"] is True
        assert data["sampleSize"] == 5
        notes = data["data"]
        assert notes[0]["noteId"] == "y0-n1"
        assert notes[0]["interactionScore"] == 31
        assert notes[0]["normalizedScore"] == 100.0
        assert notes[1]["normalizedScore"] == pytest.approx(41.94)
        assert "authorId" not in notes[0]

    def test_limit(self, client, handler):
        load_catalog(client, ["A"])
        add_notes(client, "y0", [(i, 0) for i in range(6)])

        data = client.get("/notes/top?limit=2").get_json()

        assert [n["likes"] for n in data["data"]] == [5, 4]

    def test_few_authors_suppressed(self, client, handler):
        load_catalog(client, ["A"])
        add_notes(client, "y0", [(3, 3), (1, 0)])

        data = client.get("/notes/top").get_json()

        assert data["ok"] is False
        assert "data" not in data

    def test_filtered_notes_gated_on_filtered_authors(self, client, handler):
        load_catalog(client, ["Rosamonte", "Taragui"])
        add_notes(client, "y0", [(1, 0), (2, 0)])
        add_notes(client, "y1", [(i, 1) for i in range(6)])

        narrow = client.get("/notes/top?brand=Rosamonte").get_json()
        broad = client.get("/notes/top?brand=Taragui").get_json()

        assert narrow["ok"] is False
        assert broad["ok"] is True
        assert {n["productId"] for n in broad["data"]} == {"y1"}

    def test_note_array_counters(self, client, handler):
        load_catalog(client, ["A"])
        response = client.post("/notes", json={
            "_id": "r1", "user": "u1", "product_id": "y0",
            "likes": ["u2", "u3"], "replies": [{"user": "u4"}],
        })

        assert response.status_code == 201
        assert handler.store.notes("y0")[0].replies == 1


class TestIntegrityErrors:

    def test_negative_likes_returns_422(self, client, handler):
        load_catalog(client, ["A"])

        response = client.post("/notes", json={
            "_id": "r1", "user": "u1", "product_id": "y0", "likes": -2,
        })

        assert response.status_code == 422
        assert "non-negative" in response.get_json()["error"]

    def test_note_for_unknown_product_returns_422(self, client, handler):
        response = client.post("/notes", json={
            "_id": "r1", "user": "u1", "product_id": "nope",
        })

        assert response.status_code == 422

    def test_missing_body_returns_400(self, client, handler):
        response = client.post("/products")

        assert response.status_code == 400

    @pytest.mark.parametrize("path", ["/products", "/notes"])
    @pytest.mark.parametrize("body", [[{"_id": "y1"}], "y1", 5])
    def test_non_object_body_returns_400(self, client, handler, path, body):
        response = client.post(path, json=body)

        assert response.status_code == 400

    def test_null_reviews_accepted(self, client, handler):
        response = client.post("/products", json={"_id": "y1", "reviews": None})

        assert response.status_code == 201

    def test_non_object_review_returns_422(self, client, handler):
        response = client.post("/products", json={"_id": "y1", "reviews": ["x"]})

        assert response.status_code == 422
        assert handler.store.product_count() == 0

    def test_reposting_product_does_not_duplicate_reviews(self, client, handler):
        doc = {"_id": "y1", "marca": "A", "reviews": [{"_id": "n1", "user": "u1"}]}

        assert client.post("/products", json=doc).status_code == 201
        assert client.post("/products", json=doc).status_code == 201

        assert [n.note_id for n in handler.store.notes()] == ["n1"]


class TestFilterOptionsEndpoint:

    def test_distinct_values(self, client, handler):
        load_catalog(client, ["Taragui", "Amanda", None, "Taragui"])

        data = client.get("/filters/brand").get_json()

        assert data["options"] == [
            {"value": "Amanda", "label": "Amanda"},
            {"value": "Taragui", "label": "Taragui"},
        ]
