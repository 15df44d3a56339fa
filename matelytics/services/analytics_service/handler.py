"""Analytics Service HTTP Handler - Catalog Dashboard API.

Serializes gated aggregates for the dashboard. Every aggregate endpoint goes
through DashboardPipeline, so nothing reaches a caller without passing the
k-anonymity gate.

Endpoints:
- GET /health - Health check
- GET /ready - Readiness check
- GET /distributions/<field> - Gated distribution of a product field
- GET /notes/top - Gated ranking of review notes by engagement
- GET /filters/<field> - Known values of a product field
- POST /products - Load a catalog document (with embedded reviews)
- POST /notes - Add a review note to a product
"""
import logging
import os
from typing import Any, Dict, Mapping, Optional
from flask import Flask, request, jsonify

from matelytics.shared.errors import DataIntegrityError
from matelytics.shared.models import Note, ProductField
from .catalog_store import CatalogStore
from .config import AnalyticsConfig
from .pipeline import DashboardPipeline

logger = logging.getLogger(__name__)

app = Flask(__name__)


class AnalyticsHandler:
    """Handler for dashboard aggregate endpoints."""

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        store: Optional[CatalogStore] = None,
        pipeline: Optional[DashboardPipeline] = None,
    ):
        """Initialize handler with dependencies.

        Args:
            config: Analytics configuration
            store: Catalog store (injected for testing)
            pipeline: Aggregation pipeline (injected for testing)
        """
        self.config = config or AnalyticsConfig()
        self.store = store or CatalogStore()
        self.pipeline = pipeline or DashboardPipeline(self.config)

        logger.info(
            "ANALYTICS_HANDLER_INITIALIZED",
            extra={
                "k_threshold": self.config.k_anonymity_threshold,
                "reply_weight": self.config.reply_weight,
            }
        )

    def get_distribution(
        self,
        product_field: ProductField,
        top_n: Optional[int] = None,
        filters: Optional[Mapping[ProductField, Any]] = None,
    ) -> Dict[str, Any]:
        """Get the gated distribution of one product field.

        The gate sees only the filtered cohort, so a narrow filter is
        suppressed even when the whole catalog is large.

        Args:
            product_field: Field to group by
            top_n: Optional number of buckets to return
            filters: Product attributes the cohort must match

        Returns:
            Serialized gate result plus the field name
        """
        result = self.pipeline.aggregate_distribution(
            self.store.grouped_counts(product_field, filters),
            top_n=top_n,
            context=f"distribution:{product_field.value}",
        )
        return {
            "field": product_field.value,
            "filters": _filters_to_dict(filters),
            "kAnonymityThreshold": self.config.k_anonymity_threshold,
            **result.to_dict(lambda d: d.to_dict()),
        }

    def get_top_notes(
        self,
        product_id: Optional[str] = None,
        limit: Optional[int] = None,
        filters: Optional[Mapping[ProductField, Any]] = None,
    ) -> Dict[str, Any]:
        """Get the gated engagement ranking of review notes.

        Args:
            product_id: Restrict to one product (default: whole catalog)
            limit: Maximum notes to return
            filters: Only notes about products with these attributes
        """
        result = self.pipeline.score_and_rank_notes(
            self.store.notes(product_id, filters),
            limit=limit,
            context=f"top_notes:{product_id or 'all'}",
        )
        return {
            "productId": product_id,
            "filters": _filters_to_dict(filters),
            "kAnonymityThreshold": self.config.k_anonymity_threshold,
            **result.to_dict(lambda notes: [n.to_dict() for n in notes]),
        }

    def get_filter_options(self, product_field: ProductField) -> Dict[str, Any]:
        values = self.store.distinct_values(product_field)
        return {
            "field": product_field.value,
            "options": [{"value": v, "label": str(v)} for v in values],
        }


def _filters_to_dict(filters: Optional[Mapping[ProductField, Any]]) -> Dict[str, Any]:
    return {f.value: v for f, v in (filters or {}).items()}


# Global handler instance
_handler: Optional[AnalyticsHandler] = None


def get_handler() -> AnalyticsHandler:
    """Get or create the global handler instance."""
    global _handler
    if _handler is None:
        _handler = AnalyticsHandler(config=AnalyticsConfig.from_env())
    return _handler


def set_handler(handler: AnalyticsHandler) -> None:
    """Set the global handler (for testing)."""
    global _handler
    _handler = handler


class InvalidRequest(ValueError):
    pass


def _int_arg(name: str) -> Optional[int]:
    raw = request.args.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except ValueError:
        raise InvalidRequest(f"{name} must be an integer")
    if value < 1:
        raise InvalidRequest(f"{name} must be >= 1")
    return value


def _field_arg(name: str) -> ProductField:
    try:
        return ProductField.parse(name)
    except ValueError as e:
        raise InvalidRequest(str(e))


def _filter_args() -> Dict[ProductField, Any]:
    """Product filters from the query string, by field name or document key."""
    filters = {}
    for product_field in ProductField:
        raw = request.args.get(product_field.value)
        if raw is None:
            raw = request.args.get(product_field.document_key)
        if raw is None or raw == "":
            continue
        try:
            filters[product_field] = product_field.coerce(raw)
        except ValueError as e:
            raise InvalidRequest(str(e))
    return filters


@app.errorhandler(InvalidRequest)
def handle_bad_request(error: InvalidRequest):
    return jsonify({"error": str(error)}), 400


@app.errorhandler(DataIntegrityError)
def handle_integrity_error(error: DataIntegrityError):
    logger.error("DATA_INTEGRITY_ERROR", extra={"error": str(error)})
    return jsonify({"error": str(error)}), 422


# Flask routes
@app.route("/health", methods=["GET"])
def health():
    """Health check endpoint."""
    return jsonify({"status": "healthy", "service": "analytics-service"})


@app.route("/ready", methods=["GET"])
def ready():
    """Readiness check endpoint."""
    return jsonify({"status": "ready", "service": "analytics-service"})


@app.route("/distributions/<field_name>", methods=["GET"])
def distribution(field_name: str):
    """Get a gated distribution.

    Query params:
        top_n: Optional - Number of buckets to return (default all)
        brand, origin_country, contains_stems, ...: Optional - Product filters
            (document keys such as marca or pais are accepted too)
    """
    product_field = _field_arg(field_name)
    top_n = _int_arg("top_n")
    filters = _filter_args()
    return jsonify(get_handler().get_distribution(product_field, top_n, filters))


@app.route("/notes/top", methods=["GET"])
def top_notes():
    """Get the gated note ranking.

    Query params:
        product_id: Optional - Restrict to one product
        limit: Optional - Max notes
        brand, origin_country, contains_stems, ...: Optional - Product filters
    """
    product_id = request.args.get("product_id") or None
    limit = _int_arg("limit")
    filters = _filter_args()
    return jsonify(get_handler().get_top_notes(product_id, limit, filters))


@app.route("/filters/<field_name>", methods=["GET"])
def filter_options(field_name: str):
    """Get known values of a field for dashboard filters."""
    product_field = _field_arg(field_name)
    return jsonify(get_handler().get_filter_options(product_field))


@app.route("/products", methods=["POST"])
def add_product():
    """Load a catalog document.

    Body:
        _id: Product identifier
        nombre, marca, pais, tipo, ...: Categorical attributes
        reviews: Optional - Embedded review documents
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "Request body must be a non-empty JSON object"}), 400

    product = get_handler().store.load_product_document(data)
    return jsonify({"status": "accepted", "product_id": product.product_id}), 201


@app.route("/notes", methods=["POST"])
def add_note():
    """Add a review note.

    Body:
        _id: Note identifier
        user: Author reference
        product_id: Product the note concerns
        comment: Free-text label
        likes, replies: Counts or arrays of user references
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not data:
        return jsonify({"error": "Request body must be a non-empty JSON object"}), 400

    note = Note.from_document(data)
    get_handler().store.add_note(note)
    return jsonify({"status": "accepted", "note_id": note.note_id}), 201


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    port = int(os.getenv("PORT", "8080"))
    app.run(host="0.0.0.0", port=port)
