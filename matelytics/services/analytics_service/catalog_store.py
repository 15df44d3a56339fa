"""In-memory catalog store.

Stands in for the document store: returns raw grouped counts and raw note
batches. Shaping and gating those results is the pipeline's job.
"""
import logging
import threading
from collections import Counter
from typing import Any, Container, Dict, Iterable, List, Mapping, Optional

from matelytics.shared.errors import DataIntegrityError
from matelytics.shared.models import Note, ProductField, ProductRecord

logger = logging.getLogger(__name__)

ProductFilters = Mapping[ProductField, Any]


def _parse_reviews(doc: Dict[str, Any], product_id: str) -> List[Note]:
    reviews = doc.get("reviews") or []
    if not isinstance(reviews, list):
        raise DataIntegrityError(
            f"Product {product_id}: reviews must be a list, got {type(reviews).__name__}"
        )
    notes = []
    for review in reviews:
        if not isinstance(review, dict):
            raise DataIntegrityError(
                f"Product {product_id}: each review must be an object, got {review!r}"
            )
        notes.append(Note.from_document(review, product_id=product_id))
    return notes


class CatalogStore:
    """Thread-safe in-memory store of products and review notes."""

    def __init__(self):
        self._lock = threading.Lock()
        self._products: Dict[str, ProductRecord] = {}
        self._notes: List[Note] = []

    def add_product(self, product: ProductRecord) -> None:
        with self._lock:
            self._products[product.product_id] = product

    @staticmethod
    def _check_new_notes(
        notes: Iterable[Note],
        existing: Iterable[Note],
        product_ids: Container[str],
    ) -> None:
        seen = {n.note_id for n in existing}
        for note in notes:
            if note.product_id not in product_ids:
                raise DataIntegrityError(
                    f"Note {note.note_id} references unknown product {note.product_id}"
                )
            if note.note_id in seen:
                raise DataIntegrityError(f"Duplicate note id {note.note_id}")
            seen.add(note.note_id)

    def add_note(self, note: Note) -> None:
        """Add a review note.

        Raises:
            DataIntegrityError: If the note references an unknown product or
                its id is already stored
        """
        with self._lock:
            self._check_new_notes([note], self._notes, self._products)
            self._notes.append(note)

    def load_product_document(self, doc: Dict[str, Any]) -> ProductRecord:
        """Load a catalog document, including its embedded ``reviews``.

        Loading a product that is already stored replaces it together with
        its notes. Nothing is stored if any part of the document is invalid.

        Returns:
            The stored ProductRecord

        Raises:
            DataIntegrityError: If the product or any review is malformed
        """
        product = ProductRecord.from_document(doc)
        notes = _parse_reviews(doc, product.product_id)

        with self._lock:
            kept = [n for n in self._notes if n.product_id != product.product_id]
            replaced = len(self._notes) - len(kept)
            self._check_new_notes(notes, kept, {product.product_id})
            self._products[product.product_id] = product
            self._notes = kept + notes

        logger.info(
            "PRODUCT_LOADED",
            extra={
                "product_id": product.product_id,
                "note_count": len(notes),
                "replaced_notes": replaced,
            }
        )
        return product

    def _matching_products(self, filters: Optional[ProductFilters]) -> List[ProductRecord]:
        with self._lock:
            products = list(self._products.values())
        return [p for p in products if p.matches(filters)]

    def grouped_counts(
        self,
        product_field: ProductField,
        filters: Optional[ProductFilters] = None,
    ) -> Dict[Any, int]:
        """Raw value -> record count for one field, in no particular order.

        Args:
            product_field: Field to group by
            filters: Only count products whose attributes equal these values
        """
        products = self._matching_products(filters)
        return dict(Counter(p.value_of(product_field) for p in products))

    def distinct_values(self, product_field: ProductField) -> List[Any]:
        """Known (non-empty) values of a field, for filter dropdowns."""
        counts = self.grouped_counts(product_field)
        return sorted(
            (v for v in counts if v is not None and v != ""),
            key=str,
        )

    def notes(
        self,
        product_id: Optional[str] = None,
        filters: Optional[ProductFilters] = None,
    ) -> List[Note]:
        """Notes in insertion order, optionally for one product.

        Args:
            product_id: Only notes about this product
            filters: Only notes about products matching these attributes
        """
        with self._lock:
            matching = {
                pid for pid, p in self._products.items() if p.matches(filters)
            }
            return [
                n for n in self._notes
                if n.product_id in matching
                and (product_id is None or n.product_id == product_id)
            ]

    def product_count(self) -> int:
        with self._lock:
            return len(self._products)
