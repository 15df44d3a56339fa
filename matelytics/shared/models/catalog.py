"""Catalog and review-note domain models.

Products and notes are owned by the document store and read-only here.
Scored notes and distributions are derived per request and never persisted.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from matelytics.shared.errors import DataIntegrityError

# Label used for missing/empty categorical values
UNSPECIFIED_LABEL = "unspecified"

CategoricalValue = Union[str, bool, int, None]

_TRUE_FLAGS = frozenset({"si", "sí", "yes", "true", "1"})
_FALSE_FLAGS = frozenset({"no", "false", "0"})


class ProductField(Enum):
    """Categorical product attributes that can be grouped for distributions."""
    BRAND = "brand"
    ORIGIN_COUNTRY = "origin_country"
    PRODUCT_TYPE = "product_type"
    CONTAINS_STEMS = "contains_stems"           # boolean flag (con/sin palo)
    PRODUCTION_METHOD = "production_method"
    LEAF_CUT = "leaf_cut"
    ESTABLISHMENT = "establishment"
    AGING_TYPE = "aging_type"                   # tipo de estacionamiento

    @classmethod
    def parse(cls, name: str) -> "ProductField":
        """Resolve a field from its name, accepting dashes for underscores.

        Raises:
            ValueError: If the name is not a known field
        """
        try:
            return cls(name.strip().lower().replace("-", "_"))
        except ValueError:
            known = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown product field '{name}'. Known: {known}")

    @property
    def document_key(self) -> str:
        return _DOCUMENT_KEYS[self]

    def coerce(self, raw: str) -> CategoricalValue:
        """Convert a query-string value to the attribute's type.

        Raises:
            ValueError: If a flag field gets something other than yes/no
        """
        if self is ProductField.CONTAINS_STEMS:
            try:
                return _parse_flag(raw, strict=True)
            except DataIntegrityError as e:
                raise ValueError(str(e))
        return raw


# Document store keys for each field
_DOCUMENT_KEYS: Dict[ProductField, str] = {
    ProductField.BRAND: "marca",
    ProductField.ORIGIN_COUNTRY: "pais",
    ProductField.PRODUCT_TYPE: "tipo",
    ProductField.CONTAINS_STEMS: "containsPalo",
    ProductField.PRODUCTION_METHOD: "produccion",
    ProductField.LEAF_CUT: "leafCut",
    ProductField.ESTABLISHMENT: "establecimiento",
    ProductField.AGING_TYPE: "tipoEstacionamiento",
}


def _parse_flag(raw: Any, strict: bool = False) -> Optional[bool]:
    """Read a yes/no flag. Unrecognized text is unknown (None) unless strict.

    Raises:
        DataIntegrityError: If raw is not a scalar, or strict and unrecognized
    """
    if raw is None or isinstance(raw, bool):
        return raw
    if not isinstance(raw, (str, int)):
        raise DataIntegrityError(f"Flag value must be a string or boolean, got {raw!r}")
    text = str(raw).strip().lower()
    if text in _TRUE_FLAGS:
        return True
    if text in _FALSE_FLAGS:
        return False
    if strict:
        raise DataIntegrityError(f"Unrecognized flag value {raw!r}")
    return None


def _count_signal(raw: Any) -> Optional[int]:
    """Read an engagement counter given as an int or a list of user refs."""
    if raw is None:
        return None
    if isinstance(raw, (list, tuple)):
        return len(raw)
    return raw


@dataclass(frozen=True)
class ProductRecord:
    """A catalog entry (one yerba) with its categorical attributes."""
    product_id: str
    name: str
    brand: Optional[str] = None
    origin_country: Optional[str] = None
    product_type: Optional[str] = None
    contains_stems: Optional[bool] = None
    production_method: Optional[str] = None
    leaf_cut: Optional[str] = None
    establishment: Optional[str] = None
    aging_type: Optional[str] = None

    def __post_init__(self):
        if not self.product_id or not isinstance(self.product_id, str):
            raise DataIntegrityError("Product record requires a string product_id")
        if not isinstance(self.name, str):
            raise DataIntegrityError(
                f"Product {self.product_id}: name must be a string, got {self.name!r}"
            )
        for product_field in ProductField:
            value = self.value_of(product_field)
            if value is None:
                continue
            expected = bool if product_field is ProductField.CONTAINS_STEMS else str
            if not isinstance(value, expected):
                raise DataIntegrityError(
                    f"Product {self.product_id}: {product_field.value} must be "
                    f"{expected.__name__} or null, got {value!r}"
                )

    def value_of(self, product_field: ProductField) -> CategoricalValue:
        """Return the raw value of a categorical attribute."""
        return getattr(self, product_field.value)

    def matches(self, filters: Optional[Mapping[ProductField, CategoricalValue]]) -> bool:
        """True if every filtered attribute equals the requested value."""
        if not filters:
            return True
        return all(self.value_of(f) == v for f, v in filters.items())

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "ProductRecord":
        """Build a record from a raw catalog document.

        Args:
            doc: Document as returned by the store (``_id``, ``nombre``,
                ``marca``, ``containsPalo``...)

        Raises:
            DataIntegrityError: If the document has no identifier
        """
        product_id = doc.get("_id", doc.get("product_id"))
        if product_id is None:
            raise DataIntegrityError("Product document is missing '_id'")

        values = {}
        for product_field, key in _DOCUMENT_KEYS.items():
            raw = doc.get(key, doc.get(product_field.value))
            if product_field is ProductField.CONTAINS_STEMS:
                values[product_field.value] = _parse_flag(raw)
            else:
                values[product_field.value] = raw if raw != "" else None

        return cls(
            product_id=str(product_id),
            name=doc.get("nombre", doc.get("name", "")) or "",
            **values,
        )


@dataclass(frozen=True)
class Note:
    """A review note with raw engagement counters.

    Counters may be None (missing in the source document); scoring treats
    them as zero.
    """
    note_id: str
    label: str
    author_id: str
    product_id: str
    likes: Optional[int] = 0
    replies: Optional[int] = 0

    def __post_init__(self):
        for name in ("likes", "replies"):
            value = getattr(self, name)
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int):
                raise DataIntegrityError(
                    f"Note {self.note_id}: {name} must be an integer, got {value!r}"
                )
            if value < 0:
                raise DataIntegrityError(
                    f"Note {self.note_id}: {name} must be non-negative, got {value}"
                )

    @classmethod
    def from_document(
        cls,
        doc: Dict[str, Any],
        product_id: Optional[str] = None,
    ) -> "Note":
        """Build a note from a raw review document.

        ``likes`` and ``replies`` may be stored as counts or as arrays of
        user references, in which case their length is used.

        Args:
            doc: Review document (``_id``, ``user``, ``comment``, ``likes``,
                ``replies``)
            product_id: Owning product when the review is embedded in it
        """
        note_id = doc.get("_id", doc.get("note_id"))
        author_id = doc.get("user", doc.get("author_id"))
        owner = product_id or doc.get("product_id")
        if note_id is None or author_id is None or owner is None:
            raise DataIntegrityError(
                "Note document requires '_id', 'user' and a product reference"
            )

        return cls(
            note_id=str(note_id),
            label=doc.get("comment", doc.get("label", "")) or "",
            author_id=str(author_id),
            product_id=str(owner),
            likes=_count_signal(doc.get("likes")),
            replies=_count_signal(doc.get("replies")),
        )


@dataclass(frozen=True)
class ScoredNote:
    """A note with its interaction score and batch-relative normalized score."""
    note: Note
    interaction_score: int
    normalized_score: float = 0.0

    def __post_init__(self):
        if self.interaction_score < 0:
            raise ValueError(
                f"Interaction score must be >= 0, got {self.interaction_score}"
            )
        if not 0.0 <= self.normalized_score <= 100.0:
            raise ValueError(
                f"Normalized score must be 0-100, got {self.normalized_score}"
            )

    def with_normalized_score(self, normalized_score: float) -> "ScoredNote":
        return replace(self, normalized_score=normalized_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "noteId": self.note.note_id,
            "label": self.note.label,
            "productId": self.note.product_id,
            "likes": self.note.likes or 0,
            "replies": self.note.replies or 0,
            "interactionScore": self.interaction_score,
            "normalizedScore": round(self.normalized_score, 2),
        }


@dataclass(frozen=True)
class DistributionBucket:
    """One categorical value and the number of records sharing it.

    ``unspecified`` marks the bucket collecting missing values, so it stays
    distinguishable from a real value that happens to equal the label.
    """
    value: CategoricalValue
    count: int
    unspecified: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "count": self.count, "unspecified": self.unspecified}


@dataclass(frozen=True)
class Distribution:
    """Ordered buckets for one field plus the true totals.

    Attributes:
        buckets: Buckets sorted by descending count, then value
        total: Sum of all input counts, including truncated buckets
        other_count: Sum of counts outside a requested top-N
    """
    buckets: Tuple[DistributionBucket, ...] = field(default_factory=tuple)
    total: int = 0
    other_count: int = 0

    def __post_init__(self):
        shown = sum(b.count for b in self.buckets)
        if shown + self.other_count != self.total:
            raise DataIntegrityError(
                f"Distribution counts ({shown} + {self.other_count}) "
                f"do not add up to total ({self.total})"
            )

    def __iter__(self) -> Iterator[DistributionBucket]:
        return iter(self.buckets)

    def __len__(self) -> int:
        return len(self.buckets)

    def __getitem__(self, index: int) -> DistributionBucket:
        return self.buckets[index]

    def shares(self) -> List[float]:
        """Percentage of the total held by each bucket."""
        if self.total == 0:
            return [0.0 for _ in self.buckets]
        return [b.count / self.total * 100 for b in self.buckets]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buckets": [
                dict(b.to_dict(), share=round(share, 2))
                for b, share in zip(self.buckets, self.shares())
            ],
            "total": self.total,
            "otherCount": self.other_count,
        }
