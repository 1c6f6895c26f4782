"""
In-Memory Annotation Store

Dictionary-backed AnnotationStore used for tests, demos and as the fallback
when no persistent store is configured. Rows go through the same coercion a
database-backed store applies (string fees, Korean size labels, raw ids).
"""

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from ...exceptions import AnnotationStoreError
from ...models.listing import AnnotationRecord, AnnotationSource, PetSizeLimit
from ...utils.ids import normalize_content_id
from .base import AnnotationStore

logger = logging.getLogger(__name__)

# Korean labels seen in stored rows, matched as substrings
_SIZE_LABELS = [
    ("제한 없음", PetSizeLimit.UNLIMITED),
    ("제한없", PetSizeLimit.UNLIMITED),
    ("소형", PetSizeLimit.SMALL),
    ("중형", PetSizeLimit.MEDIUM),
    ("대형", PetSizeLimit.LARGE),
]

_RECORD_FIELDS = {
    "is_pet_allowed", "pet_policy", "pet_fee", "pet_size_limit", "pet_count_limit", "notes",
}


def _coerce_fee(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip())
    except ValueError:
        logger.debug(f"Unparseable pet_fee value: {value!r}")
        return None


def _coerce_size(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    lowered = text.lower()
    if lowered in {s.value for s in PetSizeLimit}:
        return lowered
    for label, size in _SIZE_LABELS:
        if label in text:
            return size.value
    # Unknown labels are kept as-is for display
    return text


def transform_annotation_row(row: Dict[str, Any]) -> AnnotationRecord:
    """
    Convert a raw store row into an AnnotationRecord.

    - ``content_id`` is normalized
    - ``pet_fee`` strings (DECIMAL columns) become floats
    - Korean ``pet_size_limit`` labels map to size classes

    Raises:
        AnnotationStoreError: If the row has no identifier or cannot be validated
    """
    content_id = normalize_content_id(row.get("content_id"))
    if not content_id:
        raise AnnotationStoreError(f"Annotation row without content_id: {row!r}")

    count = row.get("pet_count_limit")
    try:
        return AnnotationRecord(
            content_id=content_id,
            is_pet_allowed=bool(row.get("is_pet_allowed", False)),
            pet_policy=row.get("pet_policy"),
            pet_fee=_coerce_fee(row.get("pet_fee")),
            pet_size_limit=_coerce_size(row.get("pet_size_limit")),
            pet_count_limit=int(count) if count not in (None, "") else None,
            notes=row.get("notes"),
            source=AnnotationSource.STORE,
        )
    except (ValidationError, ValueError) as e:
        raise AnnotationStoreError(f"Invalid annotation row for {content_id}", cause=e) from e


class InMemoryAnnotationStore(AnnotationStore):
    """
    Annotation store kept in a dict keyed by normalized identifier.

    Insertion order is preserved; ``get_all`` returns newest first, matching
    the ``created_at DESC`` ordering of the hosted table.
    """

    def __init__(self, rows: Optional[Iterable[Dict[str, Any]]] = None):
        self._records: Dict[str, AnnotationRecord] = {}
        self._lock = asyncio.Lock()
        for row in rows or []:
            record = transform_annotation_row(row)
            self._records[record.content_id] = record
        logger.info(f"InMemoryAnnotationStore initialized with {len(self._records)} records")

    async def get_all(
        self,
        allowed_only: bool = True,
        limit: int = 1000,
        offset: int = 0
    ) -> List[AnnotationRecord]:
        records = list(reversed(list(self._records.values())))
        if allowed_only:
            records = [r for r in records if r.is_pet_allowed]
        return records[offset:offset + limit]

    async def get_one(self, content_id: Any) -> Optional[AnnotationRecord]:
        return self._records.get(normalize_content_id(content_id))

    async def upsert(self, content_id: Any, fields: Dict[str, Any]) -> AnnotationRecord:
        """
        Create or update a record.

        Only known annotation fields are applied; updates merge onto the
        existing record so partial submissions keep earlier values.
        """
        key = normalize_content_id(content_id)
        unknown = set(fields) - _RECORD_FIELDS
        if unknown:
            raise AnnotationStoreError(f"Unknown annotation fields: {sorted(unknown)}")

        async with self._lock:
            existing = self._records.get(key)
            row: Dict[str, Any] = existing.model_dump() if existing else {}
            row.update(fields)
            row["content_id"] = key
            record = transform_annotation_row(row)
            # Re-insert so the updated record sorts as newest
            self._records.pop(key, None)
            self._records[key] = record

        logger.info(f"Annotation {'updated' if existing else 'created'} for {key}")
        return record

    def __len__(self) -> int:
        return len(self._records)
