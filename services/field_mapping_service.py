"""
Field mapping: source attributes onto canonical product fields.

apply_mapping is a pure key copy. to_canonical_record is the single place
where source shapes (comma-separated tags, image objects, "$12.00" prices)
are normalized; nothing downstream branches on the source format.
"""

from typing import Any, Iterable, Optional
import structlog

from config.settings import settings
from exceptions import InvalidFieldMappingError
from models.catalog import CanonicalVariant, ReconciliationRecord
from models.mapping import CanonicalField, FieldMappingEntry, REQUIRED_TARGETS
from utils.record_paths import MISSING, get_path
from utils.text_utils import parse_money, parse_quantity

logger = structlog.get_logger(__name__)

IMAGE_URL_KEYS = ("url", "src", "image_url", "imageUrl", "original")


# ===================
# MAPPING
# ===================

def apply_mapping(source: dict, mapping: Iterable[FieldMappingEntry]) -> dict:
    """
    Copy source values onto their canonical targets, in mapping order.

    Source keys that do not resolve leave the target absent; nothing is
    defaulted here.

    Args:
        source: Raw source record
        mapping: Ordered mapping entries

    Returns:
        Dict keyed by canonical field name
    """
    mapped = {}
    for entry in mapping:
        value = get_path(source, entry.source_key)
        if value is MISSING:
            continue
        mapped[entry.target_key.value] = value
    return mapped


def invert_mapping(mapped: dict, mapping: Iterable[FieldMappingEntry]) -> dict:
    """Recover source-keyed values from a mapped record."""
    source = {}
    for entry in mapping:
        if entry.target_key.value in mapped:
            source[entry.source_key] = mapped[entry.target_key.value]
    return source


def missing_required_targets(mapping: Iterable[FieldMappingEntry]) -> list[str]:
    covered = {entry.target_key for entry in mapping}
    return [target.value for target in REQUIRED_TARGETS if target not in covered]


def validate_mapping(mapping: list[FieldMappingEntry]) -> None:
    """
    Raises:
        InvalidFieldMappingError: If title, price or sku is not mapped
    """
    missing = missing_required_targets(mapping)
    if missing:
        logger.warning("field_mapping_incomplete", missing=missing)
        raise InvalidFieldMappingError(missing)


def build_filter_view(source: dict, mapped: dict) -> dict:
    """Mapped values overlaid on the source record, for attribute filtering."""
    return {**source, **mapped}


# ===================
# NORMALIZATION
# ===================

def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def parse_tags(value: Any, limit: Optional[int] = None) -> list[str]:
    """
    Normalize tags from a comma-separated string or a list.

    Blank and repeated tags are dropped; the result is capped at `limit`.
    """
    limit = limit or settings.max_tags_per_product

    if value is None:
        return []
    if isinstance(value, str):
        raw = value.split(",")
    elif isinstance(value, list):
        raw = [item.get("name") if isinstance(item, dict) else item for item in value]
    else:
        raw = [value]

    tags = []
    for item in raw:
        tag = _text(item)
        if tag and tag not in tags:
            tags.append(tag)

    if len(tags) > limit:
        logger.debug("tags_truncated", provided=len(tags), limit=limit)
    return tags[:limit]


def extract_image_url(value: Any) -> Optional[str]:
    """
    Pull one image URL out of a string, a list or an image object.

    - "https://x/a.jpg" → "https://x/a.jpg"
    - [{"src": "https://x/a.jpg"}] → "https://x/a.jpg"
    """
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, list):
        for item in value:
            url = extract_image_url(item)
            if url:
                return url
        return None
    if isinstance(value, dict):
        for key in IMAGE_URL_KEYS:
            url = extract_image_url(value.get(key))
            if url:
                return url
    return None


def to_canonical_record(
    mapped: dict,
    source: Optional[dict] = None,
    max_tags: Optional[int] = None
) -> ReconciliationRecord:
    """
    Normalize a mapped record into a ReconciliationRecord.

    Args:
        mapped: Output of apply_mapping
        source: Original source record, kept as attributes for markup rules
        max_tags: Tag cap (defaults to settings.max_tags_per_product)

    Returns:
        ReconciliationRecord (price is None when missing or not numeric)
    """
    variant = CanonicalVariant(
        price=parse_money(mapped.get(CanonicalField.PRICE.value)),
        compare_at_price=parse_money(mapped.get(CanonicalField.COMPARE_AT_PRICE.value)),
        sku=_text(mapped.get(CanonicalField.SKU.value)),
        barcode=_text(mapped.get(CanonicalField.BARCODE.value)),
        inventory_quantity=parse_quantity(mapped.get(CanonicalField.INVENTORY_QUANTITY.value)),
        image_url=extract_image_url(mapped.get(CanonicalField.IMAGE_URL.value)),
    )

    return ReconciliationRecord(
        title=_text(mapped.get(CanonicalField.TITLE.value)),
        description=_text(mapped.get(CanonicalField.DESCRIPTION.value)),
        vendor=_text(mapped.get(CanonicalField.VENDOR.value)),
        product_type=_text(mapped.get(CanonicalField.PRODUCT_TYPE.value)),
        tags=parse_tags(mapped.get(CanonicalField.TAGS.value), max_tags),
        variant=variant,
        attributes=dict(source or {}),
    )
