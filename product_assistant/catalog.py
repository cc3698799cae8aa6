"""Catalog loading and normalization for technical product datasheets.

This module reads every JSON datasheet in the data directory into Product objects
with typed attributes, once per loader, and exposes the resulting immutable Catalog.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .errors import InvalidIdentifierError
from .utils import normalize_attribute_key

logger = logging.getLogger("product_assistant.catalog")

NAME_KEYS = ["productname", "product", "name"]

VALUE_UNIT_RE = re.compile(r"^([\d.,]+)\s*([a-zA-Z]*)$")

ATTRIBUTE_TYPE_KEYWORDS = [
    ("DIMENSION", ["diameter", "width", "height"]),
    ("LOAD", ["load", "capacity"]),
    ("SPEED", ["speed", "rpm"]),
    ("MASS", ["mass", "weight"]),
]


class AttributeType(str, Enum):
    TEXT = "Text"
    NUMERIC = "Numeric"
    DIMENSION = "Dimension"
    LOAD = "Load"
    SPEED = "Speed"
    MASS = "Mass"


@dataclass(frozen=True, eq=False)
class ProductIdentifier:
    """Trimmed, never-empty product designation compared case-insensitively."""
    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise InvalidIdentifierError(
                f"Product identifier must be a string, got {type(self.value).__name__}"
            )
        cleaned = self.value.strip()
        if not cleaned:
            raise InvalidIdentifierError("Product identifier cannot be empty")
        object.__setattr__(self, "value", cleaned)

    @staticmethod
    def parse(raw: Optional[str]) -> Optional[ProductIdentifier]:
        """Build an identifier from loose input, returning None for blank values."""
        if raw is None or not str(raw).strip():
            return None
        return ProductIdentifier(str(raw))

    def matches(self, name: str) -> bool:
        return self.value.casefold() == (name or "").strip().casefold()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ProductIdentifier):
            return NotImplemented
        return self.value.casefold() == other.value.casefold()

    def __hash__(self) -> int:
        return hash(self.value.casefold())

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Attribute:
    """One named technical property of a product."""
    name: str
    value: str
    unit: str = ""
    type: AttributeType = AttributeType.TEXT

    def formatted_value(self) -> str:
        return self.value if not self.unit else f"{self.value} {self.unit}"


@dataclass
class Product:
    """A catalog entry: designation plus its lower-cased attribute map."""
    id: str
    name: str
    attributes: Dict[str, Attribute] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @property
    def identifier(self) -> ProductIdentifier:
        return ProductIdentifier(self.name)

    def get_attribute(self, attribute_name: str) -> Optional[Attribute]:
        """Purpose: Look up an attribute by name, ignoring case and separator style.
        Inputs/Outputs: Input is an attribute name; output is the Attribute or None.
        Side Effects / State: None.
        Dependencies: Uses normalize_attribute_key for the snake_case fallback.
        Failure Modes: Blank names return None.
        If Removed: The orchestrator cannot read attribute values.
        Testing Notes: "Width", "width" and "inner diameter"/"inner_diameter" resolve.
        """
        # Exact lower-cased key first, then compare snake_case forms.
        if not attribute_name:
            return None
        key = attribute_name.strip().lower()
        if key in self.attributes:
            return self.attributes[key]
        wanted = normalize_attribute_key(key)
        for existing_key, attribute in self.attributes.items():
            if normalize_attribute_key(existing_key) == wanted:
                return attribute
        return None

    def has_attribute(self, attribute_name: str) -> bool:
        return self.get_attribute(attribute_name) is not None

    def update_attribute(self, attribute_name: str, attribute: Attribute) -> None:
        # Administrative path only; the query hot path never mutates products.
        self.attributes[attribute_name.lower()] = attribute
        self.updated_at = datetime.now(timezone.utc)

    def available_attributes(self) -> List[str]:
        return list(self.attributes.keys())

    def formatted_attributes(self) -> Dict[str, str]:
        return {key: attribute.formatted_value() for key, attribute in self.attributes.items()}


@dataclass(frozen=True)
class CatalogSource:
    """Metadata describing one datasheet file for logging."""
    file_name: str
    updated_at: str
    sha256: str
    product_count: int


@dataclass(frozen=True)
class Catalog:
    """Immutable, ordered snapshot of all loaded products."""
    products: Tuple[Product, ...] = ()
    sources: Tuple[CatalogSource, ...] = ()

    def __iter__(self) -> Iterator[Product]:
        return iter(self.products)

    def __len__(self) -> int:
        return len(self.products)

    def names(self) -> List[str]:
        return [product.name for product in self.products]

    def find_exact(self, identifier: ProductIdentifier) -> Optional[Product]:
        for product in self.products:
            if identifier.matches(product.name):
                return product
        return None


class CatalogLoader:
    def __init__(self, data_path: Path) -> None:
        """Purpose: Configure the loader with the datasheet directory.
        Inputs/Outputs: Input is a directory Path; no return value.
        Side Effects / State: Creates the load guard; no I/O until load().
        Dependencies: None beyond Path usage.
        Failure Modes: None at init; load() handles read/parse errors.
        If Removed: The orchestrator has no product data to resolve against.
        Testing Notes: Instantiate with a temp directory and call load().
        """
        # Store the directory and prepare the single-load guard.
        self._path = data_path
        self._catalog: Optional[Catalog] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._catalog is not None

    def load(self) -> Catalog:
        """Purpose: Return the catalog, building it on the first call only.
        Inputs/Outputs: No inputs; returns the shared Catalog snapshot.
        Side Effects / State: First caller reads every *.json file under the lock;
            concurrent callers wait and then observe the same snapshot.
        Dependencies: Uses _read_catalog.
        Failure Modes: Bad files and records are logged and skipped; a missing
            directory yields an empty catalog.
        If Removed: Every request would re-read the datasheets.
        Testing Notes: Call from several threads and assert one parse happened.
        """
        # Double-checked locking: lock-free once the snapshot exists.
        catalog = self._catalog
        if catalog is not None:
            return catalog
        with self._lock:
            if self._catalog is None:
                self._catalog = self._read_catalog()
            return self._catalog

    def _read_catalog(self) -> Catalog:
        products: List[Product] = []
        sources: List[CatalogSource] = []
        if not self._path.is_dir():
            logger.warning("catalog directory missing path=%s", self._path)
            return Catalog()

        for file_path in sorted(self._path.glob("*.json")):
            try:
                file_products, source = _read_datasheet(file_path)
            except (OSError, ValueError) as exc:
                logger.error("catalog file skipped file=%s error=%s", file_path.name, exc)
                continue
            products.extend(file_products)
            sources.append(source)
            logger.debug(
                "catalog file loaded file=%s products=%s sha256=%s",
                source.file_name,
                source.product_count,
                source.sha256[:12],
            )

        logger.info("Loaded %s products from %s datasheets", len(products), len(sources))
        return Catalog(products=tuple(products), sources=tuple(sources))


def _read_datasheet(file_path: Path) -> Tuple[List[Product], CatalogSource]:
    """Purpose: Parse one datasheet file into products plus file metadata.
    Inputs/Outputs: Input is a file Path; output is (products, CatalogSource).
    Side Effects / State: Reads the file and its mtime.
    Dependencies: Uses json with Decimal floats, record_to_product.
    Failure Modes: OSError/ValueError for unreadable or undecodable files propagate;
        individual bad records are logged and skipped.
    If Removed: No datasheet can be loaded.
    Testing Notes: Mix valid and invalid records in one file.
    """
    # Hash the raw bytes for logging, then decode keeping float text intact.
    raw_bytes = file_path.read_bytes()
    sha256 = hashlib.sha256(raw_bytes).hexdigest()
    updated_at = datetime.fromtimestamp(file_path.stat().st_mtime).isoformat()

    data = json.loads(raw_bytes.decode("utf-8-sig"), parse_float=Decimal)
    records: List[Any]
    if isinstance(data, dict):
        records = data.get("items", [])
    elif isinstance(data, list):
        records = data
    else:
        records = []

    products: List[Product] = []
    for index, record in enumerate(records):
        try:
            product = record_to_product(record)
        except Exception:
            logger.exception("catalog record skipped file=%s index=%s", file_path.name, index)
            continue
        if product is None:
            logger.debug("catalog record without product name file=%s index=%s", file_path.name, index)
            continue
        products.append(product)

    source = CatalogSource(
        file_name=file_path.name,
        updated_at=updated_at,
        sha256=sha256,
        product_count=len(products),
    )
    return products, source


def record_to_product(record: Any) -> Optional[Product]:
    """Purpose: Convert one raw datasheet record into a Product.
    Inputs/Outputs: Input is a decoded JSON value; output is a Product or None when
        the record has no usable product-name field.
    Side Effects / State: None.
    Dependencies: Uses _find_name_field, stringify_value, split_value_and_unit,
        classify_attribute.
    Failure Modes: Non-dict records and missing/blank/non-string names return None.
    If Removed: Datasheet rows cannot become catalog entries.
    Testing Notes: Verify units split off, nulls dropped and duplicate keys overwrite.
    """
    # Locate the designation field, then type every other field.
    if not isinstance(record, dict):
        return None
    name_field = _find_name_field(record)
    if name_field is None:
        return None
    raw_name = record[name_field]
    if not isinstance(raw_name, str) or not raw_name.strip():
        return None

    identifier = ProductIdentifier(raw_name)
    attributes: Dict[str, Attribute] = {}
    for key, raw_value in record.items():
        if key == name_field:
            continue
        text = stringify_value(raw_value)
        if not text:
            continue
        value, unit = split_value_and_unit(text)
        attribute_key = str(key).lower()
        attributes[attribute_key] = Attribute(
            name=attribute_key,
            value=value,
            unit=unit,
            type=classify_attribute(str(key), value),
        )

    return Product(
        id=identifier.value.upper(),
        name=identifier.value,
        attributes=attributes,
    )


def _find_name_field(record: Dict[str, Any]) -> Optional[str]:
    # First key that case-insensitively equals one of the name synonyms.
    for key in record.keys():
        if str(key).lower() in NAME_KEYS:
            return key
    return None


def stringify_value(value: Any) -> str:
    """Render a scalar JSON value as text; null becomes the empty string."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    return json.dumps(value, separators=(",", ":"), default=str)


def split_value_and_unit(text: str) -> Tuple[str, str]:
    """Split "25mm" into ("25", "mm"); anything else is value-only."""
    match = VALUE_UNIT_RE.match(text)
    if match:
        return match.group(1), match.group(2)
    return text, ""


def classify_attribute(attribute_name: str, value: str) -> AttributeType:
    """Purpose: Classify an attribute from its name, falling back to its value.
    Inputs/Outputs: Inputs are the raw field name and parsed value; output is an
        AttributeType.
    Side Effects / State: None.
    Dependencies: Uses ATTRIBUTE_TYPE_KEYWORDS and _is_number.
    Failure Modes: None; unknown names fall back to Numeric or Text.
    If Removed: Attribute types become meaningless for consumers.
    Testing Notes: "Outer Diameter" is Dimension, "Limiting speed" is Speed.
    """
    # Name keywords win over the value heuristic, in fixed priority order.
    lowered = attribute_name.lower()
    for type_name, keywords in ATTRIBUTE_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return AttributeType[type_name]
    if _is_number(value):
        return AttributeType.NUMERIC
    return AttributeType.TEXT


def _is_number(value: str) -> bool:
    # Thousands separators are accepted, as in "14,000".
    try:
        float(value.replace(",", ""))
    except ValueError:
        return False
    return True
