"""
Static JSON test-data loading.

The suite keeps users, products, shipping addresses and payment details
in ``tests/data/*.json``.  Records are plain denormalised dictionaries;
the only rule enforced here is that the fields a test relies on are
present.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from demoblaze_e2e.errors import FixtureDataError

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).resolve().parent.parent / "tests" / "data"

# Fields every record in a given file must carry.
REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "test_users": ("username", "password"),
    "test_products": ("name", "price"),
    "shipping_addresses": ("firstName", "lastName", "city", "country"),
    "payment_info": ("cardNumber", "expiryMonth", "expiryYear", "cardholderName"),
}


def _iter_records(data: Any) -> Iterable[tuple[str, Mapping[str, Any]]]:
    """Yield ``(location, record)`` pairs from a list, a dict of records or a dict of lists."""
    if isinstance(data, list):
        for index, record in enumerate(data):
            yield f"[{index}]", record
    elif isinstance(data, dict):
        for key, value in data.items():
            if isinstance(value, list):
                for index, record in enumerate(value):
                    yield f"{key}[{index}]", record
            else:
                yield key, value


def validate_records(name: str, data: Any, required: Iterable[str]) -> None:
    """
    Check that every record in *data* has all *required* fields.

    Raises:
        FixtureDataError: If a record is not a mapping or lacks a field.
    """
    required = tuple(required)
    for location, record in _iter_records(data):
        if not isinstance(record, Mapping):
            raise FixtureDataError(f"{name}{location} is not an object")
        missing = [field for field in required if field not in record]
        if missing:
            raise FixtureDataError(
                f"{name}{location} is missing required field(s): {', '.join(missing)}"
            )


def load_test_data(
    name: str,
    data_dir: Path = DATA_DIR,
    required: Iterable[str] | None = None,
) -> Any:
    """
    Load and validate one JSON data file by stem.

    Args:
        name: File stem, e.g. ``"test_products"``.
        data_dir: Directory holding the JSON files.
        required: Fields every record must carry.  Defaults to the
            entry for *name* in ``REQUIRED_FIELDS``.

    Returns:
        The parsed JSON document.

    Raises:
        FixtureDataError: If the file is missing, malformed, or a
            record lacks a required field.
    """
    path = Path(data_dir) / f"{name}.json"
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except FileNotFoundError as exc:
        raise FixtureDataError(f"Test data file not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise FixtureDataError(f"Test data file {path} is not valid JSON: {exc}") from exc

    fields = REQUIRED_FIELDS.get(name, ()) if required is None else required
    validate_records(name, data, fields)
    logger.debug("Loaded test data %s from %s", name, path)
    return data
