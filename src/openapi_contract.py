"""Checked-in OpenAPI contract of the marshaling service."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

import yaml

from value_types import JsonDict

OPENAPI_CONTRACT_PATH = Path(__file__).resolve().parents[1] / "docs" / "openapi.yaml"


@lru_cache(maxsize=1)
def load_openapi_contract() -> JsonDict | None:
    """Load ``docs/openapi.yaml``.

    Returns ``None`` when the file is missing or is not a YAML mapping.
    """
    if not OPENAPI_CONTRACT_PATH.exists():
        return None
    loaded = yaml.safe_load(OPENAPI_CONTRACT_PATH.read_text(encoding="utf-8"))
    return loaded if isinstance(loaded, dict) else None

