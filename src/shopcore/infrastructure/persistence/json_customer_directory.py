"""Read-only CustomerDirectory over a JSON file of registered users."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from shopcore.domain.gateway.customer_directory import CustomerDirectory
from shopcore.domain.model.value_objects import Address

DEFAULT_COUNTRY = "Nigeria"


class JsonCustomerDirectory(CustomerDirectory):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path

    async def exists(self, user_id: str) -> bool:
        return self._find(user_id) is not None

    async def get_address(self, user_id: str) -> Address | None:
        raw = self._find(user_id)
        if raw is None:
            return None
        return Address(
            first_name=str(raw.get("first_name") or "").strip(),
            last_name=str(raw.get("last_name") or "").strip(),
            email=str(raw.get("email") or "").strip().lower(),
            phone=str(raw.get("phone") or "").strip(),
            address=str(raw.get("address") or "").strip(),
            city=str(raw.get("city") or "").strip(),
            state=str(raw.get("state") or "").strip(),
            zip_code=str(raw.get("zip_code") or "").strip(),
            country=str(raw.get("country") or DEFAULT_COUNTRY).strip(),
        )

    def _find(self, user_id: str) -> dict[str, Any] | None:
        if not self._file_path.exists():
            return None
        for raw in json.loads(self._file_path.read_text(encoding="utf-8")):
            if raw.get("id") == user_id:
                return raw
        return None
