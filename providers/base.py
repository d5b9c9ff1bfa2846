from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Optional, Protocol


@dataclass
class TryOnOutcome:
    status: str  # processing | completed | failed
    provider: str
    task_id: Optional[str] = None
    result_url: Optional[str] = None
    result_path: Optional[str] = None
    error: Optional[str] = None
    fallback: bool = False

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}


class ObjectStore(Protocol):
    def is_configured(self) -> bool: ...

    def upload(self, data: bytes, key: str, content_type: str = "image/jpeg") -> str: ...


class TryOnProvider(Protocol):
    name: str

    def is_configured(self) -> bool: ...

    def try_on(
        self,
        person: bytes,
        garment: Optional[bytes],
        category: Optional[str] = None,
        top: Optional[bytes] = None,
        bottom: Optional[bytes] = None,
        mode: str = "separate",
    ) -> TryOnOutcome: ...
