"""Application-level DTOs for uploads and searches."""
from __future__ import annotations

from dataclasses import dataclass

from tax_qualifications.domain.models import UserProfile


@dataclass(slots=True, frozen=True)
class UploadRequest:
    actor: UserProfile
    filename: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(slots=True, frozen=True)
class QualificationFilters:
    instrument: str | None = None
    market: str | None = None
    period: str | None = None
    qualification_type: str | None = None
    min_amount: float | None = None
    max_amount: float | None = None


@dataclass(slots=True, frozen=True)
class NewUserRequest:
    first_name: str
    last_name: str
    national_id: str
    email: str
    password: str
    role: str


@dataclass(slots=True, frozen=True)
class BrokerStats:
    total_qualifications: int
    validated_factors: int
    success_rate: float
