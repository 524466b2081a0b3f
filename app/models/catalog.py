from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from app.models.base import CamelModel
from app.models.purchase import Currency


class DurationTier(CamelModel):
    duration: str
    days: int = 0
    price: float = Field(ge=0)
    stripe_price_id: Optional[str] = None


class Product(CamelModel):
    id: int
    slug: str
    title: str
    description: str = ""
    base_price: float = Field(ge=0)
    currency: Currency = Currency.USD
    durations: List[DurationTier] = []
    features: List[str] = []
    metadata: Dict[str, Any] = {}
    role_id: Optional[int] = None
    download_url: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("slug")
    @classmethod
    def normalize_slug(cls, v: str) -> str:
        return v.strip().lower()

    def get_tier(self, duration: Optional[str]) -> Optional[DurationTier]:
        return next((tier for tier in self.durations if tier.duration == duration), None)

    def price_for(self, duration: Optional[str]) -> float:
        tier = self.get_tier(duration)
        return tier.price if tier else self.base_price


class SoftwareCategory(str, Enum):
    CHEAT = "Cheat"
    TOOL = "Tool"
    SCRIPT = "Script"
    MOD = "Mod"
    OTHER = "Other"


class SoftwareStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    DISCONTINUED = "Discontinued"
    BETA = "Beta"


class Software(CamelModel):
    id: int
    name: str = Field(max_length=100)
    description: str = Field(max_length=1000)
    price: float = Field(ge=0)
    currency: Currency = Currency.USD
    category: SoftwareCategory
    version: str = "1.0.0"
    download_url: Optional[str] = None
    image_url: Optional[str] = None
    features: List[str] = []
    requirements: List[str] = []
    compatibility: List[str] = []
    status: SoftwareStatus = SoftwareStatus.ACTIVE
    created_by: Optional[int] = None
    total_sales: int = Field(default=0, ge=0)
    rating: float = Field(default=0, ge=0, le=5)
    review_count: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_purchasable(self) -> bool:
        return self.status in (SoftwareStatus.ACTIVE, SoftwareStatus.BETA)
