import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Set

from pydantic import Field

from app.models.base import CamelModel


class PurchaseStatus(str, Enum):
    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"
    CANCELLED = "Cancelled"

    def __str__(self):
        return self.value

    def allowed_sources(self) -> Set["PurchaseStatus"]:
        """Statuses a record may be in for a move to this status to be legal."""
        return _ALLOWED_SOURCES[self]


_ALLOWED_SOURCES = {
    PurchaseStatus.PENDING: set(),
    PurchaseStatus.COMPLETED: {PurchaseStatus.PENDING, PurchaseStatus.FAILED},
    PurchaseStatus.FAILED: {PurchaseStatus.PENDING},
    PurchaseStatus.CANCELLED: {PurchaseStatus.PENDING},
    PurchaseStatus.REFUNDED: {PurchaseStatus.COMPLETED},
}


class PaymentMethod(str, Enum):
    CRYPTO = "Crypto"
    CARD = "Card"
    PAYPAL = "PayPal"
    BANK_TRANSFER = "Bank Transfer"

    def __str__(self):
        return self.value


class Currency(str, Enum):
    USD = "USD"
    EUR = "EUR"
    BTC = "BTC"
    ETH = "ETH"

    def __str__(self):
        return self.value


class Purchase(CamelModel):
    id: int
    user_id: int
    software_id: int
    product_slug: Optional[str] = None
    duration: Optional[str] = None
    duration_days: Optional[int] = None
    payment_method: PaymentMethod
    amount: float = Field(ge=0)
    currency: Currency
    status: PurchaseStatus = PurchaseStatus.PENDING
    transaction_id: Optional[str] = None
    stripe_payment_id: Optional[str] = None
    stripe_session_id: Optional[str] = None
    payment_data: Dict[str, Any] = Field(default_factory=dict, exclude=True)
    purchase_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_reason: Optional[str] = None
    download_count: int = Field(default=0, ge=0)
    max_downloads: int = Field(default=5, ge=1)
    last_download: Optional[datetime] = None
    license_key: Optional[str] = None
    expires_at: Optional[datetime] = None
    notes: Optional[str] = None

    @property
    def remaining_downloads(self) -> int:
        return max(self.max_downloads - self.download_count, 0)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now > self.expires_at

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return self.status == PurchaseStatus.COMPLETED and not self.is_expired(now)

    def can_download(self, now: Optional[datetime] = None) -> bool:
        if self.status != PurchaseStatus.COMPLETED:
            return False
        if self.download_count >= self.max_downloads:
            return False
        return not self.is_expired(now)


class SoftwareSummary(CamelModel):
    id: int
    name: str
    version: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    download_url: Optional[str] = None


class BuyerSummary(CamelModel):
    username: str
    email: Optional[str] = None


class PurchaseWithDetails(Purchase):
    software: Optional[SoftwareSummary] = None
    user: Optional[BuyerSummary] = None


class Pagination(CamelModel):
    current_page: int
    total_pages: int
    total_purchases: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_purchases=total,
            has_next=page < total_pages,
            has_prev=page > 1,
        )


class CreatePurchaseDTO(CamelModel):
    software_id: Optional[int] = None
    payment_method: Optional[PaymentMethod] = None


class RefundDTO(CamelModel):
    reason: Optional[str] = None


class DownloadResult(CamelModel):
    download_url: Optional[str] = None
    remaining_downloads: int
