from pydantic import BaseModel, Field


class DBConfig(BaseModel):
    url: str
    password: str


class PurchaseConfig(BaseModel):
    max_downloads: int = Field(default=5, ge=1)
    # Direct software purchases have no payment processor behind them yet
    auto_complete_direct: bool = True
    page_size: int = 20
    max_page_size: int = 100


class NotificationConfig(BaseModel):
    max_attempts: int = Field(default=3, ge=1)
    backoff_seconds: float = 0.5


class StripeConfig(BaseModel):
    success_path: str = "/settings?purchase=success"
    cancel_path: str = "/settings?purchase=cancelled"
    webhook_tolerance: int = 300
