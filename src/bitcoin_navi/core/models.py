"""Pydantic data models — the system's type contracts."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# --- Type Aliases ---

AssetId = str
AlertId = str
Symbol = str

# --- Enumerations ---


class AssetType(StrEnum):
    """Asset classes, each backed by a different quote provider."""

    CRYPTO = "crypto"
    STOCK = "stock"


class AlertType(StrEnum):
    """Direction of an alert threshold."""

    HIGH = "high"
    LOW = "low"


class Currency(StrEnum):
    """Currencies an alert threshold can be expressed in."""

    JPY = "JPY"
    USD = "USD"


class StorageBackend(StrEnum):
    """Supported storage backends."""

    SQLITE = "sqlite"


# --- Asset Models ---


class AssetCreate(BaseModel):
    """Fields supplied by the caller when registering an asset."""

    model_config = ConfigDict(frozen=True)

    symbol: Symbol
    name: str
    type: AssetType

    @field_validator("symbol")
    @classmethod
    def symbol_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("symbol must not be empty")
        return v

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class Asset(AssetCreate):
    """A tracked instrument. Owns its alerts and price history."""

    id: AssetId
    created_at: datetime


# --- Alert Models ---


class AlertCreate(BaseModel):
    """Fields supplied by the caller when creating an alert."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    type: AlertType
    threshold: Decimal
    currency: Currency = Currency.JPY
    is_active: bool = True
    is_triggered: bool = False
    triggered_at: datetime | None = None

    @field_validator("threshold")
    @classmethod
    def threshold_positive(cls, v: Decimal) -> Decimal:
        if v <= 0:
            raise ValueError(f"threshold must be > 0, got {v}")
        return v


class AlertUpdate(BaseModel):
    """Partial alert update. Only fields explicitly set are applied."""

    model_config = ConfigDict(frozen=True)

    type: AlertType | None = None
    threshold: Decimal | None = None
    currency: Currency | None = None
    is_active: bool | None = None
    is_triggered: bool | None = None
    triggered_at: datetime | None = None

    @field_validator("threshold")
    @classmethod
    def threshold_positive(cls, v: Decimal | None) -> Decimal | None:
        if v is not None and v <= 0:
            raise ValueError(f"threshold must be > 0, got {v}")
        return v


class Alert(AlertCreate):
    """A price alert configuration.

    Nothing in this codebase evaluates alerts against live prices;
    ``is_triggered`` and ``triggered_at`` change only through updates.
    """

    id: AlertId
    created_at: datetime

    def apply(self, update: AlertUpdate) -> Alert:
        """Return a copy with the explicitly set fields of ``update`` applied."""
        changes = update.model_dump(exclude_unset=True)
        return Alert.model_validate({**self.model_dump(), **changes})


# --- Price History Models ---


class PriceHistoryCreate(BaseModel):
    """A price observation to append to an asset's history."""

    model_config = ConfigDict(frozen=True)

    asset_id: AssetId
    price_usd: Decimal
    price_jpy: Decimal
    volume: Decimal | None = None
    timestamp: datetime


class PriceHistory(PriceHistoryCreate):
    """A persisted price observation. Never updated after creation."""

    id: str
