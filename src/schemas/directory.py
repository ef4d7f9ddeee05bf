from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.schemas.creative_request import PageMeta

DirectoryStatus = Literal["active", "inactive"]
OfferStatus = Literal["Active", "Inactive"]
OfferVisibility = Literal["Public", "Internal", "Hidden"]


class AdvertiserCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    contact_email: EmailStr | None = None
    status: DirectoryStatus = "active"
    everflow_advertiser_id: str | None = Field(None, max_length=64)
    brand_guidelines: dict[str, Any] | None = None

    @field_validator("contact_email", mode="before")
    @classmethod
    def _normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class AdvertiserUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    contact_email: EmailStr | None = None
    status: DirectoryStatus | None = None
    brand_guidelines: dict[str, Any] | None = None

    @field_validator("contact_email", mode="before")
    @classmethod
    def _normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class AdvertiserRead(BaseModel):
    id: UUID
    name: str
    contact_email: str | None
    status: str
    everflow_advertiser_id: str | None
    brand_guidelines: dict[str, Any] | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AdvertiserListResponse(BaseModel):
    data: list[AdvertiserRead] = Field(default_factory=list)
    meta: PageMeta


class PublisherCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    contact_email: EmailStr | None = None
    telegram_id: str | None = Field(None, max_length=64)
    status: DirectoryStatus = "active"

    @field_validator("contact_email", mode="before")
    @classmethod
    def _normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class PublisherUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    contact_email: EmailStr | None = None
    telegram_id: str | None = Field(None, max_length=64)
    status: DirectoryStatus | None = None

    @field_validator("contact_email", mode="before")
    @classmethod
    def _normalize_email(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower() or None
        return v


class PublisherRead(BaseModel):
    id: UUID
    name: str
    contact_email: str | None
    telegram_id: str | None
    status: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PublisherListResponse(BaseModel):
    data: list[PublisherRead] = Field(default_factory=list)
    meta: PageMeta


class OfferCreate(BaseModel):
    offer_name: str = Field(..., min_length=1, max_length=200)
    advertiser_id: UUID
    status: OfferStatus = "Active"
    visibility: OfferVisibility = "Public"
    everflow_offer_id: str | None = Field(None, max_length=64)


class OfferUpdate(BaseModel):
    offer_name: str | None = Field(None, min_length=1, max_length=200)
    advertiser_id: UUID | None = None
    status: OfferStatus | None = None
    visibility: OfferVisibility | None = None


class OfferRead(BaseModel):
    id: UUID
    offer_name: str
    advertiser_id: UUID | None
    advertiser_name: str | None
    created_method: str
    status: str
    visibility: str
    everflow_offer_id: str | None
    created_by: str | None
    updated_by: str | None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class OfferListResponse(BaseModel):
    data: list[OfferRead] = Field(default_factory=list)
    meta: PageMeta


class PublicOffer(BaseModel):
    id: UUID
    # Everflow's id when the offer was synced, the row id otherwise.
    offer_id: str
    offer_name: str


class PublicOfferListResponse(BaseModel):
    data: list[PublicOffer] = Field(default_factory=list)
