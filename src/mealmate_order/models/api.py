"""
Instamart account and checkout request/response models.
"""

from datetime import datetime, timedelta
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class DeliveryAddress(BaseModel):
    """Saved delivery address on the Swiggy account."""
    id: str = Field(validation_alias=AliasChoices("id", "addressId", "address_id"))
    label: str = Field(default="Address", validation_alias=AliasChoices("label", "annotation"))
    address_line: str = Field(
        default="", validation_alias=AliasChoices("address_line", "address", "addressLine1")
    )
    landmark: Optional[str] = None
    city: str = ""
    postal_code: str = Field(default="", validation_alias=AliasChoices("postal_code", "pincode", "zipcode"))
    is_default: bool = Field(default=False, validation_alias=AliasChoices("is_default", "isDefault"))

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("id", "postal_code", mode="before")
    @classmethod
    def as_text(cls, v):
        return "" if v is None else str(v)

    def display_text(self) -> str:
        """Single-line address for prompts and chat messages."""
        parts = [self.address_line, self.landmark, self.city, self.postal_code]
        return ", ".join(p for p in parts if p)


class OrderPlacement(BaseModel):
    """Result of placing the remote cart as an order."""
    external_order_id: str = Field(
        validation_alias=AliasChoices("external_order_id", "swiggyOrderId", "orderId")
    )
    estimated_delivery: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("estimated_delivery", "estimatedDelivery")
    )
    status: str = Field(default="PLACED", validation_alias=AliasChoices("status", "orderStatus"))
    delivery_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("delivery_address", "deliveryAddress")
    )
    total_amount: Optional[float] = Field(
        default=None, validation_alias=AliasChoices("total_amount", "totalAmount")
    )

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("external_order_id", mode="before")
    @classmethod
    def id_as_text(cls, v):
        return str(v)


class OtpResult(BaseModel):
    """Outcome of asking Swiggy to send a login OTP."""
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class AuthResult(BaseModel):
    """Outcome of verifying an OTP or refreshing a token."""
    success: bool
    access_token: Optional[str] = Field(default=None, validation_alias=AliasChoices("access_token", "accessToken"))
    refresh_token: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("refresh_token", "refreshToken")
    )
    expires_in: Optional[int] = Field(default=None, validation_alias=AliasChoices("expires_in", "expiresIn"))
    swiggy_user_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("swiggy_user_id", "userId")
    )
    error: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("swiggy_user_id", mode="before")
    @classmethod
    def user_id_as_text(cls, v):
        return None if v is None else str(v)


class SwiggySession(BaseModel):
    """Stored Swiggy login for one app user."""
    user_id: str
    swiggy_user_id: Optional[str] = None
    phone: str
    access_token: str
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    is_active: bool = True

    @classmethod
    def from_auth(cls, user_id: str, phone: str, auth: AuthResult) -> "SwiggySession":
        expires_at = None
        if auth.expires_in:
            expires_at = datetime.utcnow() + timedelta(seconds=auth.expires_in)
        return cls(
            user_id=user_id,
            swiggy_user_id=auth.swiggy_user_id,
            phone=phone,
            access_token=auth.access_token or "",
            refresh_token=auth.refresh_token,
            expires_at=expires_at,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.utcnow()) >= self.expires_at
