# schemas.py
from datetime import date, datetime, timedelta, timezone
from typing import Any, List, Literal, Optional, Union

import dateutil.parser
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from ninja_dispatch.config import default_base_url

NINJA_COUNTRIES = ("sg", "my", "th", "id", "ph", "vn", "mm")

HHMM = r"^([0-1][0-9]|2[0-3]):[0-5][0-9]$"
EMAIL = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
TRACKING_NUMBER = r"^([a-zA-Z0-9]+[-])*[a-zA-Z0-9]+$"


# ---------------------------------------------------------------------------
# wrapper
# ---------------------------------------------------------------------------

class WrapperArgs(BaseModel):
    """Credentials and target of one Ninja Van account (Ninja Dashboard -> API keys)."""

    client_id: str = Field(..., min_length=1)
    client_secret: str = Field(..., min_length=1)
    # production: https://api.ninjavan.co, sandbox: https://api-sandbox.ninjavan.co
    base_url: str = Field(default_factory=default_base_url, pattern=r"^https?://\S+$")
    country_code: str

    @field_validator("base_url")
    @classmethod
    def strip_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("country_code")
    @classmethod
    def known_country(cls, v: str) -> str:
        if v.lower() not in NINJA_COUNTRIES:
            raise ValueError(f"country_code must be one of {', '.join(c.upper() for c in NINJA_COUNTRIES)}")
        return v.lower()


# ---------------------------------------------------------------------------
# token
# ---------------------------------------------------------------------------

class TokenRequest(BaseModel):
    client_id: str
    client_secret: str
    grant_type: Literal["client_credentials"] = "client_credentials"


class GetToken(BaseModel):
    url: str
    input: TokenRequest


class GetTokenResponse(BaseModel):
    access_token: str
    token_type: str
    # epoch at which the token expires
    expires: int = Field(..., ge=1)
    expires_in: int = Field(..., ge=300)


class Token(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_at: datetime

    @property
    def authorization(self) -> str:
        return f"{self.token_type} {self.access_token}"

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at

    @classmethod
    def from_response(cls, data: GetTokenResponse, safety_margin: int = 300) -> "Token":
        # Ninja Van recommends refreshing 5 minutes before the advertised expiry
        expires_at = datetime.now(timezone.utc) + timedelta(seconds=data.expires_in - safety_margin)
        return cls(
            access_token=data.access_token,
            token_type=data.token_type[:1].upper() + data.token_type[1:].lower(),
            expires_at=expires_at,
        )


# ---------------------------------------------------------------------------
# create order
# ---------------------------------------------------------------------------

class Address(BaseModel):
    country: str = "MY"
    address_type: Literal["home", "office"] = "home"
    # building number, building name and street when collected separately
    address1: str = Field(..., min_length=1, max_length=255)
    address2: Optional[str] = Field(None, max_length=255)
    area: Optional[str] = Field(None, max_length=50)
    city: Optional[str] = Field(None, max_length=50)
    state: Optional[str] = Field(None, max_length=50)
    # ID addresses
    kelurahan: Optional[str] = Field(None, max_length=50)
    kecamatan: Optional[str] = Field(None, max_length=50)
    province: Optional[str] = Field(None, max_length=50)
    postcode: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)

    @field_validator("country")
    @classmethod
    def upper_country(cls, v: str) -> str:
        if v.lower() not in NINJA_COUNTRIES:
            raise ValueError(f"unsupported country {v}")
        return v.upper()

    @model_validator(mode="after")
    def postcode_rules(self) -> "Address":
        expected = {"MY": 5, "SG": 6, "ID": 5}.get(self.country)
        if self.country in ("MY", "SG") and not self.postcode:
            raise ValueError(f"postcode is required for {self.country} addresses")
        if expected and self.postcode and len(self.postcode) != expected:
            raise ValueError(f"{self.country} postcodes have {expected} characters")
        return self


class Person(BaseModel):
    name: str = Field(..., min_length=3, max_length=255)
    # E.164-formattable with the address country; phone or email is enough
    phone_number: Optional[str] = Field(None, min_length=6, max_length=32)
    email: Optional[str] = Field(None, pattern=EMAIL)
    address: Address
    collection_point: Optional[Literal["Ninja PUDO @ Orchard", "Ninja PUDO @ NUH"]] = None

    @model_validator(mode="after")
    def reachable(self) -> "Person":
        if not self.phone_number and not self.email:
            raise ValueError("Either phone_number or email must be provided")
        return self


class DeliveryTimeslot(BaseModel):
    start_time: str = Field("09:00", pattern=HHMM)
    end_time: str = Field("22:00", pattern=HHMM)
    timezone: Optional[Literal["Asia/Singapore", "Asia/Kuala_Lumpur", "Asia/Jakarta"]] = "Asia/Kuala_Lumpur"


class Dimensions(BaseModel):
    size: Optional[Literal["S", "M", "L", "XL", "XXL"]] = "S"
    length: Optional[float] = None  # cm
    height: Optional[float] = None  # cm
    width: Optional[float] = None  # cm
    weight: Optional[float] = 1  # kg


class Item(BaseModel):
    item_description: str = Field(..., max_length=255)
    quantity: Optional[int] = None
    is_dangerous_good: Optional[bool] = None


def to_ninja_date(value: Union[str, date, datetime]) -> str:
    """yyyy-MM-dd out of anything that looks like a date."""
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d")
    if isinstance(value, date):
        return value.isoformat()
    return dateutil.parser.parse(value).strftime("%Y-%m-%d")


class ParcelJob(BaseModel):
    # the API moves it past blocked dates; check the echoed value
    delivery_start_date: str
    delivery_timeslot: DeliveryTimeslot = Field(default_factory=DeliveryTimeslot)
    delivery_instructions: Optional[str] = Field(None, max_length=255)
    allow_self_collection: Optional[bool] = None
    allow_weekend_delivery: Optional[bool] = None
    cash_on_delivery: Optional[float] = Field(None, ge=0, le=100000)
    insured_value: Optional[float] = Field(None, ge=0, le=100000)
    dimensions: Dimensions = Field(default_factory=Dimensions)
    is_pickup_required: bool = False
    items: List[Item] = Field(default_factory=list)

    @field_validator("delivery_start_date", mode="before")
    @classmethod
    def ninja_date(cls, v: Any) -> str:
        try:
            return to_ninja_date(v)
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"invalid delivery_start_date: {v!r}") from e

    @field_validator("cash_on_delivery", "insured_value")
    @classmethod
    def two_decimals(cls, v: Optional[float]) -> Optional[float]:
        return round(v, 2) if v is not None else v


class Reference(BaseModel):
    merchant_order_number: Optional[str] = Field(None, max_length=255)


ServiceLevel = Literal["Standard", "Express", "Sameday", "Nextday"]


class OrderRequest(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    service_type: Literal[
        "Parcel", "Marketplace", "Corporate", "International", "Bulky", "Document", "Return"
    ] = "Parcel"
    service_level: ServiceLevel = "Standard"
    # prefixed with the account prefix by the API; short values get zero-padded
    requested_tracking_number: Optional[str] = Field(None, max_length=18, pattern=TRACKING_NUMBER)
    reference: Optional[Reference] = None
    from_: Person = Field(..., alias="from")
    to: Person
    parcel_job: ParcelJob
    # printed on the label only, never sent to the carrier
    comments: Optional[str] = Field(None, exclude=True)

    def payload(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class CreateOrder(BaseModel):
    url: str
    input: OrderRequest


class EchoedAddress(BaseModel):
    model_config = ConfigDict(extra="allow")

    country: Optional[str] = None
    address1: Optional[str] = None
    address2: Optional[str] = None
    postcode: Optional[str] = None


class EchoedPerson(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    phone_number: Optional[str] = None
    email: Optional[str] = None
    address: Optional[EchoedAddress] = None


class EchoedParcelJob(BaseModel):
    model_config = ConfigDict(extra="allow")

    delivery_start_date: Optional[str] = None
    delivery_timeslot: Optional[DeliveryTimeslot] = None
    delivery_instructions: Optional[str] = None
    cash_on_delivery: Optional[float] = None
    insured_value: Optional[float] = None
    dimensions: Optional[Dimensions] = None


class OrderResult(BaseModel):
    """What the carrier answers to an accepted order; never mutated afterwards."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    tracking_number: str
    requested_tracking_number: Optional[str] = None
    service_type: Optional[str] = None
    service_level: Optional[str] = None
    reference: Optional[Reference] = None
    from_: Optional[EchoedPerson] = Field(None, alias="from")
    to: Optional[EchoedPerson] = None
    parcel_job: Optional[EchoedParcelJob] = None


# ---------------------------------------------------------------------------
# cancel order / waybill / tracking
# ---------------------------------------------------------------------------

class UrlOnly(BaseModel):
    url: str


CancelOrder = UrlOnly
GenerateWaybill = UrlOnly
TrackOrder = UrlOnly
TrackOrders = UrlOnly


class CancelOrderResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    trackingId: Optional[str] = None
    status: Optional[str] = None
    updatedAt: Optional[str] = None


# the waybill endpoint answers a PDF; nothing structural to check
GenerateWaybillResponse = TypeAdapter(bytes)


class HubLocation(BaseModel):
    country: Optional[str] = None
    city: Optional[str] = None
    hub: Optional[str] = None


class TrackingEvent(BaseModel):
    shipper_id: Optional[str] = None
    tracking_number: Optional[str] = None
    shipper_order_ref_no: Optional[str] = None
    timestamp: Optional[str] = None
    status: Optional[str] = None
    is_parcel_on_rts_leg: Optional[bool] = None
    WebhookV1HubLocation: Optional[str] = None
    WebhookV2HubLocation: Optional[HubLocation] = None


class TrackOrderResponse(BaseModel):
    tracking_number: Optional[str] = None
    is_full_history_available: Optional[bool] = None
    events: List[TrackingEvent] = Field(default_factory=list)


class TrackOrdersResponse(BaseModel):
    data: List[TrackOrderResponse]


# ---------------------------------------------------------------------------
# batch outcome
# ---------------------------------------------------------------------------

class BatchStats(BaseModel):
    total: int = Field(..., ge=0)
    success: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)


class BatchOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: bool
    stats: BatchStats
    data: List[Any] = Field(default_factory=list)
    error: Optional[List[str]] = None
    cancelation: Optional["BatchOutcome"] = None

    @model_validator(mode="after")
    def consistent(self) -> "BatchOutcome":
        s = self.stats
        if s.success + s.failed != s.total:
            raise ValueError("stats.success + stats.failed must equal stats.total")
        if self.ok != (s.failed == 0):
            raise ValueError("ok must be true exactly when nothing failed")
        if len(self.data) != s.success:
            raise ValueError("data must hold one result per success")
        if s.failed == 0 and self.error is not None:
            raise ValueError("error must be null when nothing failed")
        if s.failed and len(self.error or []) != s.failed:
            raise ValueError("error must hold one message per failure")
        return self

    @property
    def requires_manual_reconciliation(self) -> bool:
        """A rollback ran and could not cancel everything it had to."""
        return self.cancelation is not None and not self.cancelation.ok


class ExpressOutcome(BatchOutcome):
    waybills: Any = None


# ---------------------------------------------------------------------------
# labels
# ---------------------------------------------------------------------------

class LabelReceiver(BaseModel):
    name: str
    contact: str
    address: str


class LabelSender(BaseModel):
    name: str
    contact: Optional[str] = None
    address: Optional[str] = None


class CashOnDelivery(BaseModel):
    amount: float
    currency: Optional[str] = None


class CustomWaybill(BaseModel):
    tracking_id: str
    type: str = "Parcel"
    weight: float
    receiver: LabelReceiver
    sender: LabelSender
    cod: CashOnDelivery
    delivery_date: str
    comments: Optional[str] = None


# ---------------------------------------------------------------------------
# webhooks
# ---------------------------------------------------------------------------

class WebhookRejection(BaseModel):
    code: int
    message: str


class WebhookEvent(BaseModel):
    event: str
    payload: dict = Field(default_factory=dict)

    @property
    def tracking_id(self) -> Optional[str]:
        return self.payload.get("tracking_id") or self.payload.get("tracking_number")
