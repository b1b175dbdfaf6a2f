"""
Call metadata and spreadsheet reference data models.
"""
import re
from enum import Enum
from typing import List, Optional, Union
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


OUTBOUND_MARKER = "โทรออก"
INBOUND_MARKER = "โทรเข้า"


class CamelModel(BaseModel):
    """Serializes with camelCase keys, accepts both camelCase and snake_case."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CallDirection(str, Enum):
    OUTBOUND = "outbound"
    INBOUND = "inbound"

    @classmethod
    def from_marker(cls, call_type: Optional[str]) -> "CallDirection":
        """Only the outbound marker is outbound; every other marker is inbound."""
        if call_type and call_type.strip() == OUTBOUND_MARKER:
            return cls.OUTBOUND
        return cls.INBOUND


class CallMetadata(CamelModel):
    """Call details parsed from a structured recording filename."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    date: str
    time: str
    call_type: str = Field(..., description="e.g. 'โทรออก' (outbound), 'โทรเข้า' (inbound)")
    source_phone: str
    destination_phone: str
    original_filename: str

    @property
    def direction(self) -> CallDirection:
        return CallDirection.from_marker(self.call_type)


class SalespersonRecord(CamelModel):
    """Salesperson row from the product sheet, used for phone matching."""
    name: str
    phone: str = ""


_NUMBER_NOISE = re.compile(r"[,\s฿]")


class CustomerHistoryRecord(CamelModel):
    """Customer purchase row from the customer sheet; `phone` is the matching key."""
    phone: str = ""
    date: Optional[str] = None
    customer_name: Optional[str] = None
    salesperson: Optional[str] = None
    price: Optional[float] = None
    recipient_name: Optional[str] = None
    secondary_phone: Optional[str] = None
    address: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    delivery_date: Optional[str] = None
    delivery_round: Optional[str] = None
    customer_type: Optional[str] = None
    product: Optional[str] = None
    quantity: Optional[float] = None
    customer_id: Optional[str] = None

    @field_validator("price", "quantity", mode="before")
    @classmethod
    def _parse_sheet_number(cls, value: Union[str, float, int, None]):
        if value is None or isinstance(value, (int, float)):
            return value
        text = _NUMBER_NOISE.sub("", str(value))
        if not text:
            return None
        try:
            return float(text)
        except ValueError:
            return None


class DataContext(CamelModel):
    """Reference data loaded from the connected spreadsheet."""
    product_context: Optional[str] = None
    salespersons: List[SalespersonRecord] = Field(default_factory=list)
    customer_history: List[CustomerHistoryRecord] = Field(default_factory=list)
