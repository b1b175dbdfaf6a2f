"""
Phone normalization and matching against spreadsheet reference data.
"""
import re
from typing import Iterable, List, Optional, Tuple

from call_analyzer.models.call import (
    CallDirection,
    CallMetadata,
    CustomerHistoryRecord,
    SalespersonRecord,
)

_NON_DIGITS = re.compile(r"\D", re.ASCII)


def normalize_phone(phone: Optional[str]) -> str:
    """Strip everything but ASCII digits."""
    if not phone:
        return ""
    return _NON_DIGITS.sub("", phone)


def phones_match(a: Optional[str], b: Optional[str]) -> bool:
    """Digit-wise equality; an empty number never matches anything."""
    normalized_a = normalize_phone(a)
    if not normalized_a:
        return False
    return normalized_a == normalize_phone(b)


def side_for(direction: CallDirection, metadata: CallMetadata) -> Tuple[str, str]:
    """
    Return (salesperson_phone, customer_phone) for a call.

    Outbound calls are dialled by the salesperson, so the source number is
    theirs; inbound calls swap the two.
    """
    if direction == CallDirection.OUTBOUND:
        return metadata.source_phone, metadata.destination_phone
    return metadata.destination_phone, metadata.source_phone


def find_salesperson(
    salespersons: Iterable[SalespersonRecord],
    phone: Optional[str]
) -> Optional[SalespersonRecord]:
    """First salesperson whose phone matches, or None."""
    for salesperson in salespersons:
        if phones_match(salesperson.phone, phone):
            return salesperson
    return None


def filter_customer_history(
    records: Iterable[CustomerHistoryRecord],
    phone: Optional[str]
) -> List[CustomerHistoryRecord]:
    """All history records for the customer's phone (possibly empty)."""
    return [record for record in records if phones_match(record.phone, phone)]
