from __future__ import annotations

import pytest

from call_analyzer.models.call import (
    CallDirection,
    CallMetadata,
    CustomerHistoryRecord,
    SalespersonRecord,
)
from call_analyzer.services.phone_matcher import (
    filter_customer_history,
    find_salesperson,
    normalize_phone,
    phones_match,
    side_for,
)

PHONES = ["081-111-1111", "0811111111", "(081) 111 1111", "+66 81 111 1111", "", None, "---", "๐๘๑"]


def _metadata(call_type: str) -> CallMetadata:
    return CallMetadata(
        date="2024-01-15",
        time="10:30",
        call_type=call_type,
        source_phone="0811111111",
        destination_phone="0822222222",
        original_filename="call.mp3",
    )


def test_normalize_keeps_ascii_digits_only() -> None:
    assert normalize_phone("081-111-1111") == "0811111111"
    assert normalize_phone("+66 (81) 111 1111") == "66811111111"
    assert normalize_phone(None) == ""
    assert normalize_phone("๐๘๑") == ""


@pytest.mark.parametrize("phone", PHONES)
def test_normalize_is_idempotent(phone) -> None:
    once = normalize_phone(phone)
    assert normalize_phone(once) == once


@pytest.mark.parametrize("a", PHONES)
@pytest.mark.parametrize("b", PHONES)
def test_matching_is_symmetric(a, b) -> None:
    assert phones_match(a, b) == phones_match(b, a)


def test_empty_numbers_never_match() -> None:
    assert not phones_match("", "")
    assert not phones_match(None, None)
    assert not phones_match("---", "()")
    assert not phones_match("0811111111", "")


def test_formatted_numbers_match_by_digits() -> None:
    assert phones_match("081-111-1111", "0811111111")
    assert not phones_match("081-111-1111", "0811111112")


def test_side_for_outbound_and_inbound() -> None:
    outbound = _metadata("โทรออก")
    inbound = _metadata("โทรเข้า")

    assert side_for(CallDirection.OUTBOUND, outbound) == ("0811111111", "0822222222")
    assert side_for(CallDirection.INBOUND, inbound) == ("0822222222", "0811111111")
    assert side_for(inbound.direction, inbound) == ("0822222222", "0811111111")


def test_unknown_call_type_is_treated_as_inbound() -> None:
    assert _metadata("อื่นๆ").direction == CallDirection.INBOUND


def test_find_salesperson_uses_normalized_phone() -> None:
    salespersons = [
        SalespersonRecord(name="ไม่มีเบอร์", phone=""),
        SalespersonRecord(name="สมชาย", phone="081-111-1111"),
    ]

    assert find_salesperson(salespersons, "0811111111").name == "สมชาย"
    assert find_salesperson(salespersons, "0899999999") is None
    assert find_salesperson(salespersons, "") is None


def test_filter_customer_history_returns_list_even_without_matches() -> None:
    records = [
        CustomerHistoryRecord(phone="082-222-2222", customer_name="คุณเอ"),
        CustomerHistoryRecord(phone="", customer_name="ไม่มีเบอร์"),
    ]

    assert [r.customer_name for r in filter_customer_history(records, "0822222222")] == ["คุณเอ"]
    assert filter_customer_history(records, "0899999999") == []
    assert filter_customer_history([], "0822222222") == []
