"""
Google Sheets Integration Service.
Loads product, salesperson and customer reference data from the connected
spreadsheet and writes analysis results back to it.
"""
import logging
import re
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote
import httpx

from call_analyzer.core.config import Settings, get_settings
from call_analyzer.core.errors import ConfigurationMissing, NotSignedIn, SheetsError
from call_analyzer.models.analysis import AnalysisResult
from call_analyzer.models.call import (
    CallMetadata,
    CustomerHistoryRecord,
    DataContext,
    SalespersonRecord,
)
from call_analyzer.services.google_auth import GoogleAuthManager

logger = logging.getLogger(__name__)


# Accepted column headings per field, Thai first; compared after _header_key()
PRODUCT_COLUMNS = {
    "product_name": ["ชื่อสินค้า", "สินค้า", "product", "productname"],
    "category": ["หมวดหมู่", "ประเภทสินค้า", "category"],
}

SALESPERSON_COLUMNS = {
    "name": ["พนักงานขาย", "ชื่อพนักงานขาย", "เซลล์", "salesperson", "salespersonname"],
    "phone": ["เบอร์พนักงานขาย", "เบอร์โทรพนักงานขาย", "เบอร์เซลล์", "salespersonphone"],
}

CUSTOMER_COLUMNS = {
    "phone": ["เบอร์โทร", "เบอร์โทรศัพท์", "เบอร์ลูกค้า", "phone", "phonenumber"],
    "date": ["วันที่", "วันที่สั่งซื้อ", "date"],
    "customer_name": ["ชื่อลูกค้า", "ลูกค้า", "customername"],
    "salesperson": ["พนักงานขาย", "เซลล์", "salesperson"],
    "price": ["ราคา", "ยอดเงิน", "ยอดขาย", "price"],
    "recipient_name": ["ชื่อผู้รับ", "ผู้รับ", "recipientname"],
    "secondary_phone": ["เบอร์สำรอง", "เบอร์โทรสำรอง", "secondaryphone"],
    "address": ["ที่อยู่", "address"],
    "province": ["จังหวัด", "province"],
    "postal_code": ["รหัสไปรษณีย์", "postalcode", "zipcode"],
    "delivery_date": ["วันที่จัดส่ง", "วันจัดส่ง", "deliverydate"],
    "delivery_round": ["รอบจัดส่ง", "รอบส่ง", "deliveryround"],
    "customer_type": ["ประเภทลูกค้า", "customertype"],
    "product": ["สินค้า", "ชื่อสินค้า", "product"],
    "quantity": ["จำนวน", "quantity", "qty"],
    "customer_id": ["รหัสลูกค้า", "customerid"],
}

RESULT_COLUMNS = [
    "วันที่วิเคราะห์",
    "ไฟล์เสียง",
    "วันที่โทร",
    "เวลาโทร",
    "ประเภทการโทร",
    "เบอร์ต้นทาง",
    "เบอร์ปลายทาง",
    "พนักงานขาย",
    "คะแนนรวม (%)",
    "โอกาสปิดการขาย (%)",
    "ความรู้สึกลูกค้า",
    "ขั้นตอนการขาย",
    "สรุปผลการโทร",
    "สิ่งที่ควรทำต่อไป",
]

_HEADER_NOISE = re.compile(r"[\s_\-\.]+")


def _header_key(header: Any) -> str:
    return _HEADER_NOISE.sub("", str(header or "")).lower()


def _resolve_columns(headers: Sequence[Any], aliases: Dict[str, List[str]]) -> Dict[str, int]:
    """Map field name -> column index for every field whose heading is present."""
    keys = [_header_key(h) for h in headers]
    resolved = {}
    for field, names in aliases.items():
        for name in names:
            key = _header_key(name)
            if key in keys:
                resolved[field] = keys.index(key)
                break
    return resolved


def _cell(row: Sequence[Any], index: Optional[int]) -> Optional[str]:
    # The Sheets API drops trailing empty cells from each row
    if index is None or index >= len(row):
        return None
    text = str(row[index]).strip()
    return text or None


def _extract(values: Sequence[Sequence[Any]], aliases: Dict[str, List[str]]) -> List[Dict[str, Optional[str]]]:
    if not values:
        return []
    columns = _resolve_columns(values[0], aliases)
    records = []
    for row in values[1:]:
        record = {field: _cell(row, index) for field, index in columns.items()}
        if any(record.values()):
            records.append(record)
    return records


def build_data_context(
    product_values: Sequence[Sequence[Any]],
    customer_values: Sequence[Sequence[Any]],
) -> DataContext:
    """
    Build the reference data bundle from raw sheet values (header row first).

    The product sheet supplies the product list and the salesperson phone
    book; the customer sheet supplies purchase history keyed by phone.
    """
    product_lines = []
    for product in _extract(product_values, PRODUCT_COLUMNS):
        if not product.get("product_name"):
            continue
        line = f"- {product['product_name']}"
        if product.get("category"):
            line += f" ({product['category']})"
        product_lines.append(line)

    salespersons = []
    for row in _extract(product_values, SALESPERSON_COLUMNS):
        if row.get("name"):
            salespersons.append(SalespersonRecord(name=row["name"], phone=row.get("phone") or ""))

    customer_history = []
    for row in _extract(customer_values, CUSTOMER_COLUMNS):
        row["phone"] = row.get("phone") or ""
        customer_history.append(CustomerHistoryRecord(**row))

    return DataContext(
        product_context="\n".join(product_lines) or None,
        salespersons=salespersons,
        customer_history=customer_history,
    )


def build_result_row(
    result: AnalysisResult,
    call_metadata: Optional[CallMetadata],
    salesperson_name: Optional[str],
    analyzed_at: Optional[datetime] = None,
) -> List[str]:
    """Flatten an analysis into one write-back row ordered as RESULT_COLUMNS."""
    analyzed_at = analyzed_at or datetime.now()
    meta = call_metadata
    return [
        analyzed_at.strftime("%Y-%m-%d %H:%M"),
        meta.original_filename if meta else "",
        meta.date if meta else "",
        meta.time if meta else "",
        meta.call_type if meta else "",
        meta.source_phone if meta else "",
        meta.destination_phone if meta else "",
        salesperson_name or "",
        f"{result.salesperson_evaluation.overall_performance_score:g}",
        f"{result.situational_evaluation.closing_probability:g}",
        result.customer_evaluation.customer_sentiment,
        result.situational_evaluation.current_sales_stage,
        result.situational_evaluation.call_outcome_summary,
        result.strategic_recommendations.next_best_action,
    ]


class GoogleSheetsService:
    """Service for reading reference data from, and appending results to, Google Sheets."""

    def __init__(
        self,
        auth: Optional[GoogleAuthManager] = None,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = settings or get_settings()
        self.api_url = settings.google_sheets_api_url
        self.api_key = settings.google_api_key
        self.product_sheet = settings.product_sheet_name
        self.customer_sheet = settings.customer_sheet_name
        self.results_sheet = settings.results_sheet_name
        self.timeout = settings.http_timeout_seconds
        self.auth = auth
        self._transport = transport

    async def load_data_context(self, sheet_id: str) -> DataContext:
        """
        Read the product and customer sheets of a spreadsheet.

        Raises:
            ConfigurationMissing when neither an API key nor a Google session is available
            SheetsError when the Sheets API call fails
        """
        sheet_id = sheet_id.strip()
        logger.info(f"Loading data context from spreadsheet {sheet_id}")

        result = await self._request(
            "GET",
            f"/v4/spreadsheets/{quote(sheet_id, safe='')}/values:batchGet",
            params=[
                ("ranges", self._whole_sheet(self.product_sheet)),
                ("ranges", self._whole_sheet(self.customer_sheet)),
                ("majorDimension", "ROWS"),
            ],
        )

        value_ranges = result.get("valueRanges", [])
        product_values = value_ranges[0].get("values", []) if len(value_ranges) > 0 else []
        customer_values = value_ranges[1].get("values", []) if len(value_ranges) > 1 else []

        context = build_data_context(product_values, customer_values)
        logger.info(
            f"Data context loaded - {len(context.salespersons)} salespersons, "
            f"{len(context.customer_history)} customer records"
        )
        return context

    async def append_analysis_row(self, sheet_id: str, row: List[str]) -> Optional[str]:
        """
        Append one analysis row to the results sheet (requires a Google session).

        Returns:
            The A1 range Google reports as updated
        """
        if not self.auth or not self.auth.is_signed_in:
            raise NotSignedIn()

        sheet_id = sheet_id.strip()
        header_range = f"{self._whole_sheet(self.results_sheet)}!1:1"
        existing = await self._request(
            "GET",
            f"/v4/spreadsheets/{quote(sheet_id, safe='')}/values/{quote(header_range, safe='')}",
            require_auth=True,
        )
        rows = [row] if existing.get("values") else [RESULT_COLUMNS, row]

        range_name = f"{self._whole_sheet(self.results_sheet)}!A1"
        result = await self._request(
            "POST",
            f"/v4/spreadsheets/{quote(sheet_id, safe='')}/values/{quote(range_name, safe='')}:append",
            params=[("valueInputOption", "USER_ENTERED"), ("insertDataOption", "INSERT_ROWS")],
            payload={"majorDimension": "ROWS", "values": rows},
            require_auth=True,
        )

        updated_range = result.get("updates", {}).get("updatedRange")
        logger.info(f"Analysis written to spreadsheet {sheet_id}: {updated_range}")
        return updated_range

    @staticmethod
    def _whole_sheet(name: str) -> str:
        escaped = name.replace("'", "''")
        return f"'{escaped}'"

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[list] = None,
        payload: Optional[dict] = None,
        require_auth: bool = False,
        retry: bool = True,
    ) -> dict:
        """
        Make a Sheets API request with automatic token refresh on 401.

        Signed-in users read with their OAuth token; otherwise reads fall
        back to the API key.
        """
        params = list(params or [])
        action = "load data from" if method == "GET" else "write to"
        headers = {}
        use_oauth = bool(self.auth and self.auth.is_signed_in)

        if use_oauth:
            access_token = await self.auth.get_access_token()
            headers["Authorization"] = f"Bearer {access_token}"
        elif not require_auth and self.api_key:
            params.append(("key", self.api_key))
        else:
            raise ConfigurationMissing(
                "Google Sheets access is not configured. Set GOOGLE_API_KEY or sign in with Google."
            )

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.request(
                    method=method,
                    url=f"{self.api_url}{endpoint}",
                    params=params,
                    headers=headers,
                    json=payload,
                )

                # Handle token expiration (401 Unauthorized)
                if response.status_code == 401 and retry and use_oauth:
                    logger.warning("Google access token rejected, refreshing and retrying...")
                    self.auth.force_refresh()
                    return await self._request(
                        method, endpoint, params=params, payload=payload,
                        require_auth=require_auth, retry=False,
                    )

                response.raise_for_status()
                return response.json()

        except httpx.HTTPStatusError as e:
            logger.error(f"Sheets API HTTP error: {e.response.status_code} - {e.response.text}")
            raise SheetsError(f"Could not {action} Google Sheets: {self._describe(e.response)}")
        except httpx.HTTPError as e:
            logger.error(f"Sheets API request failed: {e}")
            raise SheetsError(f"Could not {action} Google Sheets: {e}")

    @staticmethod
    def _describe(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return f"HTTP {response.status_code}"
