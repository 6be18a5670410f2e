"""
Prescription PDF Import
Client for the external prescription PDF parser and normalization of its
output into medication-create payloads
"""

import logging
import re
from typing import Any, Dict, List, Mapping, Optional
from datetime import date

import httpx

from config import settings, engine_config
from services.exceptions import InternalError, ValidationFailed


logger = logging.getLogger(__name__)

_UNIT_TOKEN = re.compile(r"[a-zµ]+")


def _format_number(value: Any) -> str:
    """8.0 -> "8", 2.5 -> "2.5", "500" -> "500" """
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def guess_unit(text: Optional[str]) -> str:
    """Dosage unit from the unit tokens in free text"""
    if not text:
        return engine_config.IMPORT_DEFAULT_UNIT
    tokens = set(_UNIT_TOKEN.findall(text.lower()))
    if "ml" in tokens:
        return "ml"
    if "mcg" in tokens or "µg" in tokens:
        return "mcg"
    if "g" in tokens:
        return "g"
    if "ui" in tokens:
        return "UI"
    return engine_config.IMPORT_DEFAULT_UNIT


def build_frequency_label(times_per_day: Optional[float], interval_hours: Optional[float]) -> str:
    if times_per_day and interval_hours:
        return f"{_format_number(times_per_day)}x / day (every {_format_number(interval_hours)}h)"
    if times_per_day:
        return f"{_format_number(times_per_day)}x / day"
    if interval_hours:
        return f"every {_format_number(interval_hours)}h"
    return "1x daily"


def normalize_parsed_medication(
    parsed: Mapping[str, Any],
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Map one parser record onto the medication-create payload.

    Args:
        parsed: Parser output with drug_name, dose_mg, doses_mg, times_per_day,
            interval_hours, quantity_prescribed, units_in_box, valid_until,
            raw_title, raw_notes, form
        today: Start date for the medication (defaults to today)

    Returns:
        Dict keyed like the medication create request body
    """
    doses = parsed.get("doses_mg") or []
    dose = parsed.get("dose_mg")
    if dose is None and doses:
        dose = doses[0]

    unit_source = parsed.get("raw_title") or parsed.get("form") or parsed.get("raw_notes")
    times_per_day = parsed.get("times_per_day")
    quantity = parsed.get("quantity_prescribed")
    if quantity is None:
        quantity = parsed.get("units_in_box")
    if quantity is None:
        quantity = engine_config.IMPORT_DEFAULT_QUANTITY

    return {
        "name": (parsed.get("drug_name") or parsed.get("raw_title") or "").strip(),
        "dosage": _format_number(dose) if dose is not None else "",
        "dosageUnit": guess_unit(unit_source),
        "frequency": build_frequency_label(times_per_day, parsed.get("interval_hours")),
        "timesPerDay": int(times_per_day or 1),
        "totalQuantity": int(quantity),
        "startDate": (today or date.today()).isoformat(),
        "endDate": parsed.get("valid_until") or None,
        "instructions": parsed.get("raw_notes") or None,
    }


class PrescriptionParserClient:
    """Thin async client for the PDF text-extraction service"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = base_url if base_url is not None else settings.PDF_PARSER_URL
        self.timeout = timeout if timeout is not None else settings.PDF_PARSER_TIMEOUT
        self.transport = transport

    async def parse(self, filename: str, content: bytes) -> List[Dict[str, Any]]:
        """Send a PDF to the parser and return its raw medication records"""
        if not self.base_url:
            raise InternalError("Prescription parser service is not configured")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    self.base_url,
                    files={"file": (filename, content, "application/pdf")}
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Prescription parser rejected {filename}: {e.response.status_code}")
            if e.response.status_code < 500:
                raise ValidationFailed("Could not parse this PDF", {"file": "Unreadable prescription PDF"})
            raise InternalError("Prescription parser failed") from e
        except httpx.HTTPError as e:
            logger.error(f"Prescription parser unreachable: {e}")
            raise InternalError("Prescription parser unreachable") from e

        payload = response.json()
        if isinstance(payload, list):
            return payload
        return payload.get("data") or []

    async def import_pdf(
        self,
        filename: str,
        content: bytes,
        today: Optional[date] = None
    ) -> List[Dict[str, Any]]:
        """Parse a PDF and normalize every detected medication"""
        records = await self.parse(filename, content)
        logger.info(f"Prescription parser found {len(records)} medications in {filename}")
        return [normalize_parsed_medication(r, today) for r in records]


# Singleton instance
prescription_parser = PrescriptionParserClient()
