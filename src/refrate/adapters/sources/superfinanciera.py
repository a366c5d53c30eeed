# src/refrate/adapters/sources/superfinanciera.py
"""
Superfinanciera SOAP Provider for the Official USD→COP Rate

This module implements the client for the Superintendencia Financiera web
service that publishes the official market rate (TRM). The service is queried
with a SOAP envelope carrying the ISO date and answers with a `return` node:

    <return>
      <id>...</id><unit>COP</unit><value>3921.56</value>
      <validityFrom>...</validityFrom><validityTo>...</validityTo>
      <success>true</success>
    </return>

A response counts as valid only when `success` is "true" and `value` is
numeric.

Files that USE this module:
- refrate.app (builds the primary provider)
- tests.test_sources (unit tests)

Files that this module USES:
- refrate.adapters.sources.base (RateProvider interface)
- refrate.config (settings for URL, timeout and TLS verification)
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

import requests

from refrate.adapters.sources.base import RateProvider
from refrate.config import settings
from refrate.domain.errors import RateSourceError
from refrate.domain.models import RateSource

log = logging.getLogger(__name__)

_ENVELOPE = (
    '<Envelope xmlns="http://schemas.xmlsoap.org/soap/envelope/">'
    "<Body>"
    '<queryTCRM xmlns="http://action.trm.services.generic.action.superfinanciera.nexura.sc.com.co/">'
    '<tcrmQueryAssociatedDate xmlns="">{date}</tcrmQueryAssociatedDate>'
    "</queryTCRM>"
    "</Body>"
    "</Envelope>"
)

_HEADERS = {
    "Content-Type": 'text/xml; charset="utf-8"',
    "Accept": "text/xml",
    "Cache-Control": "no-cache",
    "Pragma": "no-cache",
    "SOAPAction": '""',
}


def _local_name(tag: str) -> str:
    """'{ns}value' or 'ns2:value' -> 'value'."""
    return tag.rsplit("}", 1)[-1].rsplit(":", 1)[-1]


class SuperfinancieraProvider(RateProvider):
    kind = RateSource.PRIMARY
    name = "Superfinanciera"

    def __init__(
        self,
        url: Optional[str] = None,
        timeout: Optional[int] = None,
        verify_tls: Optional[bool] = None,
    ):
        """
        Initialize the SOAP provider.

        Args:
            url: Optional service URL (defaults to settings.primary_url)
            timeout: Optional HTTP timeout in seconds (defaults to settings.primary_timeout_seconds)
            verify_tls: Optional TLS verification flag (defaults to settings.primary_verify_tls)

        Raises:
            ValueError: If the URL is empty
        """
        self.url = url or settings.primary_url
        if not self.url:
            raise ValueError("PRIMARY_RATE_URL is missing.")
        self.timeout = timeout or settings.primary_timeout_seconds
        self.verify_tls = settings.primary_verify_tls if verify_tls is None else verify_tls

    def _post(self, day: date) -> bytes:
        body = _ENVELOPE.format(date=day.isoformat()).encode("utf-8")
        try:
            resp = requests.post(
                self.url,
                data=body,
                headers=_HEADERS,
                timeout=self.timeout,
                verify=self.verify_tls,
            )
            resp.raise_for_status()
        except requests.exceptions.Timeout:
            raise RateSourceError(f"Superfinanciera timeout after {self.timeout}s")
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else "?"
            raise RateSourceError(f"Superfinanciera HTTP {status}") from e
        except requests.exceptions.RequestException as e:
            raise RateSourceError(f"Superfinanciera request failed: {e}") from e
        return resp.content

    @staticmethod
    def _parse(payload: bytes) -> Dict[str, str]:
        try:
            root = ET.fromstring(payload)
        except ET.ParseError as e:
            raise RateSourceError(f"Superfinanciera returned invalid XML: {e}") from e

        return_node = next((el for el in root.iter() if _local_name(el.tag) == "return"), None)
        if return_node is None:
            raise RateSourceError("Superfinanciera response has no 'return' node")

        return {_local_name(child.tag): (child.text or "").strip() for child in return_node}

    def lookup(self, day: date) -> Dict[str, object]:
        """
        Query the service for one date.

        Returns:
            Dict with value (Decimal), unit, valid_from and valid_to

        Raises:
            RateSourceError: On transport errors, malformed XML, success != true,
                a missing/non-numeric value or missing validity dates
        """
        log.info("Querying Superfinanciera for %s", day)
        fields = self._parse(self._post(day))

        if fields.get("success", "").lower() != "true":
            raise RateSourceError(f"Superfinanciera reported no success for {day}")
        raw_value = fields.get("value")
        if not raw_value:
            raise RateSourceError(f"Superfinanciera response for {day} has no value")
        try:
            value = Decimal(raw_value)
        except InvalidOperation as e:
            raise RateSourceError(f"Superfinanciera returned non-numeric value {raw_value!r}") from e
        if not value.is_finite() or value <= 0:
            raise RateSourceError(f"Superfinanciera returned unusable value {raw_value!r}")
        valid_from = fields.get("validityFrom", "")
        valid_to = fields.get("validityTo", "")
        if not valid_from or not valid_to:
            raise RateSourceError(f"Superfinanciera response for {day} is missing validity dates")

        return {
            "value": value,
            "unit": fields.get("unit", ""),
            "valid_from": valid_from,
            "valid_to": valid_to,
        }

    def query(self, day: date) -> Decimal:
        details = self.lookup(day)
        log.info("Superfinanciera rate for %s: %s (valid %s..%s)",
                 day, details["value"], details["valid_from"], details["valid_to"])
        return details["value"]  # type: ignore[return-value]
