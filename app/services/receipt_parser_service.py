# ================================
# RECEIPT PARSER SERVICE (services/receipt_parser_service.py)
# ================================

import httpx
import base64
import json
import re
import logging
from typing import Dict, Any, Optional

from app.config import settings
from app.core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)

RECEIPT_PROMPT = """
You are a receipt parser. Analyze this receipt image and extract structured data.
Return a JSON object with the following structure:
{
  "merchant": "store name",
  "date": "YYYY-MM-DD",
  "lineItems": [
    {
      "description": "item description",
      "quantity": number,
      "unitPrice": number,
      "lineTotal": number
    }
  ],
  "subtotal": number,
  "tax": number,
  "total": number
}

If any field cannot be determined, use null for strings and 0 for numbers.
Ensure all numbers are valid numeric values.
Be as accurate as possible with item descriptions and prices.
"""

JSON_BLOCK = re.compile(r"\{[\s\S]*\}")

def _number(value: Any, default: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number or default

def normalize_receipt_data(parsed: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce the model output into the receipt shape stored on the expense"""
    line_items = parsed.get("lineItems")
    if not isinstance(line_items, list):
        line_items = []

    parsed["lineItems"] = [
        {
            "description": item.get("description") or "Unknown item",
            "quantity": _number(item.get("quantity"), 1),
            "unitPrice": _number(item.get("unitPrice"), 0),
            "lineTotal": _number(item.get("lineTotal"), 0),
        }
        for item in line_items
        if isinstance(item, dict)
    ]

    for field in ("subtotal", "tax", "total"):
        value = parsed.get(field)
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            parsed[field] = 0

    return parsed

class ReceiptParserService:
    """Extracts merchant, date, line items and totals from receipt images via Gemini"""

    def __init__(self, api_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self.url = f"{settings.GEMINI_API_URL}/{settings.GEMINI_MODEL}:generateContent"
        self.timeout = settings.GEMINI_TIMEOUT_SECONDS

    @property
    def is_available(self) -> bool:
        return bool(self.api_key)

    def _build_request(self, content: bytes, mime_type: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": RECEIPT_PROMPT},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(content).decode("ascii"),
                            }
                        },
                    ]
                }
            ],
            "generationConfig": {
                "temperature": 0.1,
                "topK": 1,
                "topP": 0.8,
                "maxOutputTokens": 2048,
            },
        }

    async def parse_receipt(self, content: bytes, mime_type: str = "image/jpeg") -> Dict[str, Any]:
        """
        Send a receipt to Gemini and return the normalized result

        Args:
            content: raw image or PDF bytes
            mime_type: content type of the upload

        Returns:
            Dict with merchant, date, lineItems, subtotal, tax and total

        Raises:
            ExternalServiceError: API unreachable, rejected or unparseable response
        """
        if not self.api_key:
            logger.error("Gemini API key not configured")
            raise ExternalServiceError("Gemini API key not configured", "PARSER_NOT_CONFIGURED", 503)

        logger.info(f"Parsing receipt with Gemini ({len(content)} bytes, {mime_type})")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    self.url,
                    params={"key": self.api_key},
                    json=self._build_request(content, mime_type),
                    headers={"Content-Type": "application/json"}
                )
                response.raise_for_status()

        except httpx.TimeoutException:
            logger.error("Gemini request timed out")
            raise ExternalServiceError("Request timeout. Please try again.", "PARSER_TIMEOUT", 504)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.error(f"Gemini API error: HTTP {status}")
            if status == 429:
                raise ExternalServiceError("Rate limit exceeded. Please try again later.", "PARSER_RATE_LIMITED", 429)
            if status == 401:
                raise ExternalServiceError("Invalid Gemini API key", "PARSER_AUTH_FAILED")
            raise ExternalServiceError(f"Receipt parsing failed: HTTP {status}", "PARSER_FAILED")
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during receipt parsing: {e}")
            raise ExternalServiceError(f"Receipt parsing failed: {e}", "PARSER_FAILED")

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Gemini returned a non-JSON body ({response.headers.get('content-type', 'unknown')})")
            raise ExternalServiceError("Receipt parsing failed: Invalid response from Gemini API", "PARSER_FAILED")

        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ExternalServiceError("Receipt parsing failed: Invalid response from Gemini API", "PARSER_FAILED")

        # The model may wrap the JSON in markdown fences
        match = JSON_BLOCK.search(text or "")
        if not match:
            raise ExternalServiceError("Receipt parsing failed: No JSON found in Gemini response", "PARSER_FAILED")

        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ExternalServiceError(f"Receipt parsing failed: {e}", "PARSER_FAILED")

        if not isinstance(parsed, dict):
            raise ExternalServiceError("Receipt parsing failed: Unexpected JSON structure", "PARSER_FAILED")

        result = normalize_receipt_data(parsed)
        logger.info(f"Receipt parsed: {len(result['lineItems'])} line item(s), total {result['total']}")
        return result

def get_receipt_parser() -> ReceiptParserService:
    return ReceiptParserService()

