"""Reference data HTTP client for category lookups"""

import httpx
from typing import List
from cashflow_engine.domain.models import Category
from cashflow_engine.domain.exceptions import ReferenceDataError
from cashflow_engine.config import settings


class ReferenceDataClient:
    """Client for the external category service"""

    def __init__(self, base_url: str | None = None, timeout: float | None = None):
        self.base_url = base_url or settings.reference_api_base
        self.timeout = timeout or settings.http_timeout_seconds

    async def get_categories(self) -> List[Category]:
        """
        Fetch all categories as {id, name, type} records.

        Raises:
            ReferenceDataError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.get(f"{self.base_url}/categories")
                response.raise_for_status()
                data = response.json()

                return [
                    Category(id=str(item["id"]), name=item["name"], type=item.get("type"))
                    for item in data
                ]

            except httpx.TimeoutException as e:
                raise ReferenceDataError(f"Reference API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise ReferenceDataError(f"Reference API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise ReferenceDataError(f"Reference API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise ReferenceDataError(f"Invalid category data: {e}") from e
