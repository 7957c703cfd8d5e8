import logging
from typing import Any, Dict, List, Optional

import requests

from api_config import ANALYZE_FUNCTION, CONSULTANT_FUNCTION, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)


class EdgeFunctionError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def _error_detail(response: requests.Response) -> str:
    """Pulls the backend's error text out of a failed function response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        error = body.get("error") or body.get("message")
        if isinstance(error, dict):
            error = error.get("message")
        if error:
            return str(error)
    return f"HTTP {response.status_code}"


class EdgeFunctionsClient:
    """Calls the Supabase edge functions that wrap the language model."""

    def __init__(self, base_url: str, anon_key: str, timeout: float = REQUEST_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout

    def invoke(self, name: str, body: Dict[str, Any], access_token: Optional[str] = None) -> Dict[str, Any]:
        url = f"{self.base_url}/functions/v1/{name}"
        headers = {
            "Content-Type": "application/json",
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
        }
        try:
            response = requests.post(url, json=body, headers=headers, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.error("Edge function %s timed out", name)
            raise EdgeFunctionError("The request timed out. Please try again.") from e
        except requests.exceptions.RequestException as e:
            logger.error("Edge function %s unreachable: %s", name, e)
            raise EdgeFunctionError(f"Could not reach {name}: {e}") from e

        if not response.ok:
            detail = _error_detail(response)
            logger.error("Edge function %s failed | Status: %s, Details: %s",
                         name, response.status_code, detail)
            raise EdgeFunctionError(detail, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError as e:
            logger.error("Edge function %s returned invalid JSON", name)
            raise EdgeFunctionError("Invalid response from the AI service.") from e
        return data if isinstance(data, dict) else {}

    def analyze_plant(self, plant: Dict[str, Any], access_token: Optional[str] = None) -> Optional[str]:
        data = self.invoke(
            ANALYZE_FUNCTION,
            {
                "plantName": plant.get("name"),
                "scientificName": plant.get("scientific_name"),
                "description": plant.get("description"),
                "medicalUses": plant.get("medical_uses") or [],
            },
            access_token=access_token,
        )
        return data.get("insights") or None

    def consult(self, message: str, history: List[Dict[str, str]],
                access_token: Optional[str] = None) -> Optional[str]:
        data = self.invoke(
            CONSULTANT_FUNCTION,
            {"message": message, "conversationHistory": history},
            access_token=access_token,
        )
        return data.get("reply") or None
