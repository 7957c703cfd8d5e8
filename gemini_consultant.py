import json
import logging
from typing import Any, Dict, List, Optional

import requests

from api_config import GEMINI_MODEL, REQUEST_TIMEOUT

logger = logging.getLogger(__name__)

GEMINI_API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

CONSULTANT_PROMPT = """
CONTEXT: You are the MediHort AI horticultural consultant on a medicinal plant website.
TASK: Answer questions about medicinal plants, their cultivation and their therapeutic applications.

RESPONSE RULES:
1. Be accurate and practical. Mention active compounds and growing conditions where relevant.
2. Keep answers focused (a few short paragraphs at most).
3. You give general information, not medical advice. When a question is about treating a
   condition, remind the user to consult a qualified healthcare professional.
4. If you are unsure, say so instead of inventing facts.
"""

ANALYSIS_PROMPT = """
CONTEXT: You are an expert in medical horticulture and phytochemistry.
TASK: Write concise insights about the plant below for a general audience.

PLANT:
- Name: {name}
- Scientific name: {scientific_name}
- Description: {description}
- Known medical uses: {medical_uses}

Cover: how the plant's active compounds relate to its uses, cultivation tips for growing it
for medicinal purposes, and safety considerations (contraindications, interactions).
Use short paragraphs or bullet points. Do not give dosage instructions.
"""


class GeminiError(Exception):
    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def extract_text(data: Dict[str, Any]) -> str:
    """First text part of the first candidate in a generateContent response."""
    candidates = data.get("candidates") if isinstance(data, dict) else None
    if candidates and isinstance(candidates, list) and isinstance(candidates[0], dict):
        content = candidates[0].get("content")
        if content and isinstance(content, dict):
            parts = content.get("parts")
            if parts and isinstance(parts, list) and isinstance(parts[0], dict) and "text" in parts[0]:
                return parts[0]["text"]
    logger.warning("Unexpected Gemini response structure: %s", json.dumps(data)[:500])
    raise GeminiError("Received an unexpected response format from the language model.")


def build_chat_contents(message: str, history: List[Dict[str, str]]) -> List[Dict[str, Any]]:
    contents = [
        {"role": "user", "parts": [{"text": CONSULTANT_PROMPT}]},
        {"role": "model", "parts": [{"text": "Understood. How can I help with medicinal plants today?"}]},
    ]
    valid_history = [
        m for m in history
        if isinstance(m, dict) and m.get("role") in ["user", "assistant", "model"] and m.get("content")
    ]
    for entry in valid_history:
        api_role = "model" if entry["role"] in ["assistant", "model"] else "user"
        contents.append({"role": api_role, "parts": [{"text": str(entry["content"])}]})
    contents.append({"role": "user", "parts": [{"text": message}]})
    return contents


def build_analysis_contents(plant: Dict[str, Any]) -> List[Dict[str, Any]]:
    prompt = ANALYSIS_PROMPT.format(
        name=plant.get("name") or "not specified",
        scientific_name=plant.get("scientific_name") or "not specified",
        description=plant.get("description") or "not specified",
        medical_uses=", ".join(plant.get("medical_uses") or []) or "not specified",
    )
    return [{"role": "user", "parts": [{"text": prompt}]}]


class GeminiConsultant:
    """Talks to Gemini directly, for running without the deployed edge functions."""

    def __init__(self, api_key: str, model: str = GEMINI_MODEL, timeout: float = REQUEST_TIMEOUT):
        self.api_key = api_key
        self.url = GEMINI_API_URL.format(model=model)
        self.timeout = timeout

    def generate(self, contents: List[Dict[str, Any]]) -> str:
        if not self.api_key:
            raise GeminiError("Gemini API Key is not configured.")
        payload = {
            "contents": contents,
            "generationConfig": {"temperature": 0.7, "topP": 0.9, "maxOutputTokens": 800},
        }
        try:
            response = requests.post(
                self.url,
                params={"key": self.api_key},
                json=payload,
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.Timeout as e:
            logger.error("Gemini request timed out")
            raise GeminiError("The language model request timed out.") from e
        except requests.exceptions.RequestException as e:
            detail = str(e)
            if e.response is not None:
                try:
                    body = e.response.json()
                    error = body.get("error") if isinstance(body, dict) else None
                    detail = error.get("message", e.response.text) if isinstance(error, dict) else e.response.text
                except ValueError:
                    detail = e.response.text
            logger.error("Error calling Gemini API: %s", detail)
            raise GeminiError(f"Error calling the language model: {detail}") from e
        except ValueError as e:
            logger.error("Gemini returned invalid JSON")
            raise GeminiError("Invalid response from the language model.") from e
        return extract_text(data)

    def analyze_plant(self, plant: Dict[str, Any], access_token: Optional[str] = None) -> Optional[str]:
        return self.generate(build_analysis_contents(plant)) or None

    def consult(self, message: str, history: List[Dict[str, str]],
                access_token: Optional[str] = None) -> Optional[str]:
        return self.generate(build_chat_contents(message, history)) or None
