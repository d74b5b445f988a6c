# Standard- und Drittanbieter-Imports für Logging, Umgebungsvariablen und die OpenAI-kompatible Gemini-API
import os
import json
import logging
import re
from typing import Dict, Iterator, List, Optional

from openai import OpenAI, OpenAIError
from pydantic import ValidationError
from dotenv import load_dotenv

from .models import FALLBACK_RESULT, PoseComparisonResult
from .prompts import get_prompt
from .utils import image_bytes_to_data_uri


# Lade die Umgebungsvariablen aus einer .env-Datei (z. B. API-Keys)
load_dotenv()

logger = logging.getLogger(__name__)

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
DEFAULT_MODEL = "gemini-3-flash-preview"


class PoseJudgeError(Exception):
    """Basisklasse für alle Fehler des Pose-Richters."""


class MissingCredentialError(PoseJudgeError):
    pass


class UpstreamError(PoseJudgeError):
    pass


class GeminiClient:
    def __init__(self, api_key: Optional[str], model: Optional[str] = None, base_url: Optional[str] = None):
        if not api_key:
            raise MissingCredentialError("GEMINI_API_KEY fehlt in den Umgebungsvariablen.")

        # Modellkonfiguration
        self.model = model or os.getenv("GEMINI_MODEL", DEFAULT_MODEL)
        max_tokens = os.getenv("GEMINI_MAX_TOKENS")
        self.max_tokens = int(max_tokens) if max_tokens else None       # Ohne Wert keine Obergrenze für die Antwort
        self.timeout = float(os.getenv("GEMINI_TIMEOUT", "60"))         # Timeout in Sekunden

        # Initialisiere den OpenAI-Client zur Kommunikation mit der Gemini-Schnittstelle
        self.client = OpenAI(
            base_url=base_url or os.getenv("GEMINI_BASE_URL", GEMINI_BASE_URL),
            api_key=api_key,
            max_retries=0,
        )

    @staticmethod
    def build_messages(target: bytes, target_type: str, attempt: bytes, attempt_type: str) -> List[Dict]:
        """
        Baut eine einzelne Benutzer-Nachricht: Anweisungstext, danach Zielbild und Versuchsbild
        als Inline-Base64 mit ihrem ursprünglichen MIME-Typ.
        """
        return [{
            "role": "user",
            "content": [
                {"type": "text", "text": get_prompt()},
                {"type": "image_url", "image_url": {"url": image_bytes_to_data_uri(target, target_type)}},
                {"type": "image_url", "image_url": {"url": image_bytes_to_data_uri(attempt, attempt_type)}},
            ],
        }]

    @staticmethod
    def response_format() -> Dict:
        return {
            "type": "json_schema",
            "json_schema": {
                "name": "pose_comparison",
                "schema": PoseComparisonResult.model_json_schema(),
            },
        }

    def _create(self, messages: List[Dict], stream: bool):
        kwargs = {}
        if self.max_tokens is not None:
            kwargs["max_tokens"] = self.max_tokens
        return self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            response_format=self.response_format(),
            timeout=self.timeout,
            stream=stream,
            **kwargs,
        )

    @staticmethod
    def _extract_json(raw_text: str) -> Optional[Dict]:
        """
        Extrahiert ein JSON-Objekt aus einem beliebigen Text, hilfreich bei "verrauschten" Antworten
        (z. B. in ```json-Blöcke eingepackt).
        """
        if not raw_text or not isinstance(raw_text, str):
            return None

        try:
            return json.loads(raw_text)
        except json.JSONDecodeError:
            json_match = re.search(r'\{[\s\S]*\}', raw_text)
            if json_match:
                try:
                    return json.loads(json_match.group())
                except json.JSONDecodeError as e:
                    logger.warning(f"JSON-Extraktion fehlgeschlagen: {str(e)}")
        return None

    def parse_result(self, raw_text: str) -> Dict:
        parsed = self._extract_json(raw_text)
        if not isinstance(parsed, dict):
            raise ValueError("Antwort enthält kein JSON-Objekt")
        try:
            return PoseComparisonResult.model_validate(parsed).model_dump()
        except ValidationError as e:
            raise ValueError(f"Antwort entspricht nicht dem Schema: {e}") from e

    def compare_poses(self, target: bytes, target_type: str, attempt: bytes, attempt_type: str) -> Dict:
        """
        Vergleicht Ziel- und Versuchsbild in einem einzigen Modellaufruf und gibt {score, feedback} zurück.
        Jeder Fehler des Modells führt zum Standardergebnis statt zu einer Ausnahme.
        """
        messages = self.build_messages(target, target_type, attempt, attempt_type)
        try:
            response = self._create(messages, stream=False)
        except OpenAIError as e:
            logger.error(f"API-Aufruf fehlgeschlagen: {str(e)}", exc_info=True)
            return dict(FALLBACK_RESULT)

        raw_output = None
        if response and response.choices and response.choices[0].message:
            raw_output = response.choices[0].message.content

        if not raw_output:
            logger.error("Keine Antwort vom Modell erhalten")
            return dict(FALLBACK_RESULT)

        logger.debug(f"Roh-API-Antwort: {raw_output[:200]}...")
        try:
            return self.parse_result(raw_output.strip())
        except ValueError as e:
            logger.warning(f"Ungültige JSON-Antwort: {str(e)}")
            return dict(FALLBACK_RESULT)

    def compare_poses_stream(self, target: bytes, target_type: str, attempt: bytes, attempt_type: str) -> Iterator[str]:
        """
        Öffnet einen Streaming-Aufruf und liefert die Text-Fragmente unverändert in Empfangsreihenfolge.
        """
        messages = self.build_messages(target, target_type, attempt, attempt_type)
        try:
            stream = self._create(messages, stream=True)
        except OpenAIError as e:
            logger.error(f"Stream konnte nicht geöffnet werden: {str(e)}", exc_info=True)
            raise UpstreamError("AI judge unavailable") from e

        return self._relay(stream)

    @staticmethod
    def _relay(stream) -> Iterator[str]:
        try:
            for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    yield delta.content
        except OpenAIError:
            # Der Client erkennt den Abbruch am unvollständigen JSON
            logger.error("Stream wurde unterbrochen", exc_info=True)
