"""Client for the external asynchronous transcription service."""

import base64
import json
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Dict, Optional, Union
import requests
from pydantic import BaseModel, ValidationError, field_validator
from .errors import PermanentSubmissionError, StatusCheckError, TransientSubmissionError
from .models import ResourceRef

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 429}


class ServiceState(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ServiceStatus(BaseModel):
    """State of a remote job; ``result`` is plain text or a structured body."""

    state: ServiceState
    result: Optional[Union[str, Dict[str, Any]]] = None
    error: Optional[str] = None

    @field_validator("error", mode="before")
    @classmethod
    def error_as_text(cls, value: Any) -> Optional[str]:
        # Services report errors either as a string or as {"code", "message"}
        if value is None or isinstance(value, str):
            return value
        if isinstance(value, dict) and isinstance(value.get("message"), str):
            return value["message"]
        return json.dumps(value, default=str)


class TranscriptionClient(ABC):
    """Submits resources for transcription and checks on them by handle."""

    @abstractmethod
    def submit(
        self,
        payload: str,
        resource: ResourceRef,
        data: bytes,
        idempotency_key: Optional[str] = None,
    ) -> str:
        """Start a remote job and return its opaque handle.

        Raises TransientSubmissionError or PermanentSubmissionError.
        """
        ...

    @abstractmethod
    def get_status(self, handle: str) -> ServiceStatus:
        """Raises StatusCheckError when the state cannot be determined."""
        ...


class HttpTranscriptionClient(TranscriptionClient):
    """JSON-over-HTTP client using generateContent-style request bodies."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        model: str,
        temperature: float = 0.1,
        max_output_tokens: int = 8192,
        timeout: float = 60.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.max_output_tokens = max_output_tokens
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self, idempotency_key: Optional[str] = None) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.api_key}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    def build_request(self, payload: str, resource: ResourceRef, data: bytes) -> Dict[str, Any]:
        return {
            "model": self.model,
            "contents": [{
                "parts": [
                    {"text": payload},
                    {
                        "inline_data": {
                            "mime_type": resource.mime_type,
                            "data": base64.b64encode(data).decode("ascii"),
                        }
                    },
                ]
            }],
            "generationConfig": {
                "temperature": self.temperature,
                "maxOutputTokens": self.max_output_tokens,
            },
        }

    def submit(
        self,
        payload: str,
        resource: ResourceRef,
        data: bytes,
        idempotency_key: Optional[str] = None,
    ) -> str:
        try:
            response = self.session.post(
                f"{self.base_url}/jobs",
                json=self.build_request(payload, resource, data),
                headers=self._headers(idempotency_key),
                timeout=self.timeout,
            )
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransientSubmissionError(f"Could not reach transcription service: {e}") from e
        except requests.RequestException as e:
            raise PermanentSubmissionError(f"Invalid submission request: {e}") from e

        code = response.status_code
        if code in RETRYABLE_STATUS_CODES or code >= 500:
            raise TransientSubmissionError(f"Transcription service error ({code}): {response.text[:500]}")
        if code >= 400:
            raise PermanentSubmissionError(f"Transcription service rejected job ({code}): {response.text[:500]}")

        try:
            body = response.json()
        except ValueError as e:
            raise PermanentSubmissionError("Transcription service returned invalid JSON") from e
        handle = body.get("handle") if isinstance(body, dict) else None
        if not handle:
            raise PermanentSubmissionError("Transcription service response had no job handle")
        logger.debug("Submitted %s, handle %s", resource.id, handle)
        return str(handle)

    def get_status(self, handle: str) -> ServiceStatus:
        try:
            response = self.session.get(
                f"{self.base_url}/jobs/{handle}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise StatusCheckError(f"Could not reach transcription service: {e}") from e

        if response.status_code != 200:
            raise StatusCheckError(
                f"Status check for {handle} returned {response.status_code}: {response.text[:500]}"
            )
        try:
            body = response.json()
        except ValueError as e:
            raise StatusCheckError(f"Status check for {handle} returned invalid JSON") from e
        if not isinstance(body, dict):
            raise StatusCheckError(f"Status check for {handle} returned an unexpected body")

        try:
            state = ServiceState(body.get("state"))
        except ValueError:
            raise StatusCheckError(f"Unrecognized state {body.get('state')!r} for {handle}")
        try:
            return ServiceStatus(state=state, result=body.get("result"), error=body.get("error"))
        except ValidationError as e:
            raise StatusCheckError(f"Status check for {handle} returned a malformed body: {e}") from e
