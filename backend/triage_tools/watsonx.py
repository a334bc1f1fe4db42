from __future__ import annotations

import logging
import threading
import time
from typing import Callable

import httpx

from triage_core.errors import ModelUnavailable
from triage_core.models import GenerationParams

from .provider_http import json_body, provider_error_message, send

logger = logging.getLogger(__name__)

IAM_TOKEN_URL = "https://iam.cloud.ibm.com/identity/token"
IAM_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"
GENERATION_API_VERSION = "2023-05-29"
TOKEN_REFRESH_MARGIN_SECONDS = 60.0


class IAMTokenProvider:
    """Exchanges an IBM Cloud API key for a bearer token and caches it until shortly before expiry."""

    def __init__(
        self,
        api_key: str | None,
        *,
        token_url: str = IAM_TOKEN_URL,
        timeout_seconds: float = 20.0,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.api_key = api_key
        self.token_url = token_url
        self.timeout_seconds = timeout_seconds
        self.transport = transport
        self._clock = clock
        self._token: str | None = None
        self._expires_at = 0.0
        self._lock = threading.Lock()

    def token(self) -> str:
        if not self.api_key:
            raise ModelUnavailable("IBM Cloud API key is not configured.", service="iam")
        with self._lock:
            if self._token and self._clock() < self._expires_at - TOKEN_REFRESH_MARGIN_SECONDS:
                return self._token
            response = send(
                "POST",
                self.token_url,
                service="iam",
                timeout_seconds=self.timeout_seconds,
                transport=self.transport,
                unavailable=ModelUnavailable,
                headers={"Accept": "application/json"},
                data={"grant_type": IAM_GRANT_TYPE, "apikey": self.api_key},
            )
            if response.status_code >= 400:
                raise ModelUnavailable(
                    f"Failed to obtain IAM token: {provider_error_message(response)}",
                    service="iam",
                    status_code=response.status_code,
                )
            payload = json_body(response, service="iam", unavailable=ModelUnavailable)
            token = payload.get("access_token")
            if not isinstance(token, str) or not token:
                raise ModelUnavailable("IAM response did not include an access token.", service="iam")
            expires_in = payload.get("expires_in")
            lifetime = float(expires_in) if isinstance(expires_in, (int, float)) else 3600.0
            self._token = token
            self._expires_at = self._clock() + lifetime
            return token


class WatsonxGenerator:
    def __init__(
        self,
        *,
        project_id: str | None,
        url: str,
        model_id: str,
        tokens: IAMTokenProvider,
        timeout_seconds: float = 45.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.project_id = project_id
        self.url = url.rstrip("/")
        self.model_id = model_id
        self.tokens = tokens
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def generate(self, prompt: str, params: GenerationParams) -> str:
        if not self.project_id:
            raise ModelUnavailable("watsonx.ai project id is not configured.", service="watsonx")
        access_token = self.tokens.token()
        payload = {
            "model_id": self.model_id,
            "project_id": self.project_id,
            "input": prompt,
            "parameters": {
                "decoding_method": "greedy",
                "max_new_tokens": params.max_tokens,
                "min_new_tokens": params.min_tokens,
                "stop_sequences": list(params.stop_sequences),
                "repetition_penalty": params.repetition_penalty,
                "temperature": params.temperature,
            },
        }
        response = send(
            "POST",
            f"{self.url}/ml/v1/text/generation",
            service="watsonx",
            timeout_seconds=self.timeout_seconds,
            connect_seconds=10.0,
            transport=self.transport,
            unavailable=ModelUnavailable,
            params={"version": GENERATION_API_VERSION},
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            json=payload,
        )
        if response.status_code >= 400:
            message = provider_error_message(response)
            logger.warning("watsonx.ai generation failed (%s): %s", response.status_code, message)
            raise ModelUnavailable(
                f"watsonx.ai generation failed: {message}",
                service="watsonx",
                status_code=response.status_code,
            )
        body = json_body(response, service="watsonx", unavailable=ModelUnavailable)
        results = body.get("results")
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise ModelUnavailable("watsonx.ai response did not include results.", service="watsonx")
        text = results[0].get("generated_text")
        if not isinstance(text, str):
            raise ModelUnavailable("watsonx.ai response did not include generated text.", service="watsonx")
        return text
