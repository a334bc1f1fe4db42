from __future__ import annotations

from typing import Any

import httpx

from memory.models import Entity
from triage_core.errors import CollaboratorUnavailable
from triage_core.models import NLUAnalysis

from .provider_http import json_body, provider_error_message, send

NLU_API_VERSION = "2022-04-07"


class WatsonNLUClient:
    def __init__(
        self,
        *,
        api_key: str | None,
        url: str | None,
        timeout_seconds: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.url = (url or "").rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.transport = transport

    def analyze(self, text: str) -> NLUAnalysis:
        if not self.api_key or not self.url:
            raise CollaboratorUnavailable("NLU credentials are not configured.", service="nlu")
        response = send(
            "POST",
            f"{self.url}/v1/analyze",
            service="nlu",
            timeout_seconds=self.timeout_seconds,
            transport=self.transport,
            params={"version": NLU_API_VERSION},
            auth=("apikey", self.api_key),
            json={
                "text": text,
                "features": {
                    "keywords": {"limit": 10},
                    "entities": {"limit": 10},
                    "sentiment": {},
                    "categories": {"limit": 3},
                },
                "language": "en",
            },
        )
        if response.status_code >= 400:
            raise CollaboratorUnavailable(
                f"NLU analysis failed: {provider_error_message(response)}",
                service="nlu",
                status_code=response.status_code,
            )
        return parse_analysis(json_body(response, service="nlu"))


def parse_analysis(payload: dict[str, Any]) -> NLUAnalysis:
    keywords = tuple(
        str(item["text"]).strip()
        for item in payload.get("keywords") or []
        if isinstance(item, dict) and str(item.get("text") or "").strip()
    )
    entities = tuple(
        Entity(type=str(item.get("type") or ""), text=str(item["text"]))
        for item in payload.get("entities") or []
        if isinstance(item, dict) and item.get("text")
    )
    categories = tuple(
        str(item["label"])
        for item in payload.get("categories") or []
        if isinstance(item, dict) and item.get("label")
    )
    sentiment = "neutral"
    document = (payload.get("sentiment") or {}).get("document")
    if isinstance(document, dict) and isinstance(document.get("label"), str):
        sentiment = document["label"].lower()
    return NLUAnalysis(keywords=keywords, entities=entities, sentiment=sentiment, categories=categories)
