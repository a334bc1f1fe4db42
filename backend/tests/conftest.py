from __future__ import annotations

import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

TESTS_DIR = Path(__file__).resolve().parent
if str(TESTS_DIR) not in sys.path:
    sys.path.insert(0, str(TESTS_DIR))

from fakes import FakeGenerator, FakeMedia, FakeNLU, FakeSynthesizer, FakeTranscriber  # noqa: E402

_PROVIDER_ENV = (
    "IBM_CLOUD_API_KEY",
    "WATSONX_PROJECT_ID",
    "IBM_NLU_API_KEY",
    "IBM_NLU_URL",
    "IBM_STT_API_KEY",
    "IBM_STT_URL",
    "IBM_TTS_API_KEY",
    "IBM_TTS_URL",
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "TRIAGE_SAFETY_LEXICON",
)


@pytest.fixture
def backend_module(monkeypatch):
    for key in _PROVIDER_ENV:
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("TRIAGE_DEBUG", "false")

    if "main" in sys.modules:
        module = importlib.reload(sys.modules["main"])
    else:
        module = importlib.import_module("main")
    return module


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def fake_nlu() -> FakeNLU:
    return FakeNLU()


@pytest.fixture
def transcriber() -> FakeTranscriber:
    return FakeTranscriber()


@pytest.fixture
def synthesizer() -> FakeSynthesizer:
    return FakeSynthesizer()


@pytest.fixture
def media() -> FakeMedia:
    return FakeMedia()


@pytest.fixture
def triage_app(backend_module, monkeypatch, generator, fake_nlu, transcriber, synthesizer, media):
    container = backend_module.TriageApp(
        backend_module.TriageSettings(),
        generator=generator,
        nlu=fake_nlu,
        transcriber=transcriber,
        synthesizer=synthesizer,
        media=media,
    )
    monkeypatch.setattr(backend_module, "container", container)
    return container


@pytest.fixture
def client(backend_module, triage_app):
    with TestClient(backend_module.app) as test_client:
        yield test_client
