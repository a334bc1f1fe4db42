from __future__ import annotations

from fakes import ASSESSMENT_REPLY, CHAT_REPLY
from triage_core.errors import ModelTimeout, ModelUnavailable
from triage_core.messages import EMERGENCY_MESSAGE


def test_health_reports_store_size(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "conversations": 0}


def test_chat_first_turn_returns_follow_up(client, generator):
    generator.script(CHAT_REPLY)
    response = client.post("/chat", json={"message": "I have a headache", "conversation_id": "web-1"})
    assert response.status_code == 200
    payload = response.json()
    assert payload["kind"] == "chat"
    assert payload["text"] == "How long have you had this headache?"
    assert payload["conversation_id"] == "web-1"
    assert payload["audio_base64"] is None


def test_chat_second_turn_returns_assessment(client, generator, triage_app):
    generator.script(CHAT_REPLY, ASSESSMENT_REPLY)
    client.post("/chat", json={"message": "I have a headache", "conversation_id": "web-2"})
    response = client.post("/chat", json={"message": "Two days with fever", "conversation_id": "web-2"})

    payload = response.json()
    assert payload["kind"] == "assessment"
    assert payload["urgency_level"] == "Medium"
    assert payload["assessment"]["probable_causes"]
    assert "**Health Assessment**" in payload["text"]
    assert triage_app.store.get("web-2").last_assessment is not None


def test_chat_generates_conversation_id_when_missing(client):
    payload = client.post("/chat", json={"message": "I have a headache"}).json()
    assert payload["conversation_id"].startswith("web-")


def test_chat_rejects_empty_message(client):
    response = client.post("/chat", json={"message": "   ", "conversation_id": "web-1"})
    assert response.status_code == 400


def test_chat_emergency_never_reaches_model(client, generator):
    payload = client.post("/chat", json={"message": "my dad is unconscious", "conversation_id": "web-1"}).json()
    assert payload["kind"] == "emergency"
    assert payload["urgency_level"] == "Emergency"
    assert "EMERGENCY" in payload["text"]
    assert EMERGENCY_MESSAGE.splitlines()[2] in payload["text"]
    assert generator.calls == 0


def test_chat_with_speech_includes_audio(client):
    payload = client.post(
        "/chat",
        json={"message": "I have a headache", "conversation_id": "web-1", "speak": True},
    ).json()
    assert payload["audio_base64"]
    assert payload["voice_used"] == "english-female"


def test_analyze_is_stateless_and_forces_assessment(client, generator, triage_app):
    generator.script(ASSESSMENT_REPLY)
    response = client.post("/analyze", json={"symptoms": "sore throat for a week"})
    assert response.status_code == 200
    assert response.json()["kind"] == "assessment"
    assert len(triage_app.store) == 0


def test_analyze_rejects_empty_symptoms(client):
    assert client.post("/analyze", json={"symptoms": ""}).status_code == 400


def test_analyze_maps_timeouts_and_outages(client, generator):
    generator.script(ModelTimeout("watsonx provider timed out.", service="watsonx"))
    assert client.post("/analyze", json={"symptoms": "fever"}).status_code == 504

    generator.script(ModelUnavailable("down", service="watsonx"))
    assert client.post("/analyze", json={"symptoms": "fever"}).status_code == 502


def test_tts_returns_audio_with_voice_headers(client):
    response = client.post("/tts", json={"text": "Rest and hydrate", "language": "English"})
    assert response.status_code == 200
    assert response.content == b"ID3-fake-audio"
    assert response.headers["X-Voice-Used"] == "english-female"
    assert response.headers["X-Fallback"] == "false"
    assert response.headers["X-Language"] == "English"


def test_tts_reports_english_fallback(client, synthesizer):
    synthesizer.failing_voices = {"spanish-male"}
    response = client.post("/tts", json={"text": "Descanse", "language": "Spanish", "voice_preference": "male"})
    assert response.status_code == 200
    assert response.headers["X-Voice-Used"] == "english-male"
    assert response.headers["X-Fallback"] == "true"


def test_tts_failure_maps_to_bad_gateway(client, synthesizer):
    synthesizer.failing_voices = {"english-female"}
    assert client.post("/tts", json={"text": "hello"}).status_code == 502


def test_tts_validates_input(client):
    assert client.post("/tts", json={"text": "  "}).status_code == 400
    assert client.post("/tts", json={"text": "hi", "pitch": 500}).status_code == 422


def test_tts_voices_lists_catalog(client):
    payload = client.get("/tts/voices").json()
    languages = {entry["language"] for entry in payload["voices"]}
    assert {"English", "Spanish", "Hindi"} <= languages
    assert "mp3" in payload["formats"]


def test_delete_conversation_resets_state(client, triage_app):
    client.post("/chat", json={"message": "I have a headache", "conversation_id": "web-9"})
    assert triage_app.store.get("web-9") is not None

    response = client.delete("/conversations/web-9")
    assert response.status_code == 204
    assert triage_app.store.get("web-9") is None
    assert client.delete("/conversations/never-existed").status_code == 204


def test_chat_voice_transcribes_then_routes(client, transcriber, generator):
    response = client.post(
        "/chat/voice",
        data={"conversation_id": "web-voice", "language": "English"},
        files={"audio": ("note.webm", b"fake-audio", "audio/webm")},
    )
    assert response.status_code == 200
    payload = response.json()
    assert payload["transcript"] == "I have a sore throat"
    assert payload["kind"] == "chat"
    assert transcriber.calls[0][1] == "audio/webm"
    assert generator.calls == 1


def test_chat_voice_rejects_unsupported_media(client):
    response = client.post("/chat/voice", files={"audio": ("notes.txt", b"hello", "text/plain")})
    assert response.status_code == 415
