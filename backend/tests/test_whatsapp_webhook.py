from __future__ import annotations

from fakes import ASSESSMENT_REPLY, CHAT_REPLY


def _post(client, **form):
    return client.post("/whatsapp", data=form)


def test_welcome_command_returns_twiml(client, generator):
    response = _post(client, Body="hi", From="whatsapp:+15550001")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/xml")
    assert "<Response><Message>" in response.text
    assert "Health Assistant" in response.text
    assert generator.calls == 0


def test_missing_sender_returns_no_message_reply(client):
    response = _post(client, Body="hello")
    assert response.status_code == 200
    assert "No message received" in response.text


def test_empty_body_without_media_returns_no_message_reply(client, generator):
    response = _post(client, Body="", From="whatsapp:+15550001")
    assert "No message received" in response.text
    assert generator.calls == 0


def test_emergency_text_is_short_circuited(client, generator):
    response = _post(client, Body="I think I'm having a heart attack", From="whatsapp:+15550001")
    assert "EMERGENCY" in response.text
    assert "911" in response.text
    assert generator.calls == 0


def test_symptom_flow_then_quick_reply(client, generator, triage_app):
    generator.script(CHAT_REPLY, ASSESSMENT_REPLY)
    sender = "whatsapp:+15550002"

    first = _post(client, Body="I have a headache", From=sender)
    assert "How long have you had this headache?" in first.text
    assert "Ask me anything else about your health!" in first.text

    second = _post(client, Body="Two days with fever", From=sender)
    assert "Health Assessment" in second.text
    assert "1=Details" in second.text

    calls = generator.calls
    third = _post(client, Body="3", From=sender)
    assert "Warning Signs" in third.text
    assert generator.calls == calls
    assert triage_app.store.get(sender).last_assessment is not None


def test_voice_note_is_downloaded_and_transcribed(client, media, transcriber):
    response = _post(
        client,
        Body="",
        From="whatsapp:+15550003",
        NumMedia="1",
        MediaUrl0="https://api.twilio.com/2010-04-01/Accounts/AC1/Messages/MM1/Media/ME1",
        MediaContentType0="audio/ogg",
    )
    assert response.status_code == 200
    assert media.urls == ["https://api.twilio.com/2010-04-01/Accounts/AC1/Messages/MM1/Media/ME1"]
    assert transcriber.calls[0][0] == b"OggS-fake-voice-note"
    assert "I have a sore throat" in response.text


def test_non_audio_media_is_ignored(client, media):
    response = _post(
        client,
        Body="hi",
        From="whatsapp:+15550004",
        NumMedia="1",
        MediaUrl0="https://api.twilio.com/media/image",
        MediaContentType0="image/jpeg",
    )
    assert "Health Assistant" in response.text
    assert media.urls == []


def test_unexpected_failure_returns_generic_error(client, generator):
    generator.script(RuntimeError("boom"))
    response = _post(client, Body="my knee hurts", From="whatsapp:+15550005")
    assert response.status_code == 200
    assert "Something went wrong" in response.text


def test_model_outage_returns_try_again_message(client, generator):
    from triage_core.errors import ModelUnavailable

    generator.script(ModelUnavailable("down", service="watsonx"))
    response = _post(client, Body="my knee hurts", From="whatsapp:+15550006")
    assert "temporarily unavailable" in response.text
