from .nlu import WatsonNLUClient
from .speech import WatsonSpeechToText, WatsonTextToSpeech, select_voice, voice_catalog
from .twilio_media import TwilioMediaFetcher
from .watsonx import IAMTokenProvider, WatsonxGenerator

__all__ = [
    "IAMTokenProvider",
    "TwilioMediaFetcher",
    "WatsonNLUClient",
    "WatsonSpeechToText",
    "WatsonTextToSpeech",
    "WatsonxGenerator",
    "select_voice",
    "voice_catalog",
]
