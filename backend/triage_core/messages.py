from __future__ import annotations

WELCOME_MESSAGE = """🏥 *Health Assistant*

Hi! I can help you understand your symptoms.

*How to use:*
• Type your symptoms
• Or send a voice message 🎤

*Example:*
_"I have a headache and fever for 2 days"_

*Commands:* help | new | 1 | 2 | 3"""

HELP_MESSAGE = """ℹ️ *Help*

*Describe your symptoms with:*
• What you feel
• How long (hours/days)
• Severity (mild/moderate/severe)

*Example:* _"Sore throat and runny nose for 2 days, moderate severity"_

*Commands:*
• *new* - Start over
• *more* - More details
• *remedies* - Home remedies
• *1* - Detailed info
• *2* - Medication tips
• *3* - Warning signs

🚨 Emergency? Call 911 (US) / 112 (India/EU)"""

EMERGENCY_MESSAGE = """🚨 *EMERGENCY*

This sounds serious. Please call emergency services NOW:

🇺🇸 USA: *911*
🇮🇳 India: *112*
🇬🇧 UK: *999*

Do not wait.

_If not an emergency, describe your symptoms again._"""

CONVERSATION_CLEARED = """🔄 *Conversation cleared!*

Describe your symptoms and I'll help."""

GOODBYE_MESSAGE = "👋 Take care! Type *hi* to chat again."

NO_ASSESSMENT_MESSAGE = "ℹ️ No assessment yet. Describe your symptoms first."

NO_REMEDIES_MESSAGE = "ℹ️ No remedies available yet.\n\nDescribe your symptoms first."

VOICE_UNCLEAR_MESSAGE = (
    "🎤 Couldn't understand the audio clearly.\n\n"
    "Try speaking clearly or type your symptoms instead."
)

NO_MESSAGE_RECEIVED = "ℹ️ No message received. Describe your symptoms or send a voice message."

ERROR_MESSAGE = "❌ Something went wrong. Try again or type *new* to start over."

MODEL_UNAVAILABLE_MESSAGE = (
    "⏳ The health assistant is temporarily unavailable. Please try again in a moment."
)

CHAT_FOLLOWUP = "\n\n_Ask me anything else about your health!_"

QUICK_REPLY_LEGEND = "*Reply:* 1=Details | 2=Meds | 3=Warnings | new=Reset"

GATHERING_FALLBACK_REPLY = "Could you describe your symptoms with more detail?"

DEFAULT_DISCLAIMER = (
    "This is AI-generated health information, not a medical diagnosis. "
    "Always consult a healthcare professional for proper medical advice."
)

DEFAULT_MEDICAL_ADVICE = "Please consult a healthcare professional for an accurate diagnosis."

DEGRADED_DISCLAIMER = (
    "Structured extraction of this assessment failed. "
    "Please consult a healthcare professional."
)


def voice_error_message(detail: str) -> str:
    return f"🎤 Couldn't process audio: {detail}\n\nPlease type your symptoms instead."
