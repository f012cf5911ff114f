"""OpenAI cloud access for the relay server."""

from parley.cloud.credentials import CredentialStore
from parley.cloud.openai_client import OpenAIClient, language_code, session_instructions, turn_detection

__all__ = [
    "CredentialStore",
    "OpenAIClient",
    "language_code",
    "session_instructions",
    "turn_detection",
]
