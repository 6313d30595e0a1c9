"""
Service exports.
"""

from speech_practice.services.context import PracticeContext
from speech_practice.services.conversation import ConversationContext
from speech_practice.services.events import EventBus, event_to_dict
from speech_practice.services.gemini import GeminiClient
from speech_practice.services.metrics_engine import MetricsEngine
from speech_practice.services.orchestrator import AnalysisOrchestrator, TextGenerator
from speech_practice.services.recognizer import QueueSpeechRecognizer, SpeechRecognizer
from speech_practice.services.response_parser import ResponseParser
from speech_practice.services.session_store import SessionStore
from speech_practice.services.storage import (
    CredentialStore, InMemoryKeyValueStore, JsonFileKeyValueStore, KeyValueStore
)
from speech_practice.services.supervisor import SessionSupervisor
from speech_practice.services.text_analyzer import TextAnalyzer

__all__ = [
    # Wiring
    "PracticeContext",

    # Session
    "SessionSupervisor",
    "SessionStore",
    "SpeechRecognizer",
    "QueueSpeechRecognizer",
    "EventBus",
    "event_to_dict",

    # Analysis
    "MetricsEngine",
    "AnalysisOrchestrator",
    "ConversationContext",
    "ResponseParser",
    "TextAnalyzer",
    "TextGenerator",
    "GeminiClient",

    # Storage
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "CredentialStore",
]
