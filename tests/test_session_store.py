import json

from speech_practice.core.exceptions import PersistenceError
from speech_practice.models.analysis import AnalysisResult, Scenario, SpeechMetrics
from speech_practice.services.events import EventBus, HistoryCleared, SessionRecorded
from speech_practice.services.metrics_engine import MetricsEngine
from speech_practice.services.session_store import SessionStore
from speech_practice.services.storage import (
    HISTORY_KEY, InMemoryKeyValueStore, JsonFileKeyValueStore
)


class StepClock:
    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        self.now += 1
        return self.now


class FailingStore(InMemoryKeyValueStore):
    def set(self, key, value):
        raise PersistenceError("disk full")

    def delete(self, key):
        raise PersistenceError("disk full")


def metrics(duration):
    return SpeechMetrics(wpm=120, filler_word_count=1, vocabulary_diversity=0.8,
                         word_count=20, duration=duration)


def test_short_sessions_are_not_stored():
    store = SessionStore(InMemoryKeyValueStore())

    assert store.record("hello there", metrics(5.0)) is None
    assert store.record("hello there", metrics(3.2)) is None
    assert store.history() == ()


def test_session_just_over_minimum_is_stored():
    store = SessionStore(InMemoryKeyValueStore())
    snapshot = MetricsEngine().compute("a real session transcript", 5.04)

    record = store.record("a real session transcript", snapshot)
    assert record is not None
    assert record.duration == 5.04


def test_empty_transcript_is_not_stored():
    store = SessionStore(InMemoryKeyValueStore())
    assert store.record("   ", metrics(30)) is None
    assert store.history() == ()


def test_history_keeps_newest_first_and_is_bounded():
    kv = InMemoryKeyValueStore()
    store = SessionStore(kv, clock=StepClock())

    for i in range(25):
        store.record(f"session {i}", metrics(10 + i))

    history = store.history()
    assert len(history) == 20
    assert [r.transcript for r in history] == [f"session {i}" for i in range(24, 4, -1)]
    assert len(json.loads(kv.get(HISTORY_KEY))) == 20


def test_ids_are_unique_with_frozen_clock():
    store = SessionStore(InMemoryKeyValueStore(), clock=lambda: 1_700_000_000.0)

    first = store.record("one", metrics(6))
    second = store.record("two", metrics(6))

    assert second.id > first.id
    assert first.date == "2023-11-14T22:13:20.000Z"


def test_history_survives_restart(tmp_path):
    kv = JsonFileKeyValueStore(tmp_path / "storage.json")
    analysis = AnalysisResult(overall_score=8, improvements=["Pause more"])
    SessionStore(kv).record("I practiced today", metrics(12), analysis, Scenario.INTERVIEW)

    restored = SessionStore(JsonFileKeyValueStore(tmp_path / "storage.json")).history()
    assert len(restored) == 1
    assert restored[0].transcript == "I practiced today"
    assert restored[0].analysis.overall_score == 8
    assert restored[0].scenario == Scenario.INTERVIEW


def test_stored_blob_uses_camel_case():
    kv = InMemoryKeyValueStore()
    SessionStore(kv).record("hello world", metrics(8))

    stored = json.loads(kv.get(HISTORY_KEY))[0]
    assert stored["metrics"]["fillerWordCount"] == 1
    assert stored["analysis"] is None
    assert set(stored) >= {"id", "date", "duration", "transcript", "metrics"}


def test_empty_history_round_trip():
    kv = InMemoryKeyValueStore({HISTORY_KEY: "[]"})
    assert SessionStore(kv).history() == ()


def test_corrupt_history_reads_as_empty():
    kv = InMemoryKeyValueStore({HISTORY_KEY: "{broken"})
    store = SessionStore(kv)
    assert store.history() == ()

    kv.set(HISTORY_KEY, json.dumps([{"id": "x"}]))
    assert store.load() == []


def test_write_failure_keeps_history_in_memory():
    store = SessionStore(FailingStore())
    record = store.record("still here", metrics(9))

    assert record is not None
    assert store.history() == (record,)


def test_clear_history_emits_event():
    bus = EventBus()
    events = []
    bus.subscribe(events.append)
    kv = InMemoryKeyValueStore()
    store = SessionStore(kv, bus=bus)
    store.record("first", metrics(7))

    assert store.clear() is True
    assert store.history() == ()
    assert kv.get(HISTORY_KEY) is None
    assert isinstance(events[0], SessionRecorded)
    assert isinstance(events[1], HistoryCleared)
    assert events[1].removed == 1


def test_clear_failure_keeps_history():
    kv = FailingStore()
    store = SessionStore(kv)
    store.record("kept", metrics(7))

    assert store.clear() is False
    assert len(store.history()) == 1
