"""Tests for per-channel conversation state and idle expiry."""

from otter_bot.ai.conversation_store import Continuation, ConversationState, ConversationStore
from otter_bot.ai.types import Role, text_message


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def _state(provider_id: str = "openai", text: str = "hi") -> ConversationState:
    return ConversationState(provider_id=provider_id, entries=[text_message(Role.USER, text)])


class TestConversationStore:
    def test_get_missing_returns_none(self):
        store = ConversationStore(clock=FakeClock())
        assert store.get("chan") is None

    def test_set_stamps_current_time(self):
        clock = FakeClock(1234.0)
        store = ConversationStore(clock=clock)

        store.set("chan", _state())

        assert store.get("chan").timestamp == 1234.0

    def test_state_alive_just_before_timeout(self):
        clock = FakeClock()
        store = ConversationStore(timeout_seconds=300, clock=clock)
        store.set("chan", _state())

        clock.now += 299.9

        assert store.get("chan") is not None

    def test_state_expires_at_timeout(self):
        clock = FakeClock()
        store = ConversationStore(timeout_seconds=300, clock=clock)
        store.set("chan", _state())

        clock.now += 300

        assert store.get("chan") is None
        assert len(store) == 0

    def test_set_replaces_whole_state(self):
        store = ConversationStore(clock=FakeClock())
        store.set("chan", _state("openai", "first"))
        store.set("chan", _state("gemini", "second"))

        state = store.get("chan")
        assert state.provider_id == "gemini"
        assert state.entries[0].text() == "second"

    def test_channels_are_independent(self):
        store = ConversationStore(clock=FakeClock())
        store.set("a", _state(text="in a"))

        assert store.get("b") is None
        assert store.get("a").entries[0].text() == "in a"

    def test_update_refreshes_timestamp(self):
        clock = FakeClock()
        store = ConversationStore(timeout_seconds=300, clock=clock)
        store.set("chan", _state())

        clock.now += 200
        store.update("chan", [text_message(Role.USER, "updated")])
        clock.now += 200

        state = store.get("chan")
        assert state is not None
        assert state.entries[0].text() == "updated"

    def test_update_missing_channel_is_noop(self):
        store = ConversationStore(clock=FakeClock())
        store.update("chan", [])
        assert store.get("chan") is None

    def test_touch_extends_lifetime(self):
        clock = FakeClock()
        store = ConversationStore(timeout_seconds=300, clock=clock)
        store.set("chan", _state())

        clock.now += 250
        store.touch("chan")
        clock.now += 250

        assert store.get("chan") is not None

    def test_switch_provider_keeps_entries(self):
        store = ConversationStore(clock=FakeClock())
        store.set("chan", _state("openai", "keep me"))

        store.switch_provider("chan", "anthropic")

        state = store.get("chan")
        assert state.provider_id == "anthropic"
        assert state.entries[0].text() == "keep me"

    def test_switch_provider_twice_matches_once(self):
        clock = FakeClock()
        once = ConversationStore(clock=clock)
        twice = ConversationStore(clock=clock)
        for store in (once, twice):
            state = _state("openai", "keep me")
            state.continuation = Continuation("openai", "opaque")
            store.set("chan", state)

        once.switch_provider("chan", "gemini")
        twice.switch_provider("chan", "gemini")
        clock.now += 5
        twice.switch_provider("chan", "gemini")

        a, b = once.get("chan"), twice.get("chan")
        assert (a.provider_id, a.entries, a.continuation) == (b.provider_id, b.entries, b.continuation)

    def test_continuation_is_kept(self):
        store = ConversationStore(clock=FakeClock())
        state = _state()
        state.continuation = Continuation("grok", "opaque")

        store.set("chan", state)

        assert store.get("chan").continuation == Continuation("grok", "opaque")

    def test_prune_expired_counts_removed(self):
        clock = FakeClock()
        store = ConversationStore(timeout_seconds=300, clock=clock)
        store.set("old-1", _state())
        store.set("old-2", _state())
        clock.now += 301
        store.set("fresh", _state())

        removed = store.prune_expired()

        assert removed == 2
        assert len(store) == 1
        assert store.get("fresh") is not None
