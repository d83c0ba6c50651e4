import threading

import pytest

from ai_terminal.config.plugin_config import CustomCommand, PluginConfig
from ai_terminal.domain.exceptions import DocumentIOError, SessionBusyError, UnknownProviderError
from ai_terminal.domain.models import GENERATING_TEXT, AttachmentRef, SessionState
from ai_terminal.providers.gateway import ProviderGateway
from ai_terminal.session.engine import ConversationSession, SessionConfig


class FakeGateway:
    def __init__(self, reply="answer", error=None):
        self.reply = reply
        self.error = error
        self.requests = []
        self.on_call = None

    def complete(self, req):
        self.requests.append(req)
        if self.on_call is not None:
            self.on_call(req)
        if self.error is not None:
            raise self.error
        return self.reply


def _session(store, gateway, plugin_cfg=None, **cfg):
    plugin_cfg = plugin_cfg or PluginConfig(openai_api_key="o-key", google_api_key="g-key")
    session_cfg = SessionConfig(provider="openai", model="gpt-4o", system_prompt="SYS", **cfg)
    return ConversationSession(store, gateway, config_loader=lambda: plugin_cfg, config=session_cfg)


def test_blank_input_is_ignored(memory_store):
    gw = FakeGateway()
    s = _session(memory_store(), gw)
    assert s.send("   \n ") is None
    assert s.history == ()
    assert gw.requests == []
    assert s.state is SessionState.IDLE


def test_successful_exchange(memory_store):
    gw = FakeGateway(reply="hello there")
    s = _session(memory_store(), gw)
    final = s.send("  hi  ")
    assert [t.role for t in s.history] == ["user", "assistant"]
    assert s.history[0].content == "hi"
    assert final.content == "hello there"
    assert final.meta["provider"] == "openai"
    assert final.meta["model_label"] == "GPT-4o"
    assert not any(t.pending for t in s.history)
    req = gw.requests[0]
    assert req.system_prompt == "SYS"
    assert req.api_key == "o-key"
    assert req.user_prompt == "Context:\n\n\nInstruction:\nhi"
    assert s.state is SessionState.IDLE


def test_failure_produces_exactly_one_status_turn(memory_store):
    from ai_terminal.domain.exceptions import ProviderError

    err = ProviderError(code="API_ERROR", message="OpenAI Error 500: boom", http_status=500, provider="openai")
    gw = FakeGateway(error=err)
    s = _session(memory_store(), gw)
    final = s.send("hi")
    assert [t.role for t in s.history] == ["user", "system-status"]
    assert final.content == "Error: OpenAI Error 500: boom"
    assert GENERATING_TEXT not in [t.content for t in s.history]
    assert len(gw.requests) == 1
    assert s.state is SessionState.IDLE


def test_unexpected_exception_becomes_status_turn(memory_store):
    gw = FakeGateway(error=RuntimeError("kaput"))
    s = _session(memory_store(), gw)
    final = s.send("hi")
    assert final.role == "system-status"
    assert final.content == "Error: OpenAI request failed: kaput"
    assert len(s.history) == 2


def test_send_while_awaiting_is_rejected(memory_store):
    gw = FakeGateway()
    s = _session(memory_store(), gw)
    seen = {}

    def reenter(req):
        seen["state"] = s.state
        with pytest.raises(SessionBusyError):
            s.send("second")
        seen["history_len"] = len(s.history)

    gw.on_call = reenter
    s.send("first")
    assert seen["state"] is SessionState.AWAITING_PROVIDER
    assert seen["history_len"] == 2  # user + placeholder
    assert [t.content for t in s.history] == ["first", "answer"]
    assert len(gw.requests) == 1


def test_end_to_end_command_with_dedup(memory_store, monkeypatch):
    store = memory_store({"F/A.md": "alpha body", "F/B.md": "beta body", "other.md": "x"})
    plugin_cfg = PluginConfig(
        google_api_key="g-key",
        custom_commands=[
            CustomCommand(
                name="summarize",
                trigger="/gemini",
                provider="gemini",
                system_prompt_template="Summarize crisply.",
            )
        ],
    )
    posts = []

    class Resp:
        status_code = 200
        text = ""

        def json(self):
            return {"candidates": [{"content": {"parts": [{"text": "summary"}]}}]}

    class Client:
        def __init__(self, *a, **kw):
            pass

        def __enter__(self):
            return self

        def __exit__(self, *a):
            return False

        def post(self, url, json=None, headers=None, **kw):
            posts.append({"url": url, "json": json, "headers": headers})
            return Resp()

    monkeypatch.setattr("httpx.Client", Client)

    s = _session(store, ProviderGateway(), plugin_cfg=plugin_cfg)
    s.attach("F/A.md")
    s.attach_folder("F")
    assert s.attached_paths() == ["F/A.md", "F/B.md"]

    final = s.send("/gemini summarize")

    assert len(posts) == 1
    assert posts[0]["url"].endswith("/models/gemini-2.0-flash:generateContent")
    text = posts[0]["json"]["contents"][0]["parts"][0]["text"]
    assert text.startswith("Summarize crisply.\n\n")
    assert text.count("=== NOTE: A ===") == 1
    assert text.count("=== NOTE: B ===") == 1
    assert "=== NOTE: other ===" not in text
    assert text.endswith("Instruction:\nsummarize")
    assert final.content == "summary"
    assert final.meta["command"] == "summarize"
    assert final.meta["provider"] == "gemini"
    # session defaults are untouched
    assert s.provider == "openai"
    assert s.model == "gpt-4o"


def test_exact_trigger_forwards_empty_instruction(memory_store):
    plugin_cfg = PluginConfig(
        anthropic_api_key="a-key",
        custom_commands=[CustomCommand(trigger="/claude", provider="anthropic")],
    )
    gw = FakeGateway()
    s = _session(memory_store(), gw, plugin_cfg=plugin_cfg)
    s.send("/claude")
    req = gw.requests[0]
    assert req.provider_id == "anthropic"
    assert req.model_id == "claude-3-5-sonnet"
    assert req.system_prompt == "SYS"
    assert req.user_prompt.endswith("Instruction:\n")


def test_missing_key_reports_without_network(memory_store, monkeypatch):
    class Client:
        def __init__(self, *a, **kw):
            raise AssertionError("network must not be used")

    monkeypatch.setattr("httpx.Client", Client)
    s = _session(memory_store(), ProviderGateway(), plugin_cfg=PluginConfig())
    final = s.send("hi")
    assert final.content == "Error: OpenAI API key is missing"
    assert len(s.history) == 2


def test_document_read_error_ends_exchange(memory_store):
    store = memory_store({"a.md": "alpha"})
    store.fail_read.add("a.md")
    gw = FakeGateway()
    s = _session(store, gw)
    s.attach("a.md")
    final = s.send("go")
    assert gw.requests == []
    assert [t.role for t in s.history] == ["user", "system-status"]
    assert final.content == "Error: cannot read a.md"
    assert s.state is SessionState.IDLE


def test_deleted_document_is_reported(memory_store):
    store = memory_store({"a.md": "alpha"})
    gw = FakeGateway()
    s = _session(store, gw)
    s.attach("a.md")
    del store.docs["a.md"]
    final = s.send("go")
    assert final.role == "system-status"
    assert final.meta["error_code"] == "DOCUMENT_READ_ERROR"
    assert gw.requests == []


def test_documents_are_reread_at_send_time(memory_store):
    store = memory_store({"a.md": "version one"})
    gw = FakeGateway()
    s = _session(store, gw)
    s.attach("a.md")
    s.send("first")
    store.docs["a.md"] = "version two"
    s.send("second")
    assert "version one" in gw.requests[0].user_prompt
    assert "version two" in gw.requests[1].user_prompt
    assert "version one" not in gw.requests[1].user_prompt.split("Conversation so far")[0]


def test_long_document_is_truncated(memory_store):
    store = memory_store({"big.md": "x" * 10005})
    gw = FakeGateway()
    s = _session(store, gw)
    s.attach("big.md")
    s.send("go")
    prompt = gw.requests[0].user_prompt
    assert "x" * 10000 + "...\n" in prompt
    assert "x" * 10001 not in prompt


def test_history_is_forwarded_when_enabled(memory_store):
    gw = FakeGateway(reply="first answer")
    s = _session(memory_store(), gw, max_history_turns=20)
    s.send("first question")
    s.send("second question")
    prompt = gw.requests[1].user_prompt
    assert "Conversation so far:\nUser: first question\nAssistant: first answer" in prompt


def test_auto_attach_is_idempotent(memory_store):
    store = memory_store({"F/a.md": "a", "b.md": "b"})
    s = _session(store, FakeGateway(), auto_attach_active=True)
    ref = AttachmentRef.from_path("b.md")
    assert s.on_active_document_changed(ref) is True
    assert s.on_active_document_changed(ref) is False
    s.attach_folder("F")
    store.active = AttachmentRef.from_path("F/a.md")
    assert s.on_active_document_changed() is False
    assert s.attached_paths() == ["b.md", "F/a.md"]


def test_auto_attach_disabled(memory_store):
    s = _session(memory_store(), FakeGateway())
    assert s.on_active_document_changed(AttachmentRef.from_path("a.md")) is False
    assert s.attachments == ()


def test_attach_same_folder_twice(memory_store):
    store = memory_store({"F/a.md": "a", "F/sub/b.md": "b", "G/c.md": "c"})
    s = _session(store, FakeGateway())
    g1 = s.attach_folder("F")
    g2 = s.attach_folder("F/")
    assert g1.id == g2.id
    assert g1.paths == ("F/a.md", "F/sub/b.md")


def test_detach_group_keeps_history(memory_store):
    store = memory_store({"F/a.md": "a"})
    s = _session(store, FakeGateway())
    group = s.attach_folder("F")
    s.send("hi")
    assert s.detach_group(group.id) is True
    assert s.attached_paths() == []
    assert len(s.history) == 2


def test_picker_replaces_selection(memory_store):
    class Picker:
        def __init__(self):
            self.seen = None

        def request_document_selection(self, current):
            self.seen = [r.path for r in current]
            return [AttachmentRef.from_path("c.md")]

    s = _session(memory_store(), FakeGateway())
    s.attach_many(["a.md", "b.md"])
    picker = Picker()
    s.attach_from_picker(picker)
    assert picker.seen == ["a.md", "b.md"]
    assert [r.path for r in s.attachments] == ["c.md"]


def test_events_follow_state_machine(memory_store):
    s = _session(memory_store(), FakeGateway())
    states = []
    kinds = []

    def listener(event):
        kinds.append(event.kind)
        if event.kind == "state_changed":
            states.append(event.snapshot.state)

    def broken(event):
        raise RuntimeError("listener bug")

    s.subscribe(broken)
    unsubscribe = s.subscribe(listener)
    s.send("hi")
    assert states == [
        SessionState.COMPOSING,
        SessionState.AWAITING_PROVIDER,
        SessionState.RESOLVED,
        SessionState.IDLE,
    ]
    assert kinds.count("turn_appended") == 2
    assert kinds.count("turn_replaced") == 1
    unsubscribe()
    s.send("again")
    assert len(states) == 4


def test_select_provider(memory_store):
    s = _session(memory_store(), FakeGateway())
    label = s.select_provider("Anthropic")
    assert label == "Claude 3.5 Sonnet"
    assert (s.provider, s.model) == ("anthropic", "claude-3-5-sonnet")
    with pytest.raises(UnknownProviderError):
        s.select_provider("mistral")
    assert s.provider == "anthropic"


def test_create_document_from_response(memory_store):
    store = memory_store({"Weekly Plan.md": "old"})
    s = _session(store, FakeGateway(reply="# Weekly Plan\n\n- item"))
    turn = s.send("plan my week")
    path = s.create_document_from_response(turn.id, folder="Notes")
    assert path == "Notes/Weekly Plan.md"
    assert "Notes" in store.folders
    content = store.docs[path]
    assert content.startswith("---\n")
    assert "provider: openai" in content
    assert content.endswith("# Weekly Plan\n\n- item")


def test_create_document_failure_leaves_history(memory_store):
    store = memory_store()
    store.fail_create = True
    s = _session(store, FakeGateway(reply="Some answer"))
    turn = s.send("q")
    before = s.history
    with pytest.raises(DocumentIOError) as ei:
        s.create_document_from_response(turn.id)
    assert ei.value.code == "DOCUMENT_WRITE_ERROR"
    assert s.history == before


def test_history_not_in_prompt_by_default(memory_store):
    gw = FakeGateway(reply="first answer")
    s = ConversationSession(
        memory_store(),
        gw,
        config_loader=lambda: PluginConfig(google_api_key="g-key"),
        config=SessionConfig.from_settings("gemini"),
    )
    s.send("one")
    s.send("two")
    prompt = gw.requests[1].user_prompt
    assert prompt == "Context:\n\n\nInstruction:\ntwo"
    assert "first answer" not in prompt


def test_send_from_other_thread_is_rejected(memory_store):
    gw = FakeGateway()
    s = _session(memory_store(), gw)
    entered = threading.Event()
    release = threading.Event()

    def block(req):
        entered.set()
        release.wait(5)

    gw.on_call = block
    worker = threading.Thread(target=s.send, args=("first",))
    worker.start()
    try:
        assert entered.wait(5)
        with pytest.raises(SessionBusyError):
            s.send("second")
    finally:
        release.set()
        worker.join(5)
    assert len(gw.requests) == 1
    assert [t.content for t in s.history] == ["first", "answer"]
    assert s.state is SessionState.IDLE
