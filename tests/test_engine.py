"""Tests for the Maker public adapter."""

import pytest

from conftest import FakeClient, plan_reply

from maker import Attachment, Maker, SessionStatus
from maker.engine import EMPTY_REPLY
from maker.store import INTERRUPTED_MARKER, InMemorySessionStore


class TestRun:
    """Tests for Maker.run()."""

    @pytest.mark.asyncio
    async def test_run_persists_session(self, config):
        """A completed run is saved and reloads as-is."""
        store = InMemorySessionStore()
        engine = Maker(config, client=FakeClient(plans=[plan_reply("a", "b")]), store=store)
        session = await engine.run("Plan a 3-day trip")

        assert session.status == SessionStatus.DONE
        assert engine.load_sessions() == [session]

    @pytest.mark.asyncio
    async def test_config_snapshot(self, config):
        """Changing K mid-run does not affect the running session."""
        engine = Maker(config, client=FakeClient(plans=[plan_reply("a", "b")]))

        def bump_k(_snapshot):
            engine.config.voting_k = 4

        session = await engine.run("task", on_update=bump_k)
        assert [len(r.candidates) for r in session.completed_steps] == [2, 2]
        assert engine.config.voting_k == 4

    @pytest.mark.asyncio
    async def test_attachments_reach_model(self, config):
        """Attachments are sent to the model and only metadata is stored."""
        client = FakeClient(plans=[plan_reply("a")])
        engine = Maker(config, client=client)
        notes = Attachment(name="notes.txt", mime_type="text/plain", data="budget: 500 EUR")
        photo = Attachment(name="map.png", mime_type="image/png", data="iVBORw0KGgo=")
        session = await engine.run("task", attachments=[notes, photo])

        parts = client.calls[0]["messages"][1]["content"]
        assert any("budget: 500 EUR" in p.get("text", "") for p in parts)
        assert any(
            p.get("image_url", {}).get("url") == "data:image/png;base64,iVBORw0KGgo="
            for p in parts
        )
        assert [a.name for a in session.attachments] == ["notes.txt", "map.png"]
        assert "budget" not in session.to_json()

    def test_run_sync(self, config):
        """The synchronous wrapper returns the finished session."""
        engine = Maker(config, client=FakeClient())
        assert engine.run_sync("task").status == SessionStatus.DONE


class TestLoadSessions:
    """Tests for crash recovery through the engine."""

    @pytest.mark.asyncio
    async def test_zombie_is_stopped_on_load(self, config):
        """A session persisted mid-vote comes back stopped, not resumed."""
        store = InMemorySessionStore()
        engine = Maker(config, client=FakeClient(), store=store)
        session = await engine.run("task")
        session.status = SessionStatus.VOTING
        store.save(session)

        [loaded] = Maker(config, client=FakeClient(), store=store).load_sessions()
        assert loaded.status == SessionStatus.STOPPED
        assert loaded.content.endswith(INTERRUPTED_MARKER)

    def test_no_store(self, config):
        """Without a store there is nothing to load."""
        assert Maker(config, client=FakeClient()).load_sessions() == []

    @pytest.mark.asyncio
    async def test_delete(self, config):
        """Deleted sessions are gone from the store."""
        store = InMemorySessionStore()
        engine = Maker(config, client=FakeClient(), store=store)
        session = await engine.run("task")
        engine.delete_session(session.id)
        assert engine.load_sessions() == []


class TestChat:
    """Tests for Maker.chat()."""

    @pytest.mark.asyncio
    async def test_history_and_settings(self, config):
        """History roles are mapped and configured sampling is applied."""
        client = FakeClient(default_candidate="Hello!")
        engine = Maker(config, client=client)
        reply = await engine.chat(
            "and now?",
            history=[
                {"role": "user", "content": "hi"},
                {"role": "model", "content": "hey"},
            ],
        )

        assert reply.text == "Hello!"
        assert reply.usage.calls == 1
        call = client.calls[0]
        assert [m["role"] for m in call["messages"]] == ["system", "user", "assistant", "user"]
        assert call["messages"][0]["content"] == config.system_prompt
        assert call["sampling"] == {"temperature": config.temperature}
        assert call["tools_enabled"] is False

    @pytest.mark.asyncio
    async def test_empty_reply(self, config):
        """An empty completion is replaced with a notice."""
        engine = Maker(config, client=FakeClient(candidates=[""]))
        reply = await engine.chat("hi")
        assert reply.text == EMPTY_REPLY
