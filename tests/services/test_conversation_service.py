"""Tests for ConversationService."""

import asyncio
import httpx
import pytest

from agentdesk.exceptions import ConversationNotFoundError, ProvisioningError
from agentdesk.sandbox.remote import HttpSandboxProvider
from agentdesk.services import ConversationService, SandboxSessionGateway, SessionLogReader
from agentdesk.services.conversation_service import DEFAULT_AGENT_ERROR
from fakes import LOG_DIR, FakeProviderApi, session_line


async def _completed_conversation(service, session_id="s1"):
    """A conversation whose first turn has finished."""
    conv = await service.submit("first")
    await service.apply_status_callback(conv.id, "completed", session_id=session_id)
    return service.get_conversation(conv.id)


class TestConversationService:
    """Tests for ConversationService."""

    class TestSubmitNew:
        """SUT: ConversationService.submit without a conversation id"""

        async def test_starts_running(self, service, provider, repo):
            conv = await service.submit("Hello")

            assert conv.status == "running"
            stored = repo.get(conv.id)
            assert stored.status == "running"
            assert stored.volume_id in provider.volumes
            assert stored.sandbox_id == conv.sandbox_id
            assert stored.agent_pid == provider.sandboxes[conv.sandbox_id]["pid"]
            assert stored.session_id is None
            assert stored.error_message is None

        async def test_volume_named_after_conversation(self, service, provider):
            conv = await service.submit("Hello")
            assert provider.volume_names[conv.volume_id] == f"hackathon-{conv.id}"

        async def test_delivers_exactly_one_message(self, service, provider):
            conv = await service.submit("Hello")
            assert provider.stdin_of(conv.sandbox_id) == [{"type": "user_message", "content": "Hello"}]

        async def test_fresh_session(self, service, provider):
            conv = await service.submit("Hello")
            envs = provider.sandboxes[conv.sandbox_id]["envs"]
            assert envs["RESUME_SESSION_ID"] == ""
            assert envs["CALLBACK_URL"].endswith(f"/api/v1/conversations/{conv.id}/status")

        async def test_distinct_ids(self, service):
            a = await service.submit("one")
            b = await service.submit("two")
            assert a.id != b.id
            assert a.volume_id != b.volume_id

        async def test_volume_failure_leaves_nothing(self, service, provider, repo):
            provider.fail_on.add("create_volume")
            with pytest.raises(ProvisioningError):
                await service.submit("Hello")
            assert repo.list_all() == []

        async def test_sandbox_failure_leaves_nothing(self, service, provider, repo):
            """A new conversation that cannot start is rolled back entirely."""
            provider.fail_on.add("create_sandbox")
            with pytest.raises(ProvisioningError):
                await service.submit("Hello")
            assert repo.list_all() == []
            assert provider.volumes == {}
            assert len(provider.deleted_volumes) == 1

        async def test_delivery_failure_leaves_nothing(self, service, provider, repo):
            provider.fail_on.add("send_stdin")
            with pytest.raises(ProvisioningError):
                await service.submit("Hello")
            assert repo.list_all() == []
            assert provider.alive() == []

        async def test_unexpected_error_leaves_nothing(self, service, provider, repo, monkeypatch):
            async def broken(*args, **kwargs):
                raise RuntimeError("provider bug")

            monkeypatch.setattr(provider, "create_sandbox", broken)

            with pytest.raises(ProvisioningError) as exc_info:
                await service.submit("Hello")
            assert isinstance(exc_info.value.__cause__, RuntimeError)
            assert repo.list_all() == []
            assert provider.volumes == {}

        async def test_malformed_provider_reply_leaves_nothing(self, repo, test_settings):
            """A hosted provider answering with an HTML page rolls the conversation back."""
            api = FakeProviderApi()
            api.route("POST", "/v1/volumes", json_body={"volumeId": "vol-1"})
            api.route("POST", "/v1/sandboxes", content=b"<html>Bad gateway</html>")
            api.route("DELETE", "/v1/volumes/vol-1", status=204)
            remote = HttpSandboxProvider(
                "https://sandbox.test/v1", "key", transport=httpx.MockTransport(api.handler),
            )
            gateway = SandboxSessionGateway(remote, test_settings)
            service = ConversationService(
                repo=repo,
                gateway=gateway,
                session_log=SessionLogReader(gateway, test_settings.session_log_dir),
            )

            with pytest.raises(ProvisioningError):
                await service.submit("Hello")
            await remote.close()

            assert repo.list_all() == []
            assert ("DELETE", "/v1/volumes/vol-1") in [(r.method, r.url.path) for r in api.requests]

    class TestSubmitContinue:
        """SUT: ConversationService.submit with a conversation id"""

        async def test_unknown_conversation(self, service, provider):
            with pytest.raises(ConversationNotFoundError):
                await service.submit("Hello", "missing")
            assert provider.sandboxes == {}

        async def test_resumes_session_on_same_volume(self, service, provider):
            conv = await _completed_conversation(service, "s1")

            resumed = await service.submit("again", conv.id)

            assert resumed.status == "running"
            assert resumed.volume_id == conv.volume_id
            sandbox = provider.sandboxes[resumed.sandbox_id]
            assert sandbox["volume_id"] == conv.volume_id
            assert sandbox["envs"]["RESUME_SESSION_ID"] == "s1"
            assert provider.stdin_of(resumed.sandbox_id) == [{"type": "user_message", "content": "again"}]

        async def test_after_error_clears_message(self, service, repo):
            conv = await service.submit("first")
            await service.apply_status_callback(conv.id, "error", error_message="boom")

            await service.submit("retry", conv.id)
            stored = repo.get(conv.id)
            assert stored.status == "running"
            assert stored.error_message is None

        async def test_running_delivers_to_live_session(self, service, provider):
            """At most one session per conversation: a running agent gets the message on stdin."""
            conv = await service.submit("first")

            again = await service.submit("second", conv.id)

            assert again.sandbox_id == conv.sandbox_id
            assert len(provider.sandboxes) == 1
            assert [m["content"] for m in provider.stdin_of(conv.sandbox_id)] == ["first", "second"]

        async def test_running_with_dead_session_is_replaced(self, service, provider, repo):
            conv = await service.submit("first")
            provider.sandboxes[conv.sandbox_id]["alive"] = False

            again = await service.submit("second", conv.id)

            assert again.sandbox_id != conv.sandbox_id
            assert provider.alive() == [again.sandbox_id]
            assert repo.get(conv.id).sandbox_id == again.sandbox_id

        async def test_failure_restores_previous_status(self, service, provider, repo):
            conv = await _completed_conversation(service, "s1")
            provider.fail_on.add("create_sandbox")

            with pytest.raises(ProvisioningError):
                await service.submit("again", conv.id)

            stored = repo.get(conv.id)
            assert stored.status == "completed"
            assert stored.session_id == "s1"
            assert stored.sandbox_id is None
            assert stored.volume_id in provider.volumes

        async def test_failure_while_running_becomes_error(self, service, provider, repo):
            conv = await service.submit("first")
            provider.sandboxes[conv.sandbox_id]["alive"] = False
            provider.fail_on.add("create_sandbox")

            with pytest.raises(ProvisioningError):
                await service.submit("second", conv.id)

            stored = repo.get(conv.id)
            assert stored.status == "error"
            assert stored.error_message
            assert stored.sandbox_id is None
            assert stored.agent_pid is None

        async def test_unexpected_error_restores_previous_status(self, service, provider, repo, monkeypatch):
            conv = await _completed_conversation(service, "s1")

            async def broken(*args, **kwargs):
                raise RuntimeError("provider bug")

            monkeypatch.setattr(provider, "create_sandbox", broken)

            with pytest.raises(ProvisioningError):
                await service.submit("again", conv.id)

            stored = repo.get(conv.id)
            assert stored.status == "completed"
            assert stored.session_id == "s1"
            assert stored.sandbox_id is None

        async def test_concurrent_submits_start_one_session(self, service, provider):
            conv = await _completed_conversation(service)

            await asyncio.gather(
                service.submit("a", conv.id),
                service.submit("b", conv.id),
            )

            alive = provider.alive()
            assert len(alive) == 1
            assert sorted(m["content"] for m in provider.stdin_of(alive[0])) == ["a", "b"]
            assert service._locks == {}

        async def test_locks_released_after_each_turn(self, service):
            for _ in range(5):
                conv = await _completed_conversation(service)
                await service.submit("again", conv.id)
            assert service._locks == {}

    class TestStatusCallback:
        """SUT: ConversationService.apply_status_callback"""

        async def test_completed(self, service, provider, repo):
            conv = await service.submit("Hello")

            await service.apply_status_callback(conv.id, "completed", session_id="s1")

            stored = repo.get(conv.id)
            assert stored.status == "completed"
            assert stored.session_id == "s1"
            assert stored.sandbox_id is None
            assert stored.agent_pid is None
            assert stored.error_message is None
            assert provider.alive() == []

        async def test_error_with_message(self, service, repo):
            conv = await service.submit("Hello")
            await service.apply_status_callback(conv.id, "error", error_message="API key invalid")
            stored = repo.get(conv.id)
            assert stored.status == "error"
            assert stored.error_message == "API key invalid"

        async def test_error_without_message(self, service, repo):
            conv = await service.submit("Hello")
            await service.apply_status_callback(conv.id, "error")
            assert repo.get(conv.id).error_message == DEFAULT_AGENT_ERROR

        async def test_completed_drops_error_message(self, service, repo):
            conv = await service.submit("Hello")
            await service.apply_status_callback(conv.id, "completed", error_message="ignored")
            assert repo.get(conv.id).error_message is None

        async def test_missing_session_id_keeps_known_one(self, service, repo):
            conv = await _completed_conversation(service, "s1")
            await service.submit("again", conv.id)

            await service.apply_status_callback(conv.id, "error", error_message="x")
            assert repo.get(conv.id).session_id == "s1"

        async def test_last_write_wins(self, service, repo):
            conv = await service.submit("Hello")
            await service.apply_status_callback(conv.id, "completed", session_id="s1")
            await service.apply_status_callback(conv.id, "error", error_message="late", session_id="s2")

            stored = repo.get(conv.id)
            assert stored.status == "error"
            assert stored.error_message == "late"
            assert stored.session_id == "s2"

        async def test_cleanup_failure_ignored(self, service, provider, repo):
            conv = await service.submit("Hello")
            provider.fail_on.add("kill_sandbox")

            await service.apply_status_callback(conv.id, "completed", session_id="s1")
            assert repo.get(conv.id).status == "completed"

        async def test_unknown_conversation(self, service):
            with pytest.raises(ConversationNotFoundError):
                await service.apply_status_callback("missing", "completed")

    class TestGetState:
        """SUT: ConversationService.get_state"""

        async def test_reads_live_log(self, service, provider):
            conv = await service.submit("Hello")
            provider.write_file(conv.volume_id, f"{LOG_DIR}/s1.jsonl", "\n".join([
                session_line("u1", "user", content="Hello"),
                session_line("a1", "assistant", parent="u1", content=[{"type": "text", "text": "Hi!"}]),
            ]))

            record, messages = await service.get_state(conv.id)
            assert record.status == "running"
            assert [m.uuid for m in messages] == ["u1", "a1"]

        async def test_no_log_yet(self, service):
            conv = await service.submit("Hello")
            _, messages = await service.get_state(conv.id)
            assert messages == []

        async def test_unknown_conversation(self, service):
            with pytest.raises(ConversationNotFoundError):
                await service.get_state("missing")

    class TestFiles:
        """SUT: ConversationService.file_tree / read_file"""

        async def test_file_tree(self, service, provider):
            conv = await service.submit("Hello")
            provider.write_file(conv.volume_id, "/data/out.txt", "x")
            tree = await service.file_tree(conv.id)
            assert [n.name for n in tree] == ["data"]

        async def test_read_file_normalises_path(self, service, provider):
            conv = await service.submit("Hello")
            provider.write_file(conv.volume_id, "/data/out.txt", "x")
            assert await service.read_file(conv.id, "data/out.txt") == b"x"
