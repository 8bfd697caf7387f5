"""Tests for session log models."""

import json

from agentdesk.models.session import SessionEntry, MessageContent


def _entry(content, type="assistant", **overrides):
    data = {
        "type": type,
        "uuid": "u1",
        "parentUuid": None,
        "sessionId": "s1",
        "timestamp": "2025-01-01T12:00:00Z",
        "message": {"role": type, "content": content},
    }
    data.update(overrides)
    return SessionEntry.model_validate(data)


class TestSessionEntry:
    """Tests for SessionEntry."""

    class TestParsing:
        """SUT: SessionEntry.model_validate"""

        def test_wire_aliases(self):
            entry = _entry("hi", parentUuid="u0", isSidechain=True)
            assert entry.parent_uuid == "u0"
            assert entry.session_id == "s1"
            assert entry.is_sidechain is True

        def test_extra_fields_ignored(self):
            entry = _entry("hi", cwd="/workspace", version="1.0.0")
            assert not hasattr(entry, "cwd")

        def test_serializes_with_aliases(self):
            data = _entry("hi", parentUuid="u0").model_dump(by_alias=True)
            assert data["parentUuid"] == "u0"
            assert data["sessionId"] == "s1"
            assert "parent_uuid" not in data

        def test_role_falls_back_to_type(self):
            entry = SessionEntry(type="user", uuid="u1", message={"content": "x"})
            assert entry.role == "user"

    class TestContents:
        """SUT: SessionEntry.contents"""

        def test_plain_string(self):
            assert _entry("hello").contents() == [MessageContent(type="text", content="hello")]

        def test_empty_string(self):
            assert _entry("").contents() == []

        def test_text_blocks(self):
            entry = _entry([{"type": "text", "text": "a"}, {"type": "text", "text": "b"}])
            assert [c.content for c in entry.contents()] == ["a", "b"]
            assert entry.text() == "a\nb"

        def test_tool_use(self):
            entry = _entry([{"type": "tool_use", "id": "t1", "name": "Bash", "input": {"command": "ls"}}])
            (block,) = entry.contents()
            assert block.type == "tool_use"
            assert block.tool_name == "Bash"
            assert json.loads(block.content) == {"command": "ls"}

        def test_tool_result(self):
            entry = _entry(
                [{"type": "tool_result", "tool_use_id": "t1", "content": "file.txt"}],
                type="user",
            )
            (block,) = entry.contents()
            assert block.type == "tool_result"
            assert block.tool_name == "t1"
            assert block.content == "file.txt"

        def test_tool_result_list_content(self):
            parts = [{"type": "text", "text": "out"}]
            entry = _entry([{"type": "tool_result", "tool_use_id": "t1", "content": parts}], type="user")
            assert json.loads(entry.contents()[0].content) == parts

        def test_unknown_block_kept_as_json(self):
            entry = _entry([{"type": "thinking", "thinking": "hmm"}])
            (block,) = entry.contents()
            assert block.type == "thinking"
            assert json.loads(block.content)["thinking"] == "hmm"

        def test_non_dict_blocks_skipped(self):
            assert _entry(["stray", {"type": "text", "text": "ok"}]).text() == "ok"
