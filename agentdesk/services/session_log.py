"""Session log reading - the agent's JSONL log parsed into ordered entries."""

from typing import Dict, List, Optional

from pydantic import ValidationError

from ..exceptions import VolumeFileNotFoundError
from ..models.session import SessionEntry
from ..utils.jsonl_parser import parse_jsonl
from ..utils.logger import get_app_logger
from .session_gateway import SandboxSessionGateway

CONVERSATION_ENTRY_TYPES = ("user", "assistant")


def parse_session_log(text: str) -> List[SessionEntry]:
    """
    Parse a session log into entries, in document order.

    Only user/assistant records carrying a uuid and a message object are
    kept; everything else (summaries, queue operations, broken lines) is
    skipped.
    """
    logger = get_app_logger()
    entries = []
    for record in parse_jsonl(text):
        if record.get("type") not in CONVERSATION_ENTRY_TYPES:
            continue
        if not record.get("uuid") or not isinstance(record.get("message"), dict):
            continue
        try:
            entries.append(SessionEntry.model_validate(record))
        except ValidationError as e:
            logger.debug(f"Skipping malformed session entry {record.get('uuid')}: {e}")
    return entries


def order_entries(entries: List[SessionEntry]) -> List[SessionEntry]:
    """
    Linearise entries along their parent links.

    Roots (no parent, or a parent missing from the log) are visited in
    document order and each entry is followed depth-first by its
    children, also in document order. Branches and sidechains therefore
    appear after their parent in the order they were written. Entries
    not reachable from any root are appended in document order.
    """
    by_uuid: Dict[str, SessionEntry] = {}
    for entry in entries:
        by_uuid.setdefault(entry.uuid, entry)

    children: Dict[str, List[SessionEntry]] = {}
    roots = []
    for entry in entries:
        if entry.parent_uuid and entry.parent_uuid in by_uuid and entry.parent_uuid != entry.uuid:
            children.setdefault(entry.parent_uuid, []).append(entry)
        else:
            roots.append(entry)

    ordered: List[SessionEntry] = []
    visited = set()
    for root in roots:
        stack = [root]
        while stack:
            entry = stack.pop()
            if id(entry) in visited:
                continue
            visited.add(id(entry))
            ordered.append(entry)
            stack.extend(reversed(children.get(entry.uuid, [])))

    ordered.extend(e for e in entries if id(e) not in visited)
    return ordered


class SessionLogReader:
    """Reads a conversation's session log live from its volume."""

    def __init__(self, gateway: SandboxSessionGateway, log_dir: str):
        self.gateway = gateway
        self.log_dir = "/" + log_dir.strip("/")
        self.logger = get_app_logger()

    async def _resolve_log_path(self, volume_id: str, session_id: Optional[str]) -> Optional[str]:
        if session_id:
            return f"{self.log_dir}/{session_id}.jsonl"

        # Session id not reported yet: the agent has written at most one log
        files = await self.gateway.list_files(volume_id, self.log_dir)
        logs = sorted(
            (f for f in files if not f.is_directory and f.name.endswith(".jsonl")),
            key=lambda f: f.name,
        )
        return logs[0].path if logs else None

    async def read_entries(self, volume_id: str, session_id: Optional[str]) -> List[SessionEntry]:
        """
        Read, parse and order the session log.

        Returns:
            Ordered entries; empty when no log exists yet
        """
        path = await self._resolve_log_path(volume_id, session_id)
        if path is None:
            return []

        try:
            raw = await self.gateway.read_file(volume_id, path)
        except VolumeFileNotFoundError:
            return []

        return order_entries(parse_session_log(raw.decode("utf-8", errors="replace")))
