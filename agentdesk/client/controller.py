"""Client lifecycle controller.

Owns the client-side view of one conversation and moves it through

    idle ──submit──► running ──poll observes terminal──► completed | error

All state lives in a single ``ClientState`` and is only changed by the
transitions below (submit started/accepted/failed, poll applied), which
all run on the event loop thread.

Displayed messages are the server-confirmed session log followed by the
locally pending (optimistic) user messages in submission order. Pending
messages are dropped once a poll reports a terminal status: the agent
consumes its inputs in order, so by then they are part of the log.
"""

import asyncio
import contextlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Set

import httpx

from ..exceptions import ConversationApiError
from ..models.conversation import ConversationStateResponse, TERMINAL_STATUSES
from ..models.session import SessionEntry
from ..utils.logger import get_app_logger
from .api import ConversationApiClient

POLL_INTERVAL = 2.0


@dataclass
class PendingMessage:
    """A submitted user message not yet seen in the server log."""

    id: str
    content: str
    timestamp: str


@dataclass
class ClientState:
    """Everything the UI renders for one conversation."""

    conversation_id: Optional[str] = None
    status: str = "idle"
    server_messages: List[SessionEntry] = field(default_factory=list)
    pending_messages: List[PendingMessage] = field(default_factory=list)
    error_message: Optional[str] = None
    is_submitting: bool = False
    refresh_count: int = 0

    @property
    def is_loading(self) -> bool:
        return self.status == "running" or self.is_submitting

    @property
    def can_submit(self) -> bool:
        return self.status != "running" and not self.is_submitting


class ConversationController:
    """Optimistic submit + interval polling against the conversation API."""

    def __init__(
        self,
        api: ConversationApiClient,
        poll_interval: float = POLL_INTERVAL,
        on_change: Optional[Callable[[ClientState], None]] = None,
    ):
        """
        Args:
            api: Conversation API client
            poll_interval: Seconds between poll ticks while running
            on_change: Called with the state after every transition
        """
        self.api = api
        self.poll_interval = poll_interval
        self.on_change = on_change
        self.state = ClientState()
        self.logger = get_app_logger()

        self._poll_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        # Every poll request gets a tick number; responses for ticks at or
        # below _last_applied_tick are stale and dropped
        self._tick = 0
        self._last_applied_tick = 0
        self._closed = False

    # === View ===
    def displayed_messages(self) -> List[SessionEntry]:
        """Server-confirmed entries followed by pending ones."""
        server = self.state.server_messages
        parent_uuid = server[-1].uuid if server else None
        pending = [
            SessionEntry(
                type="user",
                uuid=p.id,
                parent_uuid=parent_uuid,
                session_id="",
                timestamp=p.timestamp,
                is_sidechain=False,
                message={"role": "user", "content": p.content},
            )
            for p in self.state.pending_messages
        ]
        return list(server) + pending

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    # === Transitions ===
    def _notify(self):
        if self.on_change is not None:
            self.on_change(self.state)

    def _apply_poll(self, data: ConversationStateResponse):
        self.state.server_messages = list(data.messages)
        if data.status in TERMINAL_STATUSES:
            self.state.pending_messages = []
        self.state.status = data.status
        self.state.error_message = data.error_message
        self.state.refresh_count += 1
        self._sync_polling()
        self._notify()

    async def submit(self, content: str) -> bool:
        """
        Submit a user message.

        The message shows up as pending immediately. On failure exactly
        that pending message is removed and the error text is kept in
        ``state.error_message``.

        Returns:
            True if the server accepted the message
        """
        pending = PendingMessage(
            id=f"pending-{uuid.uuid4().hex}",
            content=content,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self.state.is_submitting = True
        self.state.error_message = None
        self.state.pending_messages.append(pending)
        self._notify()

        try:
            result = await self.api.submit(content, self.state.conversation_id)
        except (ConversationApiError, httpx.HTTPError) as e:
            self.state.pending_messages = [m for m in self.state.pending_messages if m.id != pending.id]
            self.state.error_message = str(e) or "Unknown error"
            return False
        else:
            self.state.conversation_id = result.conversation_id
            self.state.status = "running"
            # Polls issued before the server accepted this message are stale
            self._last_applied_tick = self._tick
            return True
        finally:
            self.state.is_submitting = False
            self._sync_polling()
            self._notify()

    async def attach(self, conversation_id: str) -> None:
        """
        Load an existing conversation and poll it if it is running.

        Raises:
            ConversationApiError: If the conversation cannot be fetched
        """
        self._tick += 1
        tick = self._tick
        data = await self.api.get_conversation(conversation_id)
        self.state.conversation_id = conversation_id
        if tick > self._last_applied_tick:
            self._last_applied_tick = tick
            self._apply_poll(data)

    # === Polling ===
    def _sync_polling(self):
        """Run the poll loop exactly while the conversation is running."""
        should_poll = (
            not self._closed
            and self.state.conversation_id is not None
            and self.state.status == "running"
        )
        if should_poll and not self.is_polling:
            self._poll_task = asyncio.create_task(self._poll_loop())
        elif not should_poll and self.is_polling:
            self._poll_task.cancel()
            self._poll_task = None

    async def _poll_loop(self):
        # Interval ticks: a tick never waits for the previous request
        while True:
            await asyncio.sleep(self.poll_interval)
            if self.state.status != "running" or self.state.conversation_id is None:
                return
            self._tick += 1
            task = asyncio.create_task(self._poll_once(self.state.conversation_id, self._tick))
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _poll_once(self, conversation_id: str, tick: int):
        try:
            data = await self.api.get_conversation(conversation_id)
        except (ConversationApiError, httpx.HTTPError) as e:
            self.logger.warning(f"Polling error: {e}")
            return

        if self._closed or conversation_id != self.state.conversation_id:
            return
        if tick <= self._last_applied_tick:
            self.logger.debug(f"Dropping stale poll response #{tick}")
            return

        self._last_applied_tick = tick
        self._apply_poll(data)

    async def close(self):
        """Stop future poll ticks and wait for requests already in flight."""
        self._closed = True
        if self._poll_task is not None:
            self._poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._poll_task
            self._poll_task = None
        if self._inflight:
            await asyncio.gather(*list(self._inflight))
