"""Sandbox session gateway - conversation-level operations over a provider."""

import json
from dataclasses import dataclass
from typing import List, Optional

from ..config import Settings
from ..exceptions import ProvisioningError, SandboxError
from ..models.file import FileInfo
from ..sandbox.base import BaseSandboxProvider, VolumeEntry
from ..utils.logger import get_app_logger


@dataclass
class SessionHandle:
    """A running agent: the sandbox it lives in and its process id."""

    sandbox_id: str
    pid: int


class SandboxSessionGateway:
    """Creates, feeds and tears down sandboxed agent sessions."""

    def __init__(self, provider: BaseSandboxProvider, settings: Settings):
        self.provider = provider
        self.settings = settings
        self.logger = get_app_logger()

    # === Volumes ===
    async def create_volume(self, conversation_id: str) -> str:
        """
        Create the persistent volume backing a conversation.

        Raises:
            ProvisioningError: If the provider fails
        """
        name = f"{self.settings.volume_name_prefix}{conversation_id}"
        try:
            volume_id = await self.provider.create_volume(name)
        except SandboxError as e:
            raise ProvisioningError(f"Failed to create volume: {e}") from e

        self.logger.info(f"[Gateway] created volume {volume_id} for conversation {conversation_id}")
        return volume_id

    async def discard_volume(self, volume_id: str) -> None:
        """Delete a volume, logging instead of raising on failure."""
        try:
            await self.provider.delete_volume(volume_id)
        except SandboxError as e:
            self.logger.warning(f"[Gateway] failed to delete volume {volume_id}: {e}")

    # === Sessions ===
    def _session_envs(self, conversation_id: str, session_id: Optional[str]) -> dict:
        envs = {
            "CALLBACK_URL": self.settings.callback_url(conversation_id),
            "RESUME_SESSION_ID": session_id or "",
        }
        if self.settings.anthropic_api_key:
            envs["ANTHROPIC_API_KEY"] = self.settings.anthropic_api_key
        return envs

    async def start_session(
        self,
        volume_id: str,
        conversation_id: str,
        session_id: Optional[str] = None,
    ) -> SessionHandle:
        """
        Create a sandbox bound to the volume and start the agent in it.

        The agent reads messages from stdin and reports back through the
        conversation's status callback URL.

        Args:
            volume_id: Volume to mount
            conversation_id: Conversation the session belongs to
            session_id: Agent session to resume, if any

        Returns:
            Handle of the started agent

        Raises:
            ProvisioningError: If the sandbox or the agent could not be started
        """
        try:
            sandbox_id = await self.provider.create_sandbox(
                template=self.settings.sandbox_template,
                volume_id=volume_id,
                mount_path=self.settings.volume_mount_path,
                envs=self._session_envs(conversation_id, session_id),
                timeout=self.settings.sandbox_timeout,
            )
        except SandboxError as e:
            raise ProvisioningError(f"Failed to create sandbox: {e}") from e

        try:
            pid = await self.provider.run_command(
                sandbox_id,
                self.settings.agent_command,
                cwd=self.settings.agent_cwd,
            )
        except SandboxError as e:
            await self.terminate(sandbox_id)
            raise ProvisioningError(f"Failed to start agent: {e}") from e

        self.logger.info(
            f"[Gateway] started session in sandbox {sandbox_id} (pid={pid}) "
            f"for conversation {conversation_id}, resume={session_id or '-'}"
        )
        return SessionHandle(sandbox_id=sandbox_id, pid=pid)

    async def send_message(self, handle: SessionHandle, content: str) -> None:
        """
        Deliver one user message to the agent's stdin.

        Raises:
            SandboxError: If the message could not be written
        """
        payload = json.dumps({"type": "user_message", "content": content}, ensure_ascii=False)
        await self.provider.send_stdin(handle.sandbox_id, handle.pid, payload + "\n")
        self.logger.info(f"[Gateway] delivered message to sandbox {handle.sandbox_id}")

    async def terminate(self, sandbox_id: str) -> None:
        """Kill a sandbox. Failures (e.g. already dead) are logged only."""
        try:
            await self.provider.kill_sandbox(sandbox_id)
            self.logger.info(f"[Gateway] terminated sandbox {sandbox_id}")
        except SandboxError as e:
            self.logger.warning(f"[Gateway] failed to terminate sandbox {sandbox_id}: {e}")

    # === Files ===
    async def build_file_tree(
        self,
        volume_id: str,
        path: str = "/",
        max_depth: Optional[int] = None,
    ) -> List[FileInfo]:
        """
        Build a recursive file tree of a volume directory.

        Directories come first, then files, each sorted by name. A
        directory that cannot be listed contributes no children.
        """
        if max_depth is None:
            max_depth = self.settings.file_tree_max_depth

        async def build_node(current_path: str, depth: int) -> List[FileInfo]:
            if depth > max_depth:
                return []

            try:
                entries = await self.provider.list_files(volume_id, current_path)
            except SandboxError as e:
                self.logger.debug(f"[Gateway] cannot list {current_path} in {volume_id}: {e}")
                return []

            result = []
            for entry in entries:
                node = FileInfo(name=entry.name, type=entry.type, size=entry.size, path=entry.path)
                if entry.is_directory:
                    node.children = await build_node(entry.path, depth + 1)
                result.append(node)

            result.sort(key=lambda n: (n.type != "directory", n.name.lower()))
            return result

        return await build_node(path, 0)

    async def list_files(self, volume_id: str, path: str) -> List[VolumeEntry]:
        """Direct children of a volume directory; empty when it cannot be listed."""
        try:
            return await self.provider.list_files(volume_id, path)
        except SandboxError as e:
            self.logger.debug(f"[Gateway] cannot list {path} in {volume_id}: {e}")
            return []

    async def read_file(self, volume_id: str, path: str) -> bytes:
        """
        Read a file from a volume.

        Raises:
            VolumeFileNotFoundError: If the file does not exist
        """
        return await self.provider.download(volume_id, path)
