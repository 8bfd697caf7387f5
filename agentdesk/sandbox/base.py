"""Sandbox provider abstract base class.

A provider is the only component that talks to the compute/storage
backend. It knows nothing about conversations or the database; callers
(the session gateway) own that mapping.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional


@dataclass
class VolumeEntry:
    """A file or directory inside a volume."""

    name: str
    type: str  # "file" | "directory"
    path: str
    size: Optional[int] = None

    @property
    def is_directory(self) -> bool:
        return self.type == "directory"


class BaseSandboxProvider(ABC):
    """Sandbox/volume provider interface."""

    # === Volumes ===
    @abstractmethod
    async def create_volume(self, name: str) -> str:
        """
        Create a persistent volume.

        Args:
            name: Human readable volume name

        Returns:
            Provider volume ID
        """
        pass

    @abstractmethod
    async def delete_volume(self, volume_id: str) -> None:
        """Delete a volume and everything in it."""
        pass

    # === Sandboxes ===
    @abstractmethod
    async def create_sandbox(
        self,
        template: str,
        volume_id: str,
        mount_path: str,
        envs: Dict[str, str],
        timeout: int,
    ) -> str:
        """
        Create a sandbox from a template with a volume mounted.

        Args:
            template: Template name
            volume_id: Volume to mount
            mount_path: Mount point inside the sandbox
            envs: Environment variables for processes in the sandbox
            timeout: Wall-clock budget in seconds, enforced by the provider

        Returns:
            Provider sandbox ID
        """
        pass

    @abstractmethod
    async def run_command(self, sandbox_id: str, cmd: str, cwd: str) -> int:
        """
        Start a background command with stdin kept open.

        Returns:
            Process ID inside the sandbox
        """
        pass

    @abstractmethod
    async def send_stdin(self, sandbox_id: str, pid: int, data: str) -> None:
        """
        Write data to a running command's stdin.

        Raises:
            SandboxNotFoundError: If the sandbox or process is gone
        """
        pass

    @abstractmethod
    async def kill_sandbox(self, sandbox_id: str) -> None:
        """
        Destroy a sandbox.

        Raises:
            SandboxNotFoundError: If the sandbox does not exist (anymore)
        """
        pass

    # === Volume files ===
    @abstractmethod
    async def list_files(self, volume_id: str, path: str) -> List[VolumeEntry]:
        """
        List the direct children of a volume directory.

        Raises:
            VolumeFileNotFoundError: If the directory does not exist
        """
        pass

    @abstractmethod
    async def download(self, volume_id: str, path: str) -> bytes:
        """
        Read a file from a volume.

        Raises:
            VolumeFileNotFoundError: If the file does not exist
        """
        pass

    async def close(self) -> None:
        """Release provider resources."""
        pass
