"""Local sandbox provider.

Volumes are directories under a base directory and a sandbox is a set of
subprocesses whose working directory is the mounted volume. Meant for
development and tests; behaves like the hosted provider as far as the
gateway can tell (timeout kill, stdin delivery, volume listing).
"""

import asyncio
import contextlib
import os
import shlex
import shutil
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set

import aiofiles

from .base import BaseSandboxProvider, VolumeEntry
from ..exceptions import SandboxError, SandboxNotFoundError, VolumeFileNotFoundError
from ..utils.logger import get_app_logger


@dataclass
class _LocalSandbox:
    sandbox_id: str
    volume_path: Path
    mount_path: str
    envs: Dict[str, str]
    processes: Dict[int, asyncio.subprocess.Process] = field(default_factory=dict)
    timer: Optional[asyncio.TimerHandle] = None


class LocalSandboxProvider(BaseSandboxProvider):
    """Subprocess-backed sandboxes over directory volumes."""

    def __init__(self, volumes_dir: str = "./data/volumes"):
        self.volumes_dir = Path(volumes_dir).resolve()
        self.volumes_dir.mkdir(parents=True, exist_ok=True)
        self.logger = get_app_logger()
        self._sandboxes: Dict[str, _LocalSandbox] = {}
        self._expiry_tasks: Set[asyncio.Task] = set()

    # === Volumes ===
    def _volume_path(self, volume_id: str) -> Path:
        path = self.volumes_dir / volume_id
        if not volume_id or path.parent != self.volumes_dir or not path.is_dir():
            raise SandboxError(f"Volume not found: {volume_id}")
        return path

    def _resolve(self, volume_id: str, path: str) -> Path:
        """Map a volume path to the local filesystem, confined to the volume root."""
        root = self._volume_path(volume_id).resolve()
        target = (root / path.lstrip("/")).resolve()
        try:
            target.relative_to(root)
        except ValueError:
            raise VolumeFileNotFoundError(f"Path not found: {path}")
        return target

    async def create_volume(self, name: str) -> str:
        volume_id = f"vol-{uuid.uuid4().hex[:16]}"
        (self.volumes_dir / volume_id).mkdir(parents=True)
        self.logger.info(f"[LocalSandbox] created volume {volume_id} ({name})")
        return volume_id

    async def delete_volume(self, volume_id: str) -> None:
        shutil.rmtree(self._volume_path(volume_id))
        self.logger.info(f"[LocalSandbox] deleted volume {volume_id}")

    # === Sandboxes ===
    def _get_sandbox(self, sandbox_id: str) -> _LocalSandbox:
        sandbox = self._sandboxes.get(sandbox_id)
        if sandbox is None:
            raise SandboxNotFoundError(f"Sandbox not found: {sandbox_id}")
        return sandbox

    async def create_sandbox(
        self,
        template: str,
        volume_id: str,
        mount_path: str,
        envs: Dict[str, str],
        timeout: int,
    ) -> str:
        volume_path = self._volume_path(volume_id)
        sandbox_id = f"sbx-{uuid.uuid4().hex[:16]}"
        sandbox = _LocalSandbox(
            sandbox_id=sandbox_id,
            volume_path=volume_path,
            mount_path=mount_path,
            envs=dict(envs),
        )
        sandbox.timer = asyncio.get_running_loop().call_later(timeout, self._on_timeout, sandbox_id)
        self._sandboxes[sandbox_id] = sandbox
        self.logger.info(
            f"[LocalSandbox] created sandbox {sandbox_id} from {template} "
            f"with {volume_id} at {volume_path}, timeout={timeout}s"
        )
        return sandbox_id

    def _on_timeout(self, sandbox_id: str):
        self.logger.warning(f"[LocalSandbox] sandbox {sandbox_id} exceeded its timeout, killing")
        task = asyncio.get_running_loop().create_task(self._expire(sandbox_id))
        self._expiry_tasks.add(task)
        task.add_done_callback(self._expiry_tasks.discard)

    async def _expire(self, sandbox_id: str):
        with contextlib.suppress(SandboxNotFoundError):
            await self.kill_sandbox(sandbox_id)

    async def run_command(self, sandbox_id: str, cmd: str, cwd: str) -> int:
        sandbox = self._get_sandbox(sandbox_id)
        args = shlex.split(cmd)
        if not args:
            raise SandboxError("Empty command")

        # The volume directory stands in for both the mount point and cwd
        env = {**os.environ, **sandbox.envs, "SANDBOX_MOUNT_PATH": str(sandbox.volume_path)}
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=None,
                stderr=None,
                cwd=str(sandbox.volume_path),
                env=env,
            )
        except OSError as e:
            raise SandboxError(f"Failed to start '{cmd}': {e}") from e

        sandbox.processes[process.pid] = process
        self.logger.info(f"[LocalSandbox] started '{cmd}' in {sandbox_id} (pid={process.pid}, requested cwd={cwd})")
        return process.pid

    async def send_stdin(self, sandbox_id: str, pid: int, data: str) -> None:
        sandbox = self._get_sandbox(sandbox_id)
        process = sandbox.processes.get(pid)
        if process is None or process.returncode is not None or process.stdin is None:
            raise SandboxNotFoundError(f"Process {pid} is not running in {sandbox_id}")

        try:
            process.stdin.write(data.encode("utf-8"))
            await process.stdin.drain()
        except (BrokenPipeError, ConnectionResetError) as e:
            raise SandboxNotFoundError(f"Process {pid} in {sandbox_id} closed its stdin") from e

    async def kill_sandbox(self, sandbox_id: str) -> None:
        sandbox = self._sandboxes.pop(sandbox_id, None)
        if sandbox is None:
            raise SandboxNotFoundError(f"Sandbox not found: {sandbox_id}")

        if sandbox.timer:
            sandbox.timer.cancel()

        for pid, process in sandbox.processes.items():
            if process.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await process.wait()
            self.logger.debug(f"[LocalSandbox] process {pid} in {sandbox_id} exited with {process.returncode}")

        self.logger.info(f"[LocalSandbox] killed sandbox {sandbox_id}")

    def is_running(self, sandbox_id: str) -> bool:
        sandbox = self._sandboxes.get(sandbox_id)
        if sandbox is None:
            return False
        return any(p.returncode is None for p in sandbox.processes.values())

    # === Volume files ===
    async def list_files(self, volume_id: str, path: str) -> List[VolumeEntry]:
        root = self._volume_path(volume_id).resolve()
        target = self._resolve(volume_id, path)
        if not target.is_dir():
            raise VolumeFileNotFoundError(f"Directory not found: {path}")

        entries = []
        for item in sorted(target.iterdir()):
            is_dir = item.is_dir()
            entries.append(VolumeEntry(
                name=item.name,
                type="directory" if is_dir else "file",
                path="/" + item.relative_to(root).as_posix(),
                size=None if is_dir else item.stat().st_size,
            ))
        return entries

    async def download(self, volume_id: str, path: str) -> bytes:
        target = self._resolve(volume_id, path)
        if not target.is_file():
            raise VolumeFileNotFoundError(f"File not found: {path}")

        async with aiofiles.open(target, mode="rb") as f:
            return await f.read()

    async def close(self) -> None:
        for sandbox_id in list(self._sandboxes):
            await self.kill_sandbox(sandbox_id)
