"""Sandboxed Python execution tool.

Each call runs the submitted code in a throwaway container:

- no network (``network_mode="none"``)
- a read-only root filesystem; the only host path mounted is a fresh
  temporary directory holding the script, mounted read-only at /workspace
- a small tmpfs at /tmp for scratch files
- an unprivileged user, all capabilities dropped, no privilege escalation
- memory, process-count and CPU limits
- a hard wall-clock timeout after which the container is killed and removed

An optional runtime (``runsc`` for gVisor) adds a user-space kernel on top.
When no container engine is reachable the tool fails instead of running the
code on the host. Only stdout, stderr and the exit code come back.
"""

import asyncio
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Any

import docker
from docker.errors import DockerException, ImageNotFound

from converge.errors import ExecutionTimeout, ToolRuntimeFailure
from converge.tools.base import ToolExecutor, ToolParameter, ToolSpec

logger = logging.getLogger(__name__)

CODE_EXECUTION_SPEC = ToolSpec(
    name="code_execution",
    description=(
        "Run a Python 3 snippet in an isolated container and return its stdout and stderr. "
        "Only the standard library is available. There is no network access, the "
        "filesystem is read-only and /tmp is the only writable scratch space. "
        "Print anything you want to see."
    ),
    parameters=(ToolParameter(name="code", type="string", description="Python source to run"),),
)

DEFAULT_IMAGE = "python:3.12-slim"
WORKSPACE = "/workspace"
SANDBOX_USER = "65534:65534"  # nobody
TMPFS_OPTIONS = "rw,noexec,nosuid,size=16m"


def _decode(data: bytes, limit: int) -> tuple[str, bool]:
    truncated = len(data) > limit
    return data[:limit].decode("utf-8", errors="replace"), truncated


class CodeExecutor(ToolExecutor):
    """Executor for the ``code_execution`` tool."""

    spec = CODE_EXECUTION_SPEC

    def __init__(
        self,
        timeout: float = 10.0,
        max_output_bytes: int = 65536,
        memory_limit_mb: int = 256,
        image: str = DEFAULT_IMAGE,
        runtime: str | None = None,
        pids_limit: int = 64,
        cpu_cores: float = 1.0,
        client: Any = None,
    ):
        """Initialize the code executor.

        Args:
            timeout: Wall-clock limit in seconds
            max_output_bytes: Cap on captured stdout and stderr (each)
            memory_limit_mb: Container memory limit, swap included
            image: Container image providing the interpreter
            runtime: Container runtime, e.g. "runsc" for gVisor (engine default if None)
            pids_limit: Maximum number of processes inside the container
            cpu_cores: CPU share for the container
            client: Docker client (connects to the local engine on first use if None)
        """
        self.timeout = timeout
        self.max_output_bytes = max_output_bytes
        self.memory_limit_mb = memory_limit_mb
        self.image = image
        self.runtime = runtime
        self.pids_limit = pids_limit
        self.cpu_cores = cpu_cores
        self._client = client

    def _get_client(self) -> Any:
        if self._client is None:
            try:
                self._client = docker.from_env()
            except DockerException as e:
                logger.error("Container engine unavailable: %s", e)
                raise ToolRuntimeFailure(
                    "Code execution is unavailable: no container engine is reachable"
                ) from e
            logger.info("Connected to container engine for code execution")
        return self._client

    def container_config(self, workspace: str) -> dict[str, Any]:
        """Container creation arguments for one run with ``workspace`` mounted."""
        memory = f"{self.memory_limit_mb}m"
        config: dict[str, Any] = {
            "image": self.image,
            "command": ["python", "-I", "-S", f"{WORKSPACE}/main.py"],
            "network_mode": "none",
            "read_only": True,
            "volumes": {workspace: {"bind": WORKSPACE, "mode": "ro"}},
            "working_dir": WORKSPACE,
            "tmpfs": {"/tmp": TMPFS_OPTIONS},
            "environment": {},
            "user": SANDBOX_USER,
            "cap_drop": ["ALL"],
            "security_opt": ["no-new-privileges"],
            "mem_limit": memory,
            "memswap_limit": memory,
            "pids_limit": self.pids_limit,
            "nano_cpus": int(self.cpu_cores * 1_000_000_000),
            "stdin_open": False,
            "detach": True,
        }
        if self.runtime:
            config["runtime"] = self.runtime
        return config

    def _discard(self, container: Any) -> None:
        """Kill and remove a container, whatever state it is in."""
        try:
            container.remove(force=True)
        except DockerException as e:
            logger.warning("Could not remove sandbox container %s: %s", container.id, e)

    async def _run_container(self, config: dict[str, Any]) -> tuple[int, bytes, bytes]:
        client = self._get_client()
        try:
            container = await asyncio.to_thread(client.containers.create, **config)
        except ImageNotFound as e:
            raise ToolRuntimeFailure(
                f"Sandbox image {self.image} is not available; pull it with "
                f"'docker pull {self.image}'"
            ) from e
        except DockerException as e:
            raise ToolRuntimeFailure(f"Could not create sandbox container: {e}") from e

        try:
            await asyncio.to_thread(container.start)
            status = await asyncio.wait_for(asyncio.to_thread(container.wait), timeout=self.timeout)
            stdout = await asyncio.to_thread(container.logs, stdout=True, stderr=False)
            stderr = await asyncio.to_thread(container.logs, stdout=False, stderr=True)
        except DockerException as e:
            raise ToolRuntimeFailure(f"Sandbox container failed: {e}") from e
        finally:
            self._discard(container)

        return status["StatusCode"], stdout, stderr

    async def run(self, code: str) -> dict[str, Any]:
        with tempfile.TemporaryDirectory(prefix="converge-exec-") as workspace:
            script = Path(workspace) / "main.py"
            script.write_text(code, encoding="utf-8")
            # The sandbox user is not the owner of the mount
            os.chmod(workspace, 0o755)
            os.chmod(script, 0o644)

            start = time.monotonic()
            try:
                exit_code, stdout, stderr = await self._run_container(
                    self.container_config(workspace)
                )
            except asyncio.TimeoutError:
                logger.warning("Code execution timed out after %ss", self.timeout)
                raise ExecutionTimeout(
                    f"Execution timed out after {self.timeout}s",
                    details={"timeout": self.timeout},
                ) from None
            elapsed = round(time.monotonic() - start, 3)

        stdout_text, stdout_truncated = _decode(stdout, self.max_output_bytes)
        stderr_text, stderr_truncated = _decode(stderr, self.max_output_bytes)

        payload = {
            "stdout": stdout_text,
            "stderr": stderr_text,
            "exit_code": exit_code,
            "execution_time": elapsed,
            "truncated": stdout_truncated or stderr_truncated,
        }

        if exit_code != 0:
            last_line = stderr_text.strip().splitlines()[-1] if stderr_text.strip() else ""
            raise ToolRuntimeFailure(
                last_line or f"Process exited with code {exit_code}",
                details=payload,
            )

        return payload
