"""Lifecycle of the ssh-agent shared by wrapped tunnels."""

from collections.abc import Iterable

from ..common.context import RunContext
from ..common.exceptions import AgentStartError, KeyRegistrationError, ProcessError
from ..common.logging import get_logger
from ..common.process import build_env, kill_pid, run_command
from ..common.utils import read_passphrase
from ..config import TunnelDescriptor
from .models import AgentHandle, KeyIdentity, distinct_key_identities
from .parser import parse_agent_output

logger = get_logger(__name__)

# Read by the key helper instead of taking the passphrase on its command line
PASSPHRASE_ENV = "PASSPHRASE"


class SSHAgent:
    """Owns one ssh-agent process for the duration of a run.

    The agent is started once, keys with passphrases are added to it once
    each, and the process is killed once the run context is cancelled.
    """

    def __init__(self, agent_command: str = "ssh-agent", add_command: str = "ssh-add.exp"):
        """Initialize SSHAgent.

        Args:
            agent_command: ssh-agent program to run
            add_command: Key helper taking a key path and reading the
                passphrase from ``$PASSPHRASE``
        """
        self.agent_command = agent_command
        self.add_command = add_command
        self._handle: AgentHandle | None = None
        self._terminated = False

    @property
    def handle(self) -> AgentHandle | None:
        return self._handle

    @property
    def terminated(self) -> bool:
        return self._terminated

    async def start(self) -> AgentHandle:
        """Spawn ssh-agent and parse its announcement.

        Returns:
            Handle with the agent socket and pid

        Raises:
            AgentStartError: If the agent cannot be run or fails
            AgentOutputError: If its output cannot be parsed
        """
        if self._handle is not None:
            raise AgentStartError("ssh-agent already started")

        logger.info("Starting ssh-agent", command=self.agent_command)
        try:
            result = await run_command([self.agent_command, "-s"])
        except ProcessError as e:
            raise AgentStartError(f"error running ssh-agent: {e}") from e
        if not result.ok:
            raise AgentStartError(
                f"error running ssh-agent: exit status {result.returncode}: {result.output}"
            )

        self._handle = parse_agent_output(result.stdout)
        logger.info(
            "ssh-agent started", pid=self._handle.pid, auth_sock=self._handle.auth_sock
        )
        return self._handle

    async def register_keys(self, tunnels: Iterable[TunnelDescriptor]) -> int:
        """Add every distinct passphrase-protected key to the agent.

        Returns:
            Number of keys registered

        Raises:
            KeyRegistrationError: If any key cannot be added
        """
        count = 0
        for identity in distinct_key_identities(tunnels):
            await self.add_key(identity)
            count += 1
        return count

    async def add_key(self, identity: KeyIdentity) -> None:
        """Run the key helper for one key.

        Raises:
            KeyRegistrationError: If the passphrase cannot be read or the
                helper fails
        """
        key_path = identity.private_key_path
        passphrase_path = identity.passphrase_path
        if not key_path or not passphrase_path:
            return
        if self._handle is None:
            raise KeyRegistrationError("ssh-agent is not running")

        logger.info("Adding key to ssh-agent", key=key_path, phrase=passphrase_path)

        try:
            phrase = read_passphrase(passphrase_path)
        except OSError as e:
            raise KeyRegistrationError(
                f"failed to read passphrase file {passphrase_path}: {e}"
            ) from e

        env = build_env(self._handle.environment(), {PASSPHRASE_ENV: phrase})
        try:
            result = await run_command([self.add_command, key_path], env=env)
        except ProcessError as e:
            raise KeyRegistrationError(f"error running ssh add: {e}") from e
        if not result.ok:
            raise KeyRegistrationError(
                f"error running ssh add: exit status {result.returncode}. out: {result.output}"
            )

    async def watch(self, ctx: RunContext) -> None:
        """Kill the agent once the run context is cancelled"""
        await ctx.wait()
        self.terminate()

    def terminate(self) -> None:
        """Kill the agent process. Safe to call more than once."""
        if self._handle is None or self._terminated:
            return
        self._terminated = True
        logger.info("Stopping ssh-agent", pid=self._handle.pid)
        kill_pid(self._handle.pid)
