"""Parser for the shell announcement printed by ``ssh-agent -s``.

The agent prints Bourne shell statements terminated by ``;``::

    SSH_AUTH_SOCK=/tmp/ssh-XXXX/agent.123; export SSH_AUTH_SOCK;
    SSH_AGENT_PID=124; export SSH_AGENT_PID;
    echo Agent pid 124;

Only complete ``NAME=value;`` statements count. Anything else (``export``,
``echo``, an unterminated trailing fragment) is ignored.
"""

from ..common.exceptions import AgentOutputError
from .models import AGENT_PID_ENV, AUTH_SOCK_ENV, AgentHandle


def tokenize(output: str) -> dict[str, str]:
    """Collect ``NAME=value`` assignments from terminated statements.

    Later assignments to the same name win, as they would in a shell.
    """
    assignments: dict[str, str] = {}
    # The segment after the final ';' is unterminated
    for statement in output.split(";")[:-1]:
        statement = statement.strip()
        name, sep, value = statement.partition("=")
        if not sep or not _is_identifier(name):
            continue
        assignments[name] = value
    return assignments


def _is_identifier(name: str) -> bool:
    return bool(name) and not name[0].isdigit() and all(
        ch == "_" or (ch.isascii() and ch.isalnum()) for ch in name
    )


def parse_agent_output(output: str) -> AgentHandle:
    """Extract the agent socket and pid from ``ssh-agent -s`` output.

    Raises:
        AgentOutputError: If either value is missing or the pid is not a
            positive integer
    """
    assignments = tokenize(output)

    auth_sock = assignments.get(AUTH_SOCK_ENV, "")
    if not auth_sock:
        raise AgentOutputError(f"could not parse {AUTH_SOCK_ENV}")

    raw_pid = assignments.get(AGENT_PID_ENV)
    if raw_pid is None:
        raise AgentOutputError(f"could not parse {AGENT_PID_ENV}")
    if not raw_pid.isascii() or not raw_pid.isdigit() or int(raw_pid) <= 0:
        raise AgentOutputError(f"invalid {AGENT_PID_ENV}: {raw_pid!r}")

    return AgentHandle(auth_sock=auth_sock, pid=int(raw_pid))
