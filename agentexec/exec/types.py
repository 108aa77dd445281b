"""Type definitions for command approval and execution."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Literal, Union

# Approval policies understood by the external policy evaluator
ApprovalPolicy = Literal["suggest", "auto-edit", "full-auto"]

# What to do when a sandboxed command fails
FullAutoErrorMode = Literal["ask-user", "ignore-and-continue"]


class ReviewDecision(str, Enum):
    """User answer to a confirmation prompt."""
    YES = "yes"
    ALWAYS = "always"
    NO_CONTINUE = "no-continue"
    NO_STOP = "no-stop"


class SandboxKind(str, Enum):
    """Sandbox backend used to run a command."""
    NONE = "none"
    MACOS_SEATBELT = "macos.seatbelt"
    LINUX_CONTAINER = "linux.container"


@dataclass(frozen=True)
class ApplyPatchCommand:
    """A request to apply patch text instead of spawning a process."""
    patch: str


@dataclass(frozen=True)
class AskUser:
    """Policy outcome: the user must confirm the command."""
    apply_patch: ApplyPatchCommand | None = None


@dataclass(frozen=True)
class AutoApprove:
    """Policy outcome: run without asking."""
    run_in_sandbox: bool
    apply_patch: ApplyPatchCommand | None = None


@dataclass(frozen=True)
class Reject:
    """Policy outcome: never run."""
    reason: str
    apply_patch: ApplyPatchCommand | None = None


SafetyAssessment = Union[AskUser, AutoApprove, Reject]


@dataclass
class CommandConfirmation:
    """Result of the confirmation callback."""
    review: ReviewDecision
    custom_deny_message: str | None = None


@dataclass
class ExecInput:
    """A command proposed by the agent."""
    cmd: list[str]
    workdir: str | None = None
    timeout_ms: int | None = None


@dataclass
class SpawnOptions:
    """Options handed to a sandbox backend."""
    timeout_ms: int
    cwd: str | None = None
    shell: bool = False
    max_output_chars: int = 200_000


@dataclass
class ExecResult:
    """Raw outcome of a backend run. exit_code != 0 signals failure."""
    stdout: str = ""
    stderr: str = ""
    exit_code: int = 0


@dataclass
class ExecCommandSummary:
    """Execution result with wall-clock duration."""
    stdout: str
    stderr: str
    exit_code: int
    duration_ms: int


@dataclass
class HandleExecCommandResult:
    """What the orchestrator hands back to the agent loop."""
    output_text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    additional_items: list[dict[str, Any]] | None = None


ConfirmationCallback = Callable[
    [list[str], ApplyPatchCommand | None], Awaitable[CommandConfirmation]
]

PolicyEvaluator = Callable[[list[str], ApprovalPolicy, list[str]], SafetyAssessment]
