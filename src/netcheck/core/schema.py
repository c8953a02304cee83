"""
Schema definitions for model <-> planner loop <-> tool messages.

These data models serve as the contract between the model, the orchestration loop, the tool
catalog and the API.  We keep them separate from runtime logic so they can be imported anywhere
without side-effects.
"""

from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


# ---------------------------------------------------------------------------
# Conversation
# ---------------------------------------------------------------------------
class Role(str, Enum):
    """Author of a chat message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    """One message replayed to the model."""

    role: Role
    content: str

    def as_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class Conversation(BaseModel):
    """
    Append-only message log for a single run.

    The first message is always the system directive and messages are never removed; the whole
    list is replayed to the model on every turn.
    """

    messages: List[ChatMessage] = Field(default_factory=list)

    @classmethod
    def start(cls, system_prompt: str, user_prompt: str | None = None) -> "Conversation":
        conversation = cls(messages=[ChatMessage(role=Role.SYSTEM, content=system_prompt)])
        if user_prompt is not None:
            conversation.add_user(user_prompt)
        return conversation

    def add_user(self, content: str) -> None:
        self.messages.append(ChatMessage(role=Role.USER, content=content))

    def add_assistant(self, content: str) -> None:
        self.messages.append(ChatMessage(role=Role.ASSISTANT, content=content))

    def __len__(self) -> int:
        return len(self.messages)


class ModelReply(BaseModel):
    """What a model client returns for one turn."""

    text: str = ""
    # Native tool-call records from the backend; kept for logging only, the loop parses ``text``.
    tool_calls: List[Dict[str, Any]] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------
class ToolDescriptor(BaseModel):
    """Read-only description of a tool supplied by a catalog."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Registered tool name")
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=dict)


class ToolCall(BaseModel):
    """A call that the planner wants the loop to execute."""

    name: str = Field(..., description="Registered tool name")
    args: Dict[str, Any] = Field(default_factory=dict, description="Keyword arguments for the tool")


# ---------------------------------------------------------------------------
# Planner actions
# ---------------------------------------------------------------------------
class PlannerActionType(str, Enum):
    """Discriminator for :data:`PlannerAction`."""

    CALL_TOOL = "call_tool"
    FINAL_RESULT = "final_result"
    UNKNOWN = "unknown"


class CallToolAction(BaseModel):
    """The model asked for a tool invocation."""

    type: Literal[PlannerActionType.CALL_TOOL] = PlannerActionType.CALL_TOOL
    tool_name: Optional[str] = None
    arguments: Any = None
    reason: Optional[str] = None


class FinalResultAction(BaseModel):
    """The model believes it has enough evidence to answer."""

    type: Literal[PlannerActionType.FINAL_RESULT] = PlannerActionType.FINAL_RESULT
    payload: Dict[str, Any] = Field(default_factory=dict)


class UnknownAction(BaseModel):
    """Valid JSON that does not map to a known action."""

    type: Literal[PlannerActionType.UNKNOWN] = PlannerActionType.UNKNOWN
    payload: Dict[str, Any] = Field(default_factory=dict)


PlannerAction = Annotated[
    Union[CallToolAction, FinalResultAction, UnknownAction],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Final artifacts
# ---------------------------------------------------------------------------
class DotnetVersions(BaseModel):
    """Versions detected in a repository."""

    model_config = ConfigDict(extra="forbid")

    sdk_versions: List[str] = Field(default_factory=list)
    runtime_versions: List[str] = Field(default_factory=list)
    target_frameworks: List[str] = Field(default_factory=list)


class VersionScanResult(BaseModel):
    """Schema-exact result of a repository version scan."""

    model_config = ConfigDict(extra="forbid")

    repository: str
    dotnet_versions: DotnetVersions = Field(default_factory=DotnetVersions)
    scan_timestamp: str


class ComplianceFailure(BaseModel):
    """One failed compliance check for a pull request."""

    PullRequestNumber: int
    Check: str
    Passed: bool = False
    Reason: str = ""


class PullRequestSummary(BaseModel):
    """Normalized pull request as produced by the ``normalize`` phase."""

    PullRequestNumber: int
    Title: str = ""
    Body: str = ""


class RepositoryRef(BaseModel):
    Owner: str
    Name: str


class PullRequestReport(BaseModel):
    PullRequestNumber: int
    Title: str = ""
    Failures: List[ComplianceFailure] = Field(default_factory=list)


class ComplianceStats(BaseModel):
    PullRequestCount: int = 0
    TitleFailures: int = 0
    BodyFailures: int = 0
    TokenEstimate: int = 0


class ComplianceReport(BaseModel):
    """Consolidated result of a pull-request compliance check."""

    Repository: RepositoryRef
    PullRequests: List[PullRequestReport] = Field(default_factory=list)
    Stats: ComplianceStats = Field(default_factory=ComplianceStats)
    Compliant: bool = True
