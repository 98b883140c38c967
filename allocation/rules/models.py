"""
Pydantic models for allocation rules.

A rule is a tagged union discriminated by `type`. All variants share the
envelope (id, name, description, priority, isActive, metadata); each adds
its own payload:

  coRun               tasks: ≥2 distinct task IDs
  slotRestriction     targetGroup, minCommonSlots ≥ 1
  loadLimit           workerGroup, maxSlotsPerPhase ≥ 1
  phaseWindow         task, allowedPhases (integers ≥ 1)
  patternMatch        regex (must compile), ruleTemplate (a rule type name)
  precedenceOverride  priorityOrder (rule type names)

Extra keys are accepted and preserved so rules round-trip unchanged.
"""

import re
import uuid
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictInt,
    StrictStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

RULE_TYPES = (
    "coRun",
    "slotRestriction",
    "loadLimit",
    "phaseWindow",
    "patternMatch",
    "precedenceOverride",
)

RuleTypeName = Literal[
    "coRun",
    "slotRestriction",
    "loadLimit",
    "phaseWindow",
    "patternMatch",
    "precedenceOverride",
]

# Task references may be written as strings or integers
TaskRef = Union[StrictStr, StrictInt]
PhaseNumber = Annotated[StrictInt, Field(ge=1)]


def new_rule_id() -> str:
    return f"rule-{uuid.uuid4()}"


class RuleMetadata(BaseModel):
    """Audit fields attached to every rule."""
    createdBy: str = Field("System", description="Author of the rule")
    createdAt: Optional[str] = Field(None, description="ISO 8601 timestamp")
    updatedAt: Optional[str] = Field(None, description="ISO 8601 timestamp")

    model_config = ConfigDict(extra='allow')


class BaseRule(BaseModel):
    """Envelope shared by every rule variant."""
    id: str = Field(default_factory=new_rule_id, min_length=1, description="Unique rule ID")
    name: Optional[str] = Field(None, description="Display name (defaults to 'Rule <type>')")
    description: str = Field("", description="Free-text description")
    priority: int = Field(5, description="Relative priority, higher wins")
    isActive: bool = Field(True, description="Inactive rules are ignored by validation")
    metadata: RuleMetadata = Field(default_factory=RuleMetadata)

    model_config = ConfigDict(extra='allow')

    @model_validator(mode='after')
    def _default_name(self):
        if not self.name:
            self.name = f"Rule {getattr(self, 'type', 'rule')}"
        return self


class CoRunRule(BaseRule):
    """Tasks that must be scheduled in the same phase."""
    type: Literal["coRun"]
    tasks: List[TaskRef] = Field(..., min_length=2)

    @field_validator('tasks')
    @classmethod
    def _distinct_tasks(cls, tasks):
        normalized = [str(t).strip() for t in tasks]
        if any(not t for t in normalized):
            raise ValueError("task IDs must not be blank")
        if len(set(normalized)) != len(normalized):
            raise ValueError("tasks must be distinct")
        return tasks

    def task_ids(self) -> List[str]:
        return [str(t).strip() for t in self.tasks]


class SlotRestrictionRule(BaseRule):
    """Workers in a group must share at least minCommonSlots phases."""
    type: Literal["slotRestriction"]
    targetGroup: StrictStr = Field(..., min_length=1)
    minCommonSlots: StrictInt = Field(..., ge=1)


class LoadLimitRule(BaseRule):
    """Caps task-slots per phase for a worker group."""
    type: Literal["loadLimit"]
    workerGroup: StrictStr = Field(..., min_length=1)
    maxSlotsPerPhase: StrictInt = Field(..., ge=1)


class PhaseWindowRule(BaseRule):
    """Restricts a task to a set of phases."""
    type: Literal["phaseWindow"]
    task: TaskRef
    allowedPhases: List[PhaseNumber] = Field(..., min_length=1)

    def task_id(self) -> str:
        return str(self.task).strip()


class PatternMatchRule(BaseRule):
    """Applies a rule template to entities whose identifiers match a regex."""
    type: Literal["patternMatch"]
    regex: StrictStr
    ruleTemplate: RuleTypeName

    @field_validator('regex')
    @classmethod
    def _compiles(cls, value):
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid regular expression: {e}")
        return value


class PrecedenceOverrideRule(BaseRule):
    """Explicit ordering between rule types when they disagree."""
    type: Literal["precedenceOverride"]
    priorityOrder: List[RuleTypeName] = Field(..., min_length=1)


Rule = Annotated[
    Union[
        CoRunRule,
        SlotRestrictionRule,
        LoadLimitRule,
        PhaseWindowRule,
        PatternMatchRule,
        PrecedenceOverrideRule,
    ],
    Field(discriminator='type'),
]

RULE_MODELS = (
    CoRunRule,
    SlotRestrictionRule,
    LoadLimitRule,
    PhaseWindowRule,
    PatternMatchRule,
    PrecedenceOverrideRule,
)

_rule_adapter = TypeAdapter(Rule)


def parse_rule(data: Dict[str, Any]) -> BaseRule:
    """
    Build the typed rule for a raw mapping.

    Raises:
        pydantic.ValidationError: unknown type or malformed payload
    """
    return _rule_adapter.validate_python(data)


def rule_to_dict(rule: BaseRule) -> Dict[str, Any]:
    """JSON-ready dict including any extra keys."""
    return rule.model_dump(mode='json')


def format_validation_errors(exc: ValidationError) -> List[str]:
    """Render pydantic errors as '<field>: <message>' strings."""
    messages = []
    for error in exc.errors():
        loc = [str(part) for part in error.get('loc', ())]
        # Discriminated unions prefix the location with the variant tag
        if loc and loc[0] in RULE_TYPES:
            loc = loc[1:]
        message = error.get('msg', 'invalid value')
        messages.append(f"{'.'.join(loc)}: {message}" if loc else message)
    return messages
