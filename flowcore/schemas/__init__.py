"""
Definition Schemas.

JSON-serializable schemas for flows, scopes and triggers.
These are produced by the external agent registry and loaded per execution.
"""

from .flow import KNOWN_STEP_TYPES, AgentFlow, AgentFlowStep, FlowDefinition
from .scopes import AgentScopes
from .trigger import TriggerData, TriggerType
from .validation import FlowIssue, validate_flow

__all__ = [
    "KNOWN_STEP_TYPES",
    "AgentFlow",
    "AgentFlowStep",
    "FlowDefinition",
    "AgentScopes",
    "TriggerData",
    "TriggerType",
    "FlowIssue",
    "validate_flow",
]
