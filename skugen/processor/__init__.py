"""
Processor package: SKU rules, rendering and sync.
"""

from .rules import (
    RuleSet,
    RuleValidationError,
    BodyStrategy,
    ComponentKind,
    AdditionalComponent,
    CORE_COMPONENTS,
    parse_rules,
    apply_patch,
    add_component,
    remove_component,
)
from .renderer import render, highest_existing_number
from .payload import UpdateDescriptor, build_update_descriptors
from .sync import apply_rules, observe_bulk_update, use_bulk
from .runner import SyncRunner, SyncTask, TaskState

__all__ = [
    "RuleSet",
    "RuleValidationError",
    "BodyStrategy",
    "ComponentKind",
    "AdditionalComponent",
    "CORE_COMPONENTS",
    "parse_rules",
    "apply_patch",
    "add_component",
    "remove_component",
    "render",
    "highest_existing_number",
    "UpdateDescriptor",
    "build_update_descriptors",
    "apply_rules",
    "observe_bulk_update",
    "use_bulk",
    "SyncRunner",
    "SyncTask",
    "TaskState",
]
