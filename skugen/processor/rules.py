"""
SKU generator rules.

A RuleSet is immutable. Every edit goes through apply_patch (or the
component helpers built on it), which returns a new, revalidated RuleSet.
"""

from enum import Enum
from typing import Any, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel


# Core layout slots, always present in every layout
PREFIX = "prefix"
BODY = "body"
SUFFIX = "suffix"
CORE_COMPONENTS = (PREFIX, BODY, SUFFIX)


class RuleValidationError(ValueError):
    """Rule set or selection rejected before any rendering or network call."""
    pass


class BodyStrategy(str, Enum):
    """How the main, numeric part of the SKU is generated."""
    SEQUENTIAL = "consecutive"
    CONTINUE_FROM_LAST = "continue_from_last"
    DISABLED = "disable_body"
    PRODUCT_ID = "product_id"
    VARIANT_ID = "variant_id"
    RANDOM = "random"


class ComponentKind(str, Enum):
    """Attribute-derived parts that can be added to the SKU."""
    PRODUCT_NAME = "product_name"
    VARIANT_NAME = "variant_name"
    VENDOR = "product_vendor"
    PRODUCT_TYPE = "product_type"
    OLD_SKU = "old_sku"
    OPTION_1 = "variant_option1"
    OPTION_2 = "variant_option2"
    OPTION_3 = "variant_option3"


class AdditionalComponent(BaseModel):
    """A single optional component placed in the layout by id."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    kind: ComponentKind


class RuleSet(BaseModel):
    """Complete generator configuration."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
        extra="forbid",
    )

    prefix: str = "SKU"
    suffix: str = ""

    numbering_start: int = Field(1, ge=0)
    body_strategy: BodyStrategy = BodyStrategy.SEQUENTIAL

    separator: str = "-"

    # Only used by SEQUENTIAL
    zero_padded: bool = False
    padding_width: int = Field(4, ge=2, le=10)

    # Only used by RANDOM
    random_min: int = 1000
    random_max: int = 9999

    additional_components: Tuple[AdditionalComponent, ...] = ()
    layout: Tuple[str, ...] = CORE_COMPONENTS

    @model_validator(mode="after")
    def check_consistency(self) -> "RuleSet":
        if self.random_min > self.random_max:
            raise ValueError(
                f"randomMin ({self.random_min}) is greater than randomMax ({self.random_max})"
            )

        component_ids = [c.id for c in self.additional_components]
        if len(set(component_ids)) != len(component_ids):
            raise ValueError("Additional component ids must be unique")
        clashing = set(component_ids) & set(CORE_COMPONENTS)
        if clashing:
            raise ValueError(f"Additional component ids clash with core slots: {sorted(clashing)}")

        if len(set(self.layout)) != len(self.layout):
            raise ValueError("Layout contains duplicate ids")

        missing_core = [c for c in CORE_COMPONENTS if c not in self.layout]
        if missing_core:
            raise ValueError(f"Layout is missing core components: {missing_core}")

        known = set(CORE_COMPONENTS) | set(component_ids)
        dangling = [i for i in self.layout if i not in known]
        if dangling:
            raise ValueError(f"Layout references unknown components: {dangling}")

        unplaced = [i for i in component_ids if i not in self.layout]
        if unplaced:
            raise ValueError(f"Additional components missing from layout: {unplaced}")

        return self

    def component(self, component_id: str) -> Optional[AdditionalComponent]:
        for component in self.additional_components:
            if component.id == component_id:
                return component
        return None


def parse_rules(data: Mapping[str, Any]) -> RuleSet:
    """
    Build a RuleSet from wire data (camelCase or field names).

    Raises:
        RuleValidationError: If the data does not describe a valid rule set
    """
    try:
        return RuleSet.model_validate(dict(data))
    except ValidationError as e:
        raise RuleValidationError(_format_errors(e)) from e


def apply_patch(rules: RuleSet, patch: Mapping[str, Any]) -> RuleSet:
    """
    Return a new RuleSet with the patch merged over the given one.

    Keys may be wire names (``numberingStart``) or field names
    (``numbering_start``).

    Raises:
        RuleValidationError: For unknown keys or an invalid result
    """
    data = rules.model_dump(by_alias=True)

    for key, value in patch.items():
        alias = to_camel(key) if key in RuleSet.model_fields else key
        if alias not in data:
            raise RuleValidationError(f"Unknown rule field: {key}")
        data[alias] = value

    return parse_rules(data)


def add_component(
    rules: RuleSet,
    kind: ComponentKind,
    component_id: Optional[str] = None,
    position: Optional[int] = None,
) -> RuleSet:
    """
    Register an additional component and place it in the layout.

    By default the component goes right before the suffix slot.
    """
    if component_id is None:
        n = 1
        existing = {c.id for c in rules.additional_components}
        while f"{kind.value}_{n}" in existing:
            n += 1
        component_id = f"{kind.value}_{n}"

    layout = list(rules.layout)
    if position is None:
        position = layout.index(SUFFIX)
    layout.insert(position, component_id)

    components = list(rules.additional_components)
    components.append(AdditionalComponent(id=component_id, kind=kind))

    return apply_patch(rules, {
        "additional_components": [c.model_dump() for c in components],
        "layout": layout,
    })


def remove_component(rules: RuleSet, component_id: str) -> RuleSet:
    """Remove an additional component from both the registry and the layout."""
    if component_id in CORE_COMPONENTS:
        raise RuleValidationError(f"Core component '{component_id}' cannot be removed")
    if rules.component(component_id) is None:
        raise RuleValidationError(f"Unknown component: {component_id}")

    return apply_patch(rules, {
        "additional_components": [
            c.model_dump() for c in rules.additional_components if c.id != component_id
        ],
        "layout": [i for i in rules.layout if i != component_id],
    })


def _format_errors(error: ValidationError) -> str:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ()))
        message = item.get("msg", "invalid value")
        messages.append(f"{location}: {message}" if location else message)
    return "; ".join(messages)
