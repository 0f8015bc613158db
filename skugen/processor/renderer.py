"""
SKU rendering.

render() is used by both the preview and the write path, so it must stay
free of I/O and shared state. The only non-deterministic input is the
RANDOM body strategy: repeated calls with identical arguments may return
different codes. Pass a seeded ``random.Random`` to make it reproducible.
"""

import random
import re
from typing import Dict, Iterable, Optional

from ..shopify.catalog import CatalogRecord
from .rules import BODY, PREFIX, SUFFIX, BodyStrategy, ComponentKind, RuleSet

_OPTION_INDEX = {
    ComponentKind.OPTION_1: 0,
    ComponentKind.OPTION_2: 1,
    ComponentKind.OPTION_3: 2,
}


def numeric_suffix(gid: Optional[str]) -> str:
    """'gid://shopify/Product/123' -> '123'"""
    if not gid:
        return ""
    return gid.rsplit("/", 1)[-1]


def resolve_component(kind: ComponentKind, record: CatalogRecord) -> str:
    """Value of an additional component for one variant."""
    product = record.product

    if kind == ComponentKind.PRODUCT_NAME:
        return product.title if product else ""
    if kind == ComponentKind.VARIANT_NAME:
        return record.title
    if kind == ComponentKind.VENDOR:
        return product.vendor if product else ""
    if kind == ComponentKind.PRODUCT_TYPE:
        return product.product_type if product else ""
    if kind == ComponentKind.OLD_SKU:
        return record.sku or ""

    index = _OPTION_INDEX[kind]
    if index < len(record.selected_options):
        return record.selected_options[index].value
    return ""


def render_body(
    rules: RuleSet,
    record: CatalogRecord,
    ordinal: int,
    last_number: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Compute the body slot.

    Args:
        rules: Generator rules
        record: Variant being rendered
        ordinal: 0-based position of the record in the current selection
        last_number: Highest existing body number, for CONTINUE_FROM_LAST
        rng: Random source for RANDOM (defaults to the module generator)
    """
    strategy = rules.body_strategy

    if strategy == BodyStrategy.SEQUENTIAL:
        body = str(rules.numbering_start + ordinal)
        if rules.zero_padded:
            # zfill never truncates wider numbers
            body = body.zfill(rules.padding_width)
        return body

    if strategy == BodyStrategy.CONTINUE_FROM_LAST:
        if last_number is None:
            return str(rules.numbering_start + ordinal)
        return str(last_number + 1 + ordinal)

    if strategy == BodyStrategy.PRODUCT_ID:
        return numeric_suffix(record.product.id if record.product else None)

    if strategy == BodyStrategy.VARIANT_ID:
        return numeric_suffix(record.id)

    if strategy == BodyStrategy.RANDOM:
        return str((rng or random).randint(rules.random_min, rules.random_max))

    return ""


def render(
    rules: RuleSet,
    record: CatalogRecord,
    ordinal: int,
    last_number: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> str:
    """
    Render the SKU for one variant.

    Layout entries that resolve to an empty string are dropped before
    joining, so an empty value never produces a doubled separator.
    """
    slots: Dict[str, str] = {
        PREFIX: rules.prefix,
        SUFFIX: rules.suffix,
        BODY: render_body(rules, record, ordinal, last_number=last_number, rng=rng),
    }

    for component in rules.additional_components:
        slots[component.id] = resolve_component(component.kind, record)

    parts = [slots.get(component_id, "") for component_id in rules.layout]
    return rules.separator.join(part for part in parts if part)


def code_pattern(rules: RuleSet) -> "re.Pattern[str]":
    """
    Regex capturing the body of codes produced by these rules.

    Each layout entry is matched together with the separator in front of
    it, so the pattern is applied to ``separator + code``. Prefix and suffix
    are literal; empty ones are skipped, as render() drops them. Additional
    components match any text and are optional, since an empty value is
    dropped along with its separator.
    """
    sep = re.escape(rules.separator)

    pieces = []
    for component_id in rules.layout:
        if component_id == BODY:
            pieces.append(sep + r"(?P<body>\d+)")
        elif component_id == PREFIX:
            if rules.prefix:
                pieces.append(sep + re.escape(rules.prefix))
        elif component_id == SUFFIX:
            if rules.suffix:
                pieces.append(sep + re.escape(rules.suffix))
        else:
            pieces.append(f"(?:{sep}.+?)?")

    return re.compile("^" + "".join(pieces) + "$")


def highest_existing_number(rules: RuleSet, codes: Iterable[Optional[str]]) -> Optional[int]:
    """
    Highest body number among existing codes that fit the rules' pattern.

    Returns:
        The highest number, or None if no code matches
    """
    pattern = code_pattern(rules)

    highest: Optional[int] = None
    for code in codes:
        if not code:
            continue
        match = pattern.match(rules.separator + code)
        if not match:
            continue
        number = int(match.group("body"))
        if highest is None or number > highest:
            highest = number
    return highest
