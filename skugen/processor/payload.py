"""
Build per-product update descriptors from a variant selection.
"""

import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

from ..shopify.catalog import CatalogRecord
from .renderer import render
from .rules import RuleSet, RuleValidationError

# Shopify's representation of a product without real options
DEFAULT_OPTION_NAME = "Title"
DEFAULT_OPTION_VALUE = "Default Title"


@dataclass(frozen=True)
class ProductOption:
    """One option of a product and the values it allows."""
    name: str
    values: Tuple[str, ...]


@dataclass(frozen=True)
class VariantUpdate:
    """The new SKU for one variant, with the option values it keeps."""
    variant_id: str
    new_sku: str
    option_values: Tuple[Tuple[str, str], ...]  # (option name, value)


@dataclass(frozen=True)
class UpdateDescriptor:
    """Everything needed to rewrite the SKUs of one product."""
    product_id: str
    options: Tuple[ProductOption, ...]
    variants: Tuple[VariantUpdate, ...]

    @property
    def variant_count(self) -> int:
        return len(self.variants)

    def to_input(self) -> Dict[str, Any]:
        """Shopify ProductSetInput for this product."""
        return {
            "id": self.product_id,
            "productOptions": [
                {"name": option.name, "values": [{"name": v} for v in option.values]}
                for option in self.options
            ],
            "variants": [
                {
                    "id": variant.variant_id,
                    "sku": variant.new_sku,
                    "optionValues": [
                        {"optionName": name, "name": value}
                        for name, value in variant.option_values
                    ],
                }
                for variant in self.variants
            ],
        }


def group_by_product(records: Sequence[CatalogRecord]) -> Dict[str, List[CatalogRecord]]:
    """
    Group variants by product id, keeping first-seen order.

    Raises:
        RuleValidationError: If a record has no parent product
    """
    groups: Dict[str, List[CatalogRecord]] = {}
    for record in records:
        if record.product is None or not record.product.id:
            raise RuleValidationError(f"Variant {record.id} has no parent product")
        groups.setdefault(record.product.id, []).append(record)
    return groups


def is_single_option(variants: Sequence[CatalogRecord]) -> bool:
    """
    True for a product with one variant and no real options.

    Such a variant reports either no options or only Title/Default Title.
    """
    if len(variants) != 1:
        return False
    options = variants[0].selected_options
    if not options:
        return True
    return (
        len(options) == 1
        and options[0].name == DEFAULT_OPTION_NAME
        and options[0].value == DEFAULT_OPTION_VALUE
    )


def derive_options(variants: Sequence[CatalogRecord]) -> Tuple[ProductOption, ...]:
    """Union of option names and their values, in order of first appearance."""
    values_by_name: Dict[str, List[str]] = {}
    for variant in variants:
        for option in variant.selected_options:
            values = values_by_name.setdefault(option.name, [])
            if option.value not in values:
                values.append(option.value)
    return tuple(ProductOption(name, tuple(values)) for name, values in values_by_name.items())


def build_descriptor(
    rules: RuleSet,
    product_id: str,
    variants: Sequence[CatalogRecord],
    last_number: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> UpdateDescriptor:
    """
    Build the update for one product.

    Each variant is rendered with its index within this product, not within
    the whole selection.
    """
    single = is_single_option(variants)
    if single:
        options: Tuple[ProductOption, ...] = (
            ProductOption(DEFAULT_OPTION_NAME, (DEFAULT_OPTION_VALUE,)),
        )
    else:
        options = derive_options(variants)

    updates = []
    for index, variant in enumerate(variants):
        if single:
            option_values: Tuple[Tuple[str, str], ...] = (
                (DEFAULT_OPTION_NAME, DEFAULT_OPTION_VALUE),
            )
        else:
            option_values = tuple((o.name, o.value) for o in variant.selected_options)

        updates.append(VariantUpdate(
            variant_id=variant.id,
            new_sku=render(rules, variant, index, last_number=last_number, rng=rng),
            option_values=option_values,
        ))

    return UpdateDescriptor(product_id=product_id, options=options, variants=tuple(updates))


def build_update_descriptors(
    rules: RuleSet,
    records: Sequence[CatalogRecord],
    last_number: Optional[int] = None,
    rng: Optional[random.Random] = None,
) -> List[UpdateDescriptor]:
    """One UpdateDescriptor per product in the selection, in encounter order."""
    return [
        build_descriptor(rules, product_id, variants, last_number=last_number, rng=rng)
        for product_id, variants in group_by_product(records).items()
    ]


def largest_product_size(descriptors: Sequence[UpdateDescriptor]) -> int:
    """Most variants carried by any single descriptor."""
    return max((d.variant_count for d in descriptors), default=0)
