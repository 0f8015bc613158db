"""
Tests for update descriptor construction.
"""

import pytest

from skugen.processor.payload import (
    DEFAULT_OPTION_NAME,
    DEFAULT_OPTION_VALUE,
    build_update_descriptors,
    group_by_product,
    is_single_option,
    largest_product_size,
)
from skugen.processor.rules import RuleSet, RuleValidationError
from skugen.shopify import CatalogRecord
from tests.factories import RecordFactory

PRODUCT_A = "gid://shopify/Product/100"
PRODUCT_B = "gid://shopify/Product/200"


class TestGrouping:
    """Tests for grouping variants by product."""

    def test_first_seen_order(self):
        records = [
            RecordFactory.create(product_id=PRODUCT_B),
            RecordFactory.create(product_id=PRODUCT_A),
            RecordFactory.create(product_id=PRODUCT_B),
        ]

        groups = group_by_product(records)

        assert list(groups) == [PRODUCT_B, PRODUCT_A]
        assert [r.id for r in groups[PRODUCT_B]] == [records[0].id, records[2].id]

    def test_missing_parent_rejected(self):
        orphan = CatalogRecord(id="gid://shopify/ProductVariant/1")

        with pytest.raises(RuleValidationError, match="no parent product"):
            group_by_product([orphan])


class TestSingleOption:
    """Tests for products without real options."""

    def test_no_options(self):
        assert is_single_option([RecordFactory.create()]) is True

    def test_default_title_option(self):
        record = RecordFactory.create(options=[(DEFAULT_OPTION_NAME, DEFAULT_OPTION_VALUE)])

        assert is_single_option([record]) is True

    def test_real_option(self):
        assert is_single_option([RecordFactory.create(options=[("Size", "M")])]) is False

    def test_several_variants(self):
        assert is_single_option(RecordFactory.create_batch(2, product_id=PRODUCT_A)) is False

    def test_pseudo_option_in_input(self):
        [descriptor] = build_update_descriptors(RuleSet(), [RecordFactory.create()])

        data = descriptor.to_input()
        assert data["productOptions"] == [
            {"name": "Title", "values": [{"name": "Default Title"}]}
        ]
        assert data["variants"][0]["optionValues"] == [
            {"optionName": "Title", "name": "Default Title"}
        ]


class TestDescriptors:
    """Tests for build_update_descriptors."""

    def test_option_schema_in_first_seen_order(self):
        records = [
            RecordFactory.create(product_id=PRODUCT_A, options=[("Size", "S"), ("Color", "Red")]),
            RecordFactory.create(product_id=PRODUCT_A, options=[("Size", "M"), ("Color", "Red")]),
            RecordFactory.create(product_id=PRODUCT_A, options=[("Size", "S"), ("Color", "Blue")]),
        ]

        [descriptor] = build_update_descriptors(RuleSet(), records)

        assert [(o.name, o.values) for o in descriptor.options] == [
            ("Size", ("S", "M")),
            ("Color", ("Red", "Blue")),
        ]
        assert descriptor.variants[1].option_values == (("Size", "M"), ("Color", "Red"))

    def test_index_restarts_per_product(self):
        records = [
            RecordFactory.create(product_id=PRODUCT_A, options=[("Size", "S")]),
            RecordFactory.create(product_id=PRODUCT_A, options=[("Size", "M")]),
            RecordFactory.create(product_id=PRODUCT_B),
        ]

        descriptors = build_update_descriptors(RuleSet(), records)

        assert [d.product_id for d in descriptors] == [PRODUCT_A, PRODUCT_B]
        assert [v.new_sku for v in descriptors[0].variants] == ["SKU-1", "SKU-2"]
        assert [v.new_sku for v in descriptors[1].variants] == ["SKU-1"]

    def test_input_shape(self):
        record = RecordFactory.create(
            variant_id="gid://shopify/ProductVariant/9",
            product_id=PRODUCT_A,
            options=[("Size", "L")],
        )

        [descriptor] = build_update_descriptors(RuleSet(prefix="AB"), [record])

        assert descriptor.to_input() == {
            "id": PRODUCT_A,
            "productOptions": [{"name": "Size", "values": [{"name": "L"}]}],
            "variants": [{
                "id": "gid://shopify/ProductVariant/9",
                "sku": "AB-1",
                "optionValues": [{"optionName": "Size", "name": "L"}],
            }],
        }

    def test_largest_product_size(self):
        records = RecordFactory.create_batch(3, product_id=PRODUCT_A) + [
            RecordFactory.create(product_id=PRODUCT_B)
        ]

        descriptors = build_update_descriptors(RuleSet(), records)

        assert largest_product_size(descriptors) == 3
        assert largest_product_size([]) == 0
