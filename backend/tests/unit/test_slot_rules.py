"""
Unit tests for the owner and capacity resolution rules.
"""

import pytest

from utils.slot_rules import resolve_owner_id, resolve_effective_capacity


class TestResolveOwnerId:

    def test_created_by_wins_over_template_owner(self):
        assert resolve_owner_id(created_by=5, template_owner_id=9) == 5

    def test_template_owner_used_when_created_by_missing(self):
        assert resolve_owner_id(created_by=None, template_owner_id=9) == 9

    def test_unresolvable_owner(self):
        assert resolve_owner_id(created_by=None, template_owner_id=None) is None


class TestResolveEffectiveCapacity:

    @pytest.mark.parametrize("instance_capacity, template_capacity, expected", [
        (3, 5, 3),        # own capacity first
        (0, 5, 5),        # falls back to template
        (None, 2, 2),
        (0, 0, 0),        # unlimited
        (0, None, 0),
        (None, None, 0),
    ])
    def test_precedence(self, instance_capacity, template_capacity, expected):
        assert resolve_effective_capacity(instance_capacity, template_capacity) == expected
