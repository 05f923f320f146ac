"""
Resolution rules shared by every booking operation.

Both rules are ordered precedence checks, evaluated the same way by listings,
overlap checks, submission, deletion and the acceptance engine.
"""

from typing import Optional


def resolve_owner_id(created_by: Optional[int], template_owner_id: Optional[int]) -> Optional[int]:
    """Owner of a slot instance: created_by if present, else the template's owner."""
    if created_by is not None:
        return created_by
    return template_owner_id


def resolve_effective_capacity(instance_capacity: Optional[int], template_capacity: Optional[int]) -> int:
    """
    Capacity of a slot instance.

    Returns the instance's own capacity if > 0, else the template's if > 0,
    else 0, which means unlimited.
    """
    if instance_capacity is not None and instance_capacity > 0:
        return instance_capacity
    if template_capacity is not None and template_capacity > 0:
        return template_capacity
    return 0
