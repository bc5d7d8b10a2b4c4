"""Lifecycle switches handed to WorkOrderService.

Built from configuration by ``workshop_config.bridges``; the kernel never
reads configuration itself.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class LifecyclePolicy:
    # create() lands on ISSUED with no stock reservation and moves the unit
    # to under_maintenance
    auto_issue_on_create: bool = False
    # a positive quantity on a part-less order is rejected
    require_part_for_quantity: bool = True


DEFAULT_POLICY = LifecyclePolicy()
