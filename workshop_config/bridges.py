"""
Config -> Kernel Bridges.

Turn ``KernelSettings`` into the objects kernel code is constructed with.
These live here, on the producer side, because the kernel never imports
workshop_config.

Usage:
    settings = get_active_config()
    configure_kernel_logging(settings)
    init_engine(settings)
    policy = build_lifecycle_policy(settings)

    def approve(session):
        return WorkOrderService(session, policy=policy).approve(order_id, actor_id)

    result = run_with_retry(settings, approve)
"""

from __future__ import annotations

import logging
from typing import Callable, TypeVar

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from workshop_config.schema import KernelSettings
from workshop_kernel.db.engine import get_session_factory, init_engine_from_url
from workshop_kernel.domain.policy import LifecyclePolicy
from workshop_kernel.logging_config import configure_logging
from workshop_kernel.services.retry import run_in_transaction

T = TypeVar("T")


def build_lifecycle_policy(settings: KernelSettings) -> LifecyclePolicy:
    return LifecyclePolicy(
        auto_issue_on_create=settings.lifecycle.auto_issue_on_create,
        require_part_for_quantity=settings.lifecycle.require_part_for_quantity,
    )


def init_engine(settings: KernelSettings) -> Engine:
    db = settings.database
    return init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
    )


def configure_kernel_logging(settings: KernelSettings, **kwargs) -> None:
    configure_logging(level=logging.getLevelName(settings.logging.level), **kwargs)


def run_with_retry(settings: KernelSettings, fn: Callable[[Session], T]) -> T:
    """run_in_transaction() with the configured attempts and backoff,
    on the engine set up by init_engine()."""
    return run_in_transaction(
        get_session_factory(),
        fn,
        max_attempts=settings.retry.max_attempts,
        backoff_seconds=settings.retry.backoff_seconds,
    )
