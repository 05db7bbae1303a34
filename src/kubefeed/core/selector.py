# src/kubefeed/core/selector.py
"""
Resolves which selection mechanism governs a target object.

A target may carry a deprecated label selector, a target reference, both or
neither. `decide_selector` maps those four cases to the selector stored in the
cluster state and to the status conditions surfaced to the user. It has no
state and performs no I/O; `SelectorResolver` wraps it with the two fetchers.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from ..collectors.selector_fetcher import BaseSelectorFetcher
from ..models.cluster import ConditionType
from ..models.selector import LabelSelector
from ..models.specs import TargetObject

logger = logging.getLogger(__name__)

BOTH_SELECTORS_MESSAGE = "Both targetRef and label selector defined. Please remove label selector"
LEGACY_ONLY_MESSAGE = "Label selector is no longer supported, please migrate to targetRef"
NO_TARGET_REF_MESSAGE = "Cannot read targetRef"


class ConditionChange(BaseModel):
    """Either sets a condition with a message or clears it."""

    model_config = ConfigDict(frozen=True)

    condition_type: ConditionType
    delete: bool
    message: str = ""


class SelectorResolution(BaseModel):
    selector: LabelSelector
    conditions: List[ConditionChange]
    legacy_present: bool = False


def _set(condition_type: ConditionType, message: str) -> ConditionChange:
    return ConditionChange(condition_type=condition_type, delete=False, message=message)


def _clear(condition_type: ConditionType) -> ConditionChange:
    return ConditionChange(condition_type=condition_type, delete=True)


def decide_selector(
    selector: Optional[LabelSelector],
    legacy_selector: Optional[LabelSelector],
    fetch_error: Optional[Exception] = None,
) -> SelectorResolution:
    """
    Decision table over (target-reference selector present, legacy selector present).

    `fetch_error` is the error raised by the target-reference fetcher, if any;
    it only affects the message of the "neither" case.
    """
    legacy_present = legacy_selector is not None

    if selector is not None:
        if legacy_present:
            return SelectorResolution(
                selector=LabelSelector.nothing(),
                conditions=[
                    _set(ConditionType.CONFIG_UNSUPPORTED, BOTH_SELECTORS_MESSAGE),
                    _clear(ConditionType.CONFIG_DEPRECATED),
                ],
                legacy_present=True,
            )
        return SelectorResolution(
            selector=selector,
            conditions=[
                _clear(ConditionType.CONFIG_UNSUPPORTED),
                _clear(ConditionType.CONFIG_DEPRECATED),
            ],
        )

    if legacy_present:
        return SelectorResolution(
            selector=LabelSelector.nothing(),
            conditions=[
                _set(ConditionType.CONFIG_UNSUPPORTED, LEGACY_ONLY_MESSAGE),
                _clear(ConditionType.CONFIG_DEPRECATED),
            ],
            legacy_present=True,
        )

    message = NO_TARGET_REF_MESSAGE
    if fetch_error is not None:
        message = f"{NO_TARGET_REF_MESSAGE}. Reason: {fetch_error}"
    return SelectorResolution(
        selector=LabelSelector.nothing(),
        conditions=[
            _set(ConditionType.CONFIG_UNSUPPORTED, message),
            _clear(ConditionType.CONFIG_DEPRECATED),
        ],
    )


class SelectorResolver:
    """Queries both selector sources for a target and applies `decide_selector`."""

    def __init__(self, legacy_fetcher: BaseSelectorFetcher, selector_fetcher: BaseSelectorFetcher):
        self.legacy_fetcher = legacy_fetcher
        self.selector_fetcher = selector_fetcher

    async def resolve(self, target: TargetObject) -> SelectorResolution:
        legacy_selector = None
        try:
            legacy_selector = await self.legacy_fetcher.fetch(target)
        except Exception as e:
            logger.error("Error while fetching legacy selector for %s/%s. Reason: %s", target.namespace, target.name, e)

        selector = None
        fetch_error = None
        try:
            selector = await self.selector_fetcher.fetch(target)
        except Exception as e:
            fetch_error = e
            logger.error(
                "Cannot get target selector from targetRef of %s/%s. Reason: %s", target.namespace, target.name, e
            )

        resolution = decide_selector(selector, legacy_selector, fetch_error)
        logger.info("Using selector %s for target %s/%s", resolution.selector, target.namespace, target.name)
        return resolution
