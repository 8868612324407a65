"""Source connectors for the policy monitor."""

from .federal_register import FederalRegisterCollector
from .feeds import (
    FeedCollector,
    agency_collector,
    congress_collector,
    eu_commission_collector,
    white_house_collector,
)

__all__ = [
    "FederalRegisterCollector",
    "FeedCollector",
    "agency_collector",
    "congress_collector",
    "eu_commission_collector",
    "white_house_collector",
]
