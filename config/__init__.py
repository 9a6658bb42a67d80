"""
Configuration package.

Public API:
- Settings / load_settings (environment)
- LOCATIONS and per-location reference tables
- SAME_DAY_RULES / NEXT_DAY_RULES cutoff tables
"""
from .settings import Settings, ConfigurationError, load_settings, recipients_for
from .locations import LOCATIONS, LOCATION_TIMEZONES, PICKUP_ADDRESSES, AUSPOST_ACCOUNTS
from .cutoffs import PickupSlot, NextDayCutoff, SAME_DAY_RULES, NEXT_DAY_RULES, WEEKDAYS

__all__ = ["Settings",
           "ConfigurationError",
             "load_settings",
             "recipients_for",
               "LOCATIONS",
               "LOCATION_TIMEZONES",
               "PICKUP_ADDRESSES",
               "AUSPOST_ACCOUNTS",
               "PickupSlot",
               "NextDayCutoff",
               "SAME_DAY_RULES",
               "NEXT_DAY_RULES",
               "WEEKDAYS"
               ]
