"""
Enumerations for the IAM system.
"""

from enum import Enum


class Plan(str, Enum):
    """Enumeration of subscription plans a user can be on"""

    TRIAL = "trial"
    PRO = "pro"
    ADMIN = "admin"
