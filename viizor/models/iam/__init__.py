"""
IAM models for viizor.

Only the user record is modelled; sign-up, login and tokens belong to the
external identity provider.
"""

from .enums import Plan
from .users import User

__all__ = [
    "Plan",
    "User",
]
