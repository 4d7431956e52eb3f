"""
Directory Module

Client for the external identity-and-license directory and the admin
account endpoints built on it.
"""

from .graph_client import GraphClient, classify_create_error
from .models import DirectoryAccount, LicenseSku, SubscriptionRecord

__all__ = [
    "GraphClient",
    "classify_create_error",
    "DirectoryAccount",
    "LicenseSku",
    "SubscriptionRecord",
]
