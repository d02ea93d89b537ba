"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from provisioner.core.models import Parameters, HostFacts, Resource, Receipt
"""

from provisioner.core.models.facts import HostFacts
from provisioner.core.models.parameters import Parameters
from provisioner.core.models.resource import Receipt, Resource

__all__ = [
    "HostFacts",
    "Parameters",
    "Receipt",
    "Resource",
]
