"""Resilient submission core for Costa Rica's Hacienda electronic invoicing API.

Authenticates against the Hacienda IDP, submits signed documents, polls them
to a terminal status and allocates per-point-of-sale sequence numbers.
"""

from hacienda.client import HaciendaClient

__all__ = ["HaciendaClient"]
