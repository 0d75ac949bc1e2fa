"""
M365 DSC Engine
===============
Desired State Configuration resources for Microsoft 365 tenants.
Every resource reconciles one kind of tenant setting against Microsoft
Graph through the same Get / Test / Set / Export contract.

Get, Test and Export never modify the tenant. Set is the only operation
that writes, and issues at most one change per resource instance.
"""

__version__ = "1.0.0"
