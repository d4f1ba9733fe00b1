"""Resource Catalog Module.

Read/upsert view over four resource kinds (assets, accessories, SIM cards,
software licenses) plus the master data, employees and projects they
reference.

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
