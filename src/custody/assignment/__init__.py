"""Assignment Ledger Module.

This module owns the custody lifecycle of every catalog resource:
- Assign a resource to an employee
- Return it in full, or partially for accessories
- Transfer it between employees in one unit of work
- Read the custody history of a resource or an employee

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
