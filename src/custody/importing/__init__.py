"""Bulk Import Module.

This module reconciles spreadsheet batches into the catalog:
- Parse asset and SIM card spreadsheets (Excel or CSV)
- Auto-create missing master data once per batch
- Upsert resources by natural key with per-row fault isolation
- Attach imported resources to their assignees

Architecture: Clean Architecture with Hexagonal (Ports & Adapters)
"""
