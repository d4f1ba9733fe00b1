"""Domain layer for the resource catalog.

Contains:
- Entities: resource kinds, master data, employees, projects
- Ports: Interface definitions for storage adapters
"""

from .entities import (
    RESOURCE_TYPES,
    Accessory,
    ActiveStatus,
    Asset,
    AssetStatus,
    AssignmentPolicyKind,
    Employee,
    LicenseStatus,
    MasterDataKind,
    NamedEntity,
    Project,
    Resource,
    ResourceKind,
    SimCard,
    SimCardStatus,
    SoftwareLicense,
    new_id,
    normalize_key,
    sim_natural_key,
    utcnow,
)
from .ports import IMasterDataRepository, IResourceCatalog

__all__ = [
    # Entities
    "Resource",
    "Asset",
    "Accessory",
    "SimCard",
    "SoftwareLicense",
    "RESOURCE_TYPES",
    "ResourceKind",
    "AssignmentPolicyKind",
    "ActiveStatus",
    "AssetStatus",
    "SimCardStatus",
    "LicenseStatus",
    "MasterDataKind",
    "NamedEntity",
    "Employee",
    "Project",
    "new_id",
    "normalize_key",
    "sim_natural_key",
    "utcnow",
    # Ports
    "IResourceCatalog",
    "IMasterDataRepository",
]
