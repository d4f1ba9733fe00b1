"""Domain entities for the resource catalog.

These are pure domain objects with no infrastructure dependencies.
Four resource kinds share a common shape (identity, natural key,
kind-specific status, project, notes, audit stamps) and differ in how
they may be assigned:

- Asset and SimCard are exclusive: at most one active holder.
- Accessory is a quantity resource: a stock of identical units.
- SoftwareLicense is seat-limited: a cap on concurrent holders.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import ClassVar, Optional
from uuid import uuid4


def utcnow() -> datetime:
    """Current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate a new entity identifier."""
    return str(uuid4())


def normalize_key(value: Optional[str]) -> str:
    """Normalize a natural key or name for case-insensitive comparison."""
    if value is None:
        return ""
    return str(value).strip().lower()


def sim_natural_key(account_no: Optional[str], service_no: Optional[str]) -> str:
    """Composite natural key of a SIM card (account number + service number)."""
    return f"{normalize_key(account_no)}|{normalize_key(service_no)}"


class AssignmentPolicyKind(str, Enum):
    """How concurrent assignments of a resource are bounded."""

    EXCLUSIVE = "exclusive"  # One active holder at a time
    QUANTITY = "quantity"  # Units drawn from a stock, one row per holder
    SEAT_LIMITED = "seat_limited"  # One row per holder, capped holder count


class ResourceKind(str, Enum):
    """Resource kinds tracked by the catalog."""

    ASSET = "asset"
    ACCESSORY = "accessory"
    SIM_CARD = "sim_card"
    SOFTWARE_LICENSE = "software_license"

    @property
    def policy(self) -> AssignmentPolicyKind:
        return _KIND_POLICIES[self]

    @property
    def label(self) -> str:
        return _KIND_LABELS[self]


_KIND_POLICIES = {
    ResourceKind.ASSET: AssignmentPolicyKind.EXCLUSIVE,
    ResourceKind.SIM_CARD: AssignmentPolicyKind.EXCLUSIVE,
    ResourceKind.ACCESSORY: AssignmentPolicyKind.QUANTITY,
    ResourceKind.SOFTWARE_LICENSE: AssignmentPolicyKind.SEAT_LIMITED,
}

_KIND_LABELS = {
    ResourceKind.ASSET: "Asset",
    ResourceKind.ACCESSORY: "Accessory",
    ResourceKind.SIM_CARD: "SIM card",
    ResourceKind.SOFTWARE_LICENSE: "Software license",
}


class ActiveStatus(str, Enum):
    """Generic active/inactive status (accessories, employees, projects)."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class AssetStatus(str, Enum):
    """Lifecycle status of a physical asset."""

    AVAILABLE = "available"
    ASSIGNED = "assigned"  # Cached from the active assignment
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class SimCardStatus(str, Enum):
    """Service status of a SIM card."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"
    EXPIRED = "expired"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SimCardStatus":
        """Parse free text into a status, defaulting to ACTIVE."""
        text = normalize_key(value)
        for status in cls:
            if status.value == text:
                return status
        return cls.ACTIVE


class LicenseStatus(str, Enum):
    """Status of a software license."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    EXPIRED = "expired"


# ============================================
# Resources
# ============================================

@dataclass
class Resource(ABC):
    """Common shape of every catalog resource.

    Subclasses define ``kind``, the natural key, assignability, and how
    the cached assignment status is kept in sync.
    """

    id: str = field(default_factory=new_id)
    name: str = ""
    project_id: Optional[str] = None
    notes: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    created_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    updated_by: Optional[str] = None

    kind: ClassVar[ResourceKind]

    @property
    @abstractmethod
    def natural_key(self) -> str:
        """Normalized key used to match import rows to existing records."""

    @property
    def display_name(self) -> str:
        return self.name or self.natural_key

    @property
    def status_label(self) -> str:
        return self.status.value  # type: ignore[attr-defined]

    @property
    @abstractmethod
    def is_assignable(self) -> bool:
        """Whether the kind-specific status allows a new assignment."""

    def touch(self, actor_id: Optional[str], at: Optional[datetime] = None) -> None:
        """Stamp the update audit fields."""
        self.updated_at = at or utcnow()
        self.updated_by = actor_id

    def mark_assigned(self, employee_id: str, actor_id: Optional[str]) -> None:
        """Update the cached assignment state after a new active assignment."""
        self.touch(actor_id)

    def mark_released(self, actor_id: Optional[str]) -> None:
        """Update the cached assignment state after the last return."""
        self.touch(actor_id)


@dataclass
class Asset(Resource):
    """A physical, individually tagged asset."""

    asset_tag: str = ""
    description: Optional[str] = None
    serial_number: Optional[str] = None
    status: AssetStatus = AssetStatus.AVAILABLE
    condition: Optional[str] = None
    item_id: Optional[str] = None
    location: Optional[str] = None
    po_number: Optional[str] = None

    kind: ClassVar[ResourceKind] = ResourceKind.ASSET

    @property
    def natural_key(self) -> str:
        return normalize_key(self.asset_tag)

    @property
    def display_name(self) -> str:
        return self.asset_tag or self.name

    @property
    def is_assignable(self) -> bool:
        return self.status == AssetStatus.AVAILABLE

    def mark_assigned(self, employee_id: str, actor_id: Optional[str]) -> None:
        self.status = AssetStatus.ASSIGNED
        self.touch(actor_id)

    def mark_released(self, actor_id: Optional[str]) -> None:
        if self.status == AssetStatus.ASSIGNED:
            self.status = AssetStatus.AVAILABLE
        self.touch(actor_id)


@dataclass
class Accessory(Resource):
    """A stock of interchangeable units (e.g., headsets, chargers).

    ``stock`` is the total number of units; None leaves stock untracked.
    """

    description: Optional[str] = None
    status: ActiveStatus = ActiveStatus.ACTIVE
    stock: Optional[int] = None

    kind: ClassVar[ResourceKind] = ResourceKind.ACCESSORY

    @property
    def natural_key(self) -> str:
        return normalize_key(self.name)

    @property
    def is_assignable(self) -> bool:
        return self.status == ActiveStatus.ACTIVE


@dataclass
class SimCard(Resource):
    """A SIM card, identified by account number and service number."""

    account_no: str = ""
    service_no: str = ""
    serial_no: Optional[str] = None
    start_date: Optional[date] = None
    status: SimCardStatus = SimCardStatus.ACTIVE
    sim_type_id: Optional[str] = None
    sim_provider_id: Optional[str] = None
    sim_card_plan_id: Optional[str] = None
    assigned_to: Optional[str] = None  # Cached holder (employee id)

    kind: ClassVar[ResourceKind] = ResourceKind.SIM_CARD

    @property
    def natural_key(self) -> str:
        return sim_natural_key(self.account_no, self.service_no)

    @property
    def display_name(self) -> str:
        return self.account_no or self.name

    @property
    def is_assignable(self) -> bool:
        return self.status == SimCardStatus.ACTIVE and not self.assigned_to

    @property
    def status_label(self) -> str:
        if self.assigned_to:
            return f"{self.status.value} (assigned)"
        return self.status.value

    def mark_assigned(self, employee_id: str, actor_id: Optional[str]) -> None:
        self.assigned_to = employee_id
        self.touch(actor_id)

    def mark_released(self, actor_id: Optional[str]) -> None:
        self.assigned_to = None
        self.touch(actor_id)


@dataclass
class SoftwareLicense(Resource):
    """A software license; ``name`` holds the software name.

    ``seats`` caps concurrent holders; None means unlimited.
    """

    license_key: Optional[str] = None
    license_type: Optional[str] = None
    seats: Optional[int] = None
    vendor: Optional[str] = None
    purchase_date: Optional[date] = None
    expiry_date: Optional[date] = None
    cost: Optional[Decimal] = None
    status: LicenseStatus = LicenseStatus.ACTIVE
    po_number: Optional[str] = None

    kind: ClassVar[ResourceKind] = ResourceKind.SOFTWARE_LICENSE

    @property
    def software_name(self) -> str:
        return self.name

    @property
    def natural_key(self) -> str:
        return normalize_key(self.license_key or self.name)

    @property
    def is_assignable(self) -> bool:
        return self.status == LicenseStatus.ACTIVE


RESOURCE_TYPES: dict[ResourceKind, type[Resource]] = {
    ResourceKind.ASSET: Asset,
    ResourceKind.ACCESSORY: Accessory,
    ResourceKind.SIM_CARD: SimCard,
    ResourceKind.SOFTWARE_LICENSE: SoftwareLicense,
}


# ============================================
# Master data and people
# ============================================

class MasterDataKind(str, Enum):
    """Lookup tables that imports resolve names against."""

    ITEM_CATEGORY = "item_category"
    ITEM = "item"
    SIM_PROVIDER = "sim_provider"
    SIM_TYPE = "sim_type"
    SIM_CARD_PLAN = "sim_card_plan"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


@dataclass
class NamedEntity:
    """A master-data row addressable by id and by name.

    ``parent_id`` links an item to its category and a SIM card plan to
    its provider.
    """

    kind: MasterDataKind
    name: str
    id: str = field(default_factory=new_id)
    parent_id: Optional[str] = None
    description: Optional[str] = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utcnow)
    created_by: Optional[str] = None

    @property
    def key(self) -> str:
        return normalize_key(self.name)


@dataclass
class Employee:
    """An employee who can hold resources.

    ``employee_code`` is the business identifier used by spreadsheets.
    """

    employee_code: str
    id: str = field(default_factory=new_id)
    first_name: str = ""
    last_name: str = ""
    email: Optional[str] = None
    status: ActiveStatus = ActiveStatus.ACTIVE

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_active(self) -> bool:
        return self.status == ActiveStatus.ACTIVE


@dataclass
class Project:
    """A project resources can be allocated to."""

    code: str
    name: str = ""
    id: str = field(default_factory=new_id)
    status: ActiveStatus = ActiveStatus.ACTIVE
