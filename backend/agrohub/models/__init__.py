"""Aggregate model imports so every table is registered on Base.metadata."""

from agrohub.models.user import User, UserRole  # noqa: F401

# Ownership chain: farm → field → crop / livestock, farm → parcel
from agrohub.models.farm import Farm  # noqa: F401
from agrohub.models.field import Field  # noqa: F401
from agrohub.models.parcel import Parcel  # noqa: F401
from agrohub.models.crop import Crop  # noqa: F401
from agrohub.models.livestock import Livestock  # noqa: F401

# Dual-path (chain or direct owner_id)
from agrohub.models.harvest import Harvest  # noqa: F401
from agrohub.models.inventory_item import InventoryItem  # noqa: F401
from agrohub.models.finance_record import FinanceRecord, FinanceType  # noqa: F401

# Shared catalog
from agrohub.models.veterinary_supply import VeterinarySupply  # noqa: F401
