"""SQLAlchemy models."""
from apps.backend.models.tenant import Tenant, ChannelGate
from apps.backend.models.membership import TenantMembership
from apps.backend.models.platform_user import PlatformUser

__all__ = [
    "Tenant",
    "ChannelGate",
    "TenantMembership",
    "PlatformUser",
]
