import enum
from dataclasses import dataclass
from datetime import datetime

from imobcrm.models.automation import LeadAutomationConfig
from imobcrm.models.cliente import Cliente


class SlaLevel(str, enum.Enum):
    ok = "ok"
    warning = "warning"
    critical = "critical"
    expired = "expired"
    contacted = "contacted"


@dataclass(frozen=True)
class SlaStatus:
    level: SlaLevel
    elapsed_minutes: float
    limit_minutes: int
    consumed: float


def first_contact_sla(cliente: Cliente, config: LeadAutomationConfig, now: datetime | None = None) -> SlaStatus:
    """Share of the first-contact window consumed by a cliente nobody has contacted yet."""
    limit = max(int(config.first_contact_sla or 0), 1)
    end = cliente.first_contact_at or now or datetime.utcnow()
    elapsed = max((end - cliente.created_at).total_seconds() / 60, 0.0)
    consumed = elapsed / limit

    if cliente.first_contact_at is not None:
        level = SlaLevel.contacted
    elif consumed >= 1:
        level = SlaLevel.expired
    elif consumed * 100 >= config.critical_percentage:
        level = SlaLevel.critical
    elif consumed * 100 >= config.warning_percentage:
        level = SlaLevel.warning
    else:
        level = SlaLevel.ok

    return SlaStatus(level=level, elapsed_minutes=round(elapsed, 2), limit_minutes=limit, consumed=round(consumed, 4))
