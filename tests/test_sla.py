from datetime import datetime, timedelta

import pytest

from imobcrm.models.automation import LeadAutomationConfig
from imobcrm.models.cliente import Cliente
from imobcrm.services.sla import SlaLevel, first_contact_sla

CREATED = datetime(2024, 5, 1, 9, 0)


@pytest.fixture
def config():
    return LeadAutomationConfig(first_contact_sla=30, warning_percentage=75, critical_percentage=90)


@pytest.mark.parametrize(
    "minutes, level",
    [(10, SlaLevel.ok), (24, SlaLevel.warning), (28, SlaLevel.critical), (30, SlaLevel.expired), (240, SlaLevel.expired)],
)
def test_levels(config, minutes, level):
    cliente = Cliente(created_at=CREATED)
    status = first_contact_sla(cliente, config, now=CREATED + timedelta(minutes=minutes))
    assert status.level == level
    assert status.limit_minutes == 30
    assert status.elapsed_minutes == minutes


def test_contacted_stops_the_clock(config):
    cliente = Cliente(created_at=CREATED, first_contact_at=CREATED + timedelta(minutes=12))
    status = first_contact_sla(cliente, config, now=CREATED + timedelta(days=3))
    assert status.level == SlaLevel.contacted
    assert status.elapsed_minutes == 12
    assert status.consumed == pytest.approx(0.4)
