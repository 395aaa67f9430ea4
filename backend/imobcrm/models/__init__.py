from imobcrm.models.user import User, UserDepartment, UserRole
from imobcrm.models.cliente import Cliente, ClienteNote, ClienteSource, ClienteStatus, ContactMethod
from imobcrm.models.appointment import Appointment, AppointmentStatus, AppointmentType
from imobcrm.models.visit import Visit
from imobcrm.models.sale import Sale
from imobcrm.models.goal import Goal
from imobcrm.models.automation import DistributionMethod, LeadAutomationConfig
from imobcrm.models.whatsapp import InstanceState, WhatsappInstance
from imobcrm.models.audit import AuditLog

__all__ = [
    "User",
    "UserDepartment",
    "UserRole",
    "Cliente",
    "ClienteNote",
    "ClienteSource",
    "ClienteStatus",
    "ContactMethod",
    "Appointment",
    "AppointmentStatus",
    "AppointmentType",
    "Visit",
    "Sale",
    "Goal",
    "DistributionMethod",
    "LeadAutomationConfig",
    "InstanceState",
    "WhatsappInstance",
    "AuditLog",
]
