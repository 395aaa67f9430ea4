from imobcrm.api.routes import appointments, audit, auth, automation, clientes, dashboard, goals, reports, sales, visits, whatsapp

__all__ = [
    "auth",
    "dashboard",
    "clientes",
    "appointments",
    "visits",
    "sales",
    "goals",
    "automation",
    "whatsapp",
    "reports",
    "audit",
]
