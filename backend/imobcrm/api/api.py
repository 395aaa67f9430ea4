from fastapi import APIRouter

from imobcrm.api.routes import appointments, audit, auth, automation, clientes, dashboard, goals, reports, sales, visits, whatsapp

api_router = APIRouter()
api_router.include_router(auth.router)
api_router.include_router(dashboard.router)
api_router.include_router(clientes.router)
api_router.include_router(appointments.router)
api_router.include_router(visits.router)
api_router.include_router(sales.router)
api_router.include_router(goals.router)
api_router.include_router(automation.router)
api_router.include_router(whatsapp.router)
api_router.include_router(reports.router)
api_router.include_router(audit.router)
