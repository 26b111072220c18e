from fastapi import APIRouter
from medinexa.api.v1 import clinics, appointments, queue

api_router = APIRouter()

api_router.include_router(clinics.router, prefix="/clinics", tags=["clinics"])
api_router.include_router(appointments.router, prefix="/appointments", tags=["appointments"])
api_router.include_router(queue.router, prefix="/queue", tags=["queue"])
