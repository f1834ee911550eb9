from fastapi import APIRouter
from telecare.api.v1.auth import routes as auth
from telecare.api.v1.bookings import routes as bookings
from telecare.api.v1.lab import routes as lab
from telecare.api.v1.users import routes as users

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(bookings.router, prefix="/bookings", tags=["bookings"])
api_router.include_router(lab.router, prefix="/lab-tests", tags=["lab-tests"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
