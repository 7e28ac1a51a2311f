"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter

from ticketbay.api.routes import bookings, catalog, inventory, notifications, wallet

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(catalog.router)
api_router.include_router(inventory.router)
api_router.include_router(bookings.router)
api_router.include_router(wallet.router)
api_router.include_router(notifications.router)
