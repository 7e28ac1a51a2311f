from ticketbay.schemas.booking import BookingCreate, BookingResponse
from ticketbay.schemas.catalog import CatalogItemCreate, CatalogItemResponse, CatalogListResponse
from ticketbay.schemas.inventory import HoldRequest, HoldResponse, SeatMapResponse
from ticketbay.schemas.notification import NotificationResponse
from ticketbay.schemas.wallet import WalletResponse, WalletTransactionResponse

__all__ = [
    "BookingCreate", "BookingResponse",
    "CatalogItemCreate", "CatalogItemResponse", "CatalogListResponse",
    "HoldRequest", "HoldResponse", "SeatMapResponse",
    "NotificationResponse",
    "WalletResponse", "WalletTransactionResponse",
]
