from ticketbay.models.booking import Booking, BookingStatus, PaymentMethod, PaymentStatus
from ticketbay.models.catalog import CatalogItem, ItemType, SeatLayout
from ticketbay.models.inventory import CapacityCounter, InventoryUnit, UnitKind, UnitStatus
from ticketbay.models.notification import Notification
from ticketbay.models.wallet import PaymentOrder, TransactionType, WalletAccount, WalletTransaction

__all__ = [
    "Booking", "BookingStatus", "PaymentMethod", "PaymentStatus",
    "CatalogItem", "ItemType", "SeatLayout",
    "CapacityCounter", "InventoryUnit", "UnitKind", "UnitStatus",
    "Notification",
    "PaymentOrder", "TransactionType", "WalletAccount", "WalletTransaction",
]
