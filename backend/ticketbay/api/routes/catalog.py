"""
Catalog endpoints with Redis caching on list operations.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbay.core.logging import get_logger
from ticketbay.core.security import Principal, require_admin
from ticketbay.db.session import get_db
from ticketbay.models.catalog import ItemType
from ticketbay.schemas.catalog import CapacityResize, CatalogItemCreate, CatalogItemResponse, CatalogListResponse
from ticketbay.schemas.inventory import CapacityResponse
from ticketbay.services.cache_service import get_cached_catalog, invalidate_catalog_cache, set_cached_catalog
from ticketbay.services.catalog_service import (
    available_counts,
    delete_item,
    get_item,
    list_items,
    publish_item,
    resize_capacity,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/catalog", tags=["Catalog"])


def _item_response(item, available: Optional[int]) -> CatalogItemResponse:
    return CatalogItemResponse.model_validate(item).model_copy(update={"available_units": available})


@router.post("/", response_model=CatalogItemResponse, status_code=status.HTTP_201_CREATED)
async def publish_item_endpoint(
    item_data: CatalogItemCreate,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Publish a sellable item and generate its seats or capacity counter. Admin only."""
    item = await publish_item(db, item_data)
    await invalidate_catalog_cache()
    return _item_response(item, item.total_units)


@router.get("/", response_model=CatalogListResponse)
async def list_items_endpoint(
    item_type: Optional[ItemType] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
):
    """
    List upcoming items with pagination.
    Results are cached in Redis and invalidated on every inventory-changing write.
    """
    type_value = item_type.value if item_type else None
    cached = await get_cached_catalog(type_value, page, page_size)
    if cached:
        logger.info("catalog_list_cache_hit", page=page, item_type=type_value)
        cached["cached"] = True
        return CatalogListResponse(**cached)

    items, total = await list_items(db, type_value, page, page_size)
    counts = await available_counts(db, items)

    response_data = {
        "items": [_item_response(item, counts.get(item.id)).model_dump() for item in items],
        "total": total,
        "page": page,
        "page_size": page_size,
        "cached": False,
    }
    await set_cached_catalog(type_value, page, page_size, response_data)
    return CatalogListResponse(**response_data)


@router.get("/{item_id}", response_model=CatalogItemResponse)
async def get_item_endpoint(
    item_id: int,
    db: AsyncSession = Depends(get_db),
):
    """Get a single item. Not cached (carries a live availability count)."""
    item = await get_item(db, item_id)
    counts = await available_counts(db, [item])
    return _item_response(item, counts.get(item.id))


@router.patch("/{item_id}/capacity", response_model=CapacityResponse)
async def resize_capacity_endpoint(
    item_id: int,
    body: CapacityResize,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    counter = await resize_capacity(db, item_id, body.total_units)
    await invalidate_catalog_cache()
    return counter


@router.delete("/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_item_endpoint(
    item_id: int,
    admin: Principal = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Delete an item that has never been booked. Admin only."""
    await delete_item(db, item_id)
    await invalidate_catalog_cache()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
