from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.engine import Engine

from carmarket.dependencies import get_actor, get_db_engine, get_notifier, get_object_store
from carmarket.errors import MarketplaceError
from carmarket.network.notifier import Notifier
from carmarket.network.object_store import ObjectStore
from carmarket.routes._listing_helpers import (
    archive_result_to_dict,
    query_params_to_dict,
    raise_http_error,
)
from carmarket.schemas.listings import (
    BoostPayload,
    ListingCreatePayload,
    ListingUpdatePayload,
    MarkSoldPayload,
)
from carmarket.services import listings as listing_service
from carmarket.services import owners as owner_service
from carmarket.services.listings import Actor
from carmarket.services.search import count_visible_by_make, search_listings

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/listings", status_code=status.HTTP_200_OK)
def search(request: Request, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    """
    Search visible listings.

    Filters are taken from the query string (see ``compile_query``), plus
    ``page``, ``limit`` (max 50), ``sort`` and ``order``.

    Returns:
        dict: ``listings`` and a ``pagination`` block
    """
    try:
        page = search_listings(engine, query_params_to_dict(request))
        return {
            "listings": page.items,
            "pagination": {
                "total": page.total,
                "page": page.page,
                "limit": page.limit,
                "pages": page.pages,
            },
        }
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_search_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/makes", status_code=status.HTTP_200_OK)
def listing_makes(engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    """Visible listing counts per make, most listings first."""
    try:
        return {"makes": count_visible_by_make(engine)}
    except Exception as e:
        logger.exception("listing_make_counts_failed", error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/mine", status_code=status.HTTP_200_OK)
def my_listings(
    listing_status: Optional[str] = Query(
        None, alias="status", description="active, sold, expired or all"
    ),
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    owner_id: Optional[int] = Query(None, alias="ownerId", description="Admins only"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    The caller's listings, newest first, with per-status counts.

    Returns:
        dict: ``listings``, ``pagination`` and ``stats``
    """
    try:
        return owner_service.list_owner_listings(
            engine, actor, listing_status, page=page, limit=limit, owner_id=owner_id
        )
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("owner_listings_failed", user_id=actor.user_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/history", status_code=status.HTTP_200_OK)
def listing_history(
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    seller_id: Optional[int] = Query(None, alias="sellerId", description="Admins only"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """Archived listings of the caller (or, for admins, of ``sellerId``)."""
    try:
        return owner_service.get_listing_history(
            engine, actor, seller_id, page=page, limit=limit
        )
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_history_failed", user_id=actor.user_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/listings/{listing_id}", status_code=status.HTTP_200_OK)
def get_listing(listing_id: int, engine: Engine = Depends(get_db_engine)) -> dict[str, Any]:
    try:
        return listing_service.get_listing_details(engine, listing_id)
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_fetch_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/listings", status_code=status.HTTP_201_CREATED)
def create_listing(
    payload: ListingCreatePayload,
    force: bool = Query(False, description="Post even if a similar listing exists"),
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    """
    Create a listing owned by the caller.

    Returns 409 with ``similar_listings`` when the caller posted a
    near-identical vehicle in the last 30 days; resubmit with ``force=true``.
    """
    try:
        return listing_service.create_listing(
            engine, actor, payload.model_dump(exclude_none=True), force=force
        )
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_creation_failed", user_id=actor.user_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.patch("/listings/{listing_id}", status_code=status.HTTP_200_OK)
def edit_listing(
    listing_id: int,
    payload: ListingUpdatePayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        return listing_service.edit_listing(
            engine, actor, listing_id, payload.model_dump(exclude_unset=True)
        )
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_edit_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/listings/{listing_id}/sold", status_code=status.HTTP_200_OK)
def mark_sold(
    listing_id: int,
    payload: MarkSoldPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
    notifier: Notifier = Depends(get_notifier),
) -> dict[str, Any]:
    try:
        return listing_service.mark_sold(
            engine, actor, listing_id, payload.actual_sale_price, notifier=notifier
        )
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_mark_sold_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/listings/{listing_id}/available", status_code=status.HTTP_200_OK)
def mark_available(
    listing_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        return listing_service.mark_available(engine, actor, listing_id)
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_mark_available_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/listings/{listing_id}/relist", status_code=status.HTTP_201_CREATED)
def relist(
    listing_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        return listing_service.relist(engine, actor, listing_id)
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_relist_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.post("/listings/{listing_id}/boost", status_code=status.HTTP_200_OK)
def boost(
    listing_id: int,
    payload: BoostPayload,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
) -> dict[str, Any]:
    try:
        return listing_service.boost_listing(
            engine, actor, listing_id, payload.days, payload.priority
        )
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_boost_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")


@router.delete("/listings/{listing_id}", status_code=status.HTTP_200_OK)
def delete_listing(
    listing_id: int,
    actor: Actor = Depends(get_actor),
    engine: Engine = Depends(get_db_engine),
    object_store: ObjectStore = Depends(get_object_store),
    notifier: Notifier = Depends(get_notifier),
) -> dict[str, Any]:
    """
    Archive and remove a listing.

    Image cleanup is best effort: the listing is removed even when some of
    its images could not be deleted from the object store.
    """
    try:
        result = listing_service.delete_listing(
            engine, actor, listing_id, object_store, notifier=notifier
        )
        return {"message": f"Listing {listing_id} deleted", **archive_result_to_dict(result)}
    except MarketplaceError as e:
        raise_http_error(e)
    except Exception as e:
        logger.exception("listing_delete_failed", listing_id=listing_id, error=str(e))
        raise HTTPException(status_code=500, detail="Internal server error")
