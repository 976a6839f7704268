"""
Product catalog API endpoints.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Query

from neuraslide.infrastructure.auth import Identity, require_auth
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.responses import created_response, success_response
from neuraslide.models.product import CategoryCreate, ProductCreate, ProductSearchRequest, ProductUpdate
from neuraslide.services.product_service import ProductService, get_product_service
from neuraslide.validators.base import ensure_valid, parse_as
from neuraslide.validators.product import (
    validate_bulk_import,
    validate_create_category,
    validate_create_product,
    validate_list_query,
    validate_search,
    validate_update_product,
)

router = APIRouter()


@router.post("")
async def create_product(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    ensure_valid(validate_create_product(payload))
    product = await service.create_product(identity.user_id, parse_as(ProductCreate, payload))
    return created_response("Product created successfully", product)


@router.get("")
async def list_products(
    page: Optional[int] = Query(None),
    limit: Optional[int] = Query(None),
    category: Optional[str] = Query(None),
    availability: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    ensure_valid(validate_list_query(page, limit, availability))
    products, pagination = await service.list_products(
        identity.user_id,
        page=page or 1,
        limit=limit or 20,
        category=category,
        availability=availability,
        search=search,
    )
    return success_response(
        "Products retrieved successfully",
        {"products": products, "pagination": pagination},
    )


@router.post("/search")
async def search_products(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    """Keyword search ranked by relevance."""
    ensure_valid(validate_search(payload))
    results = await service.search(identity.user_id, parse_as(ProductSearchRequest, payload))
    return success_response("Product search completed successfully", results)


@router.get("/categories")
async def list_categories(
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    categories = await service.list_categories(identity.user_id)
    return success_response("Categories retrieved successfully", {"categories": categories})


@router.post("/categories")
async def create_category(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    ensure_valid(validate_create_category(payload))
    category = await service.create_category(identity.user_id, parse_as(CategoryCreate, payload))
    return created_response("Category created successfully", category)


@router.get("/analytics")
async def get_analytics(
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    analytics = await service.get_analytics(identity.user_id)
    return success_response("Product analytics retrieved successfully", analytics)


@router.post("/bulk-import")
async def bulk_import(
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    settings: Settings = Depends(get_settings),
    service: ProductService = Depends(get_product_service),
):
    """Import products row by row; bad rows are reported, not fatal."""
    ensure_valid(validate_bulk_import(payload, settings.max_bulk_import_items))
    result = await service.bulk_import(identity.user_id, payload["products"], payload.get("categoryMapping"))
    return success_response("Bulk import completed", result)


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    product = await service.get_product(identity.user_id, product_id)
    return success_response("Product retrieved successfully", product)


@router.put("/{product_id}")
async def update_product(
    product_id: str,
    payload: Any = Body(None),
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    ensure_valid(validate_update_product(payload))
    product = await service.update_product(identity.user_id, product_id, parse_as(ProductUpdate, payload))
    return success_response("Product updated successfully", product)


@router.delete("/{product_id}")
async def delete_product(
    product_id: str,
    identity: Identity = Depends(require_auth),
    service: ProductService = Depends(get_product_service),
):
    await service.delete_product(identity.user_id, product_id)
    return success_response("Product deleted successfully")
