"""
Product catalog service.

CRUD, categories, analytics, bulk import and keyword search. Search is a
deterministic weighted substring scorer over the user's catalog; there is no
embedding or vector step.
"""

import re
import time
from typing import Any, Dict, Iterable, List, Optional, Tuple

from fastapi import Depends
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from neuraslide.db.models import ProductCategoryModel, ProductModel
from neuraslide.db.repositories.base import BaseRepository
from neuraslide.infrastructure.config import Settings, get_settings
from neuraslide.infrastructure.database import Database, get_database
from neuraslide.infrastructure.exceptions import AuthorizationError, ConflictError, NotFoundError
from neuraslide.models.common import Pagination
from neuraslide.models.product import (
    AvailabilityBreakdown,
    BulkImportError,
    BulkImportResult,
    Category,
    CategoryBreakdown,
    CategoryCreate,
    Product,
    ProductAnalytics,
    ProductCreate,
    ProductSearchRequest,
    ProductUpdate,
    SearchResponse,
    SearchResult,
    TopSearchedProduct,
)
from neuraslide.validators.product import product_errors

logger = structlog.get_logger()

_products = BaseRepository(ProductModel)
_categories = BaseRepository(ProductCategoryModel)

PRODUCT_LIMIT_MESSAGE = "You have reached your product limit. Upgrade your plan to add more products."

# Field weights for relevance scoring
NAME_WEIGHT = 10.0
DESCRIPTION_WEIGHT = 5.0
CATEGORY_WEIGHT = 3.0
TAG_WEIGHT = 2.0
POPULARITY_CAP = 5.0

MAX_SUGGESTIONS = 5


# ============================================
# SCORING
# ============================================

def _contains(text: Optional[str], query: str) -> bool:
    return bool(text) and query in text.lower()


def get_matched_fields(product: Any, query: str) -> List[str]:
    """Fields of ``product`` containing ``query`` (case-insensitive)."""
    q = query.strip().lower()
    matched = []
    if _contains(product.name, q):
        matched.append("name")
    if _contains(product.description, q):
        matched.append("description")
    if _contains(product.category, q):
        matched.append("category")
    if any(_contains(tag, q) for tag in (product.tags or [])):
        matched.append("tags")
    return matched


def calculate_relevance_score(product: Any, query: str) -> float:
    """
    Weighted substring score for one candidate.

    name +10, description +5, category +3, any tag +2, plus a popularity
    term of ``search_count / 10`` capped at 5. Pure: the same product and
    query always give the same number.
    """
    weights = {
        "name": NAME_WEIGHT,
        "description": DESCRIPTION_WEIGHT,
        "category": CATEGORY_WEIGHT,
        "tags": TAG_WEIGHT,
    }
    score = sum(weights[f] for f in get_matched_fields(product, query))
    score += min((product.search_count or 0) / 10.0, POPULARITY_CAP)
    return score


def highlight_search_terms(text: Optional[str], query: str) -> Optional[str]:
    """Wrap each case-insensitive occurrence of ``query`` in ``**``."""
    if not text or not query.strip():
        return text
    pattern = re.compile(re.escape(query.strip()), re.IGNORECASE)
    return pattern.sub(lambda m: f"**{m.group(0)}**", text)


def generate_search_suggestions(products: Iterable[Any], query: str) -> List[str]:
    """Category and tag refinements drawn from the results, excluding the query itself."""
    q = query.strip().lower()
    suggestions: List[str] = []
    for product in products:
        candidates = [f"Category: {product.category}"] + [f"Tag: {tag}" for tag in (product.tags or [])]
        for candidate in candidates:
            value = candidate.split(": ", 1)[1]
            if value.lower() == q or candidate in suggestions:
                continue
            suggestions.append(candidate)
            if len(suggestions) >= MAX_SUGGESTIONS:
                return suggestions
    return suggestions


def product_to_pydantic(row: ProductModel) -> Product:
    return Product(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        description=row.description,
        category=row.category,
        price=row.price,
        currency=row.currency,
        images=list(row.images or []),
        tags=list(row.tags or []),
        specifications=dict(row.specifications or {}),
        availability=row.availability,
        search_count=row.search_count or 0,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class ProductService:
    """Product catalog owned by a single user."""

    def __init__(self, db: Database, settings: Settings):
        self.db = db
        self.settings = settings

    async def _get_owned(self, session: AsyncSession, user_id: str, product_id: str) -> ProductModel:
        row = await _products.get_owned(session, product_id, user_id)
        if row is None:
            raise NotFoundError("Product not found")
        return row

    # -----------------------------------------------------------------------
    # CRUD
    # -----------------------------------------------------------------------

    async def create_product(self, user_id: str, data: ProductCreate) -> Product:
        async with self.db.session() as session:
            existing = await _products.count(session, {"user_id": user_id})
            if existing >= self.settings.max_products_per_user:
                raise AuthorizationError(PRODUCT_LIMIT_MESSAGE)
            row = await self._insert(session, user_id, data)
            logger.info("product_created", product_id=row.id, user_id=user_id)
            return product_to_pydantic(row)

    async def _insert(self, session: AsyncSession, user_id: str, data: ProductCreate) -> ProductModel:
        return await _products.create(
            session,
            user_id=user_id,
            name=data.name.strip(),
            description=data.description.strip(),
            category=data.category.strip(),
            price=data.price,
            currency=data.currency,
            images=list(data.images),
            tags=list(dict.fromkeys(t.strip() for t in data.tags)),
            specifications=dict(data.specifications),
            availability=data.availability.value,
        )

    async def list_products(
        self,
        user_id: str,
        page: int = 1,
        limit: int = 20,
        category: Optional[str] = None,
        availability: Optional[str] = None,
        search: Optional[str] = None,
    ) -> Tuple[List[Product], Pagination]:
        stmt = select(ProductModel).where(ProductModel.user_id == user_id)
        if category:
            stmt = stmt.where(func.lower(ProductModel.category) == category.strip().lower())
        if availability:
            stmt = stmt.where(ProductModel.availability == availability.upper())
        if search:
            pattern = f"%{search.strip()}%"
            stmt = stmt.where(ProductModel.name.ilike(pattern) | ProductModel.description.ilike(pattern))

        async with self.db.session() as session:
            total = (await session.execute(
                select(func.count()).select_from(stmt.subquery())
            )).scalar_one()
            rows = (await session.execute(
                stmt.order_by(ProductModel.created_at.desc()).offset((page - 1) * limit).limit(limit)
            )).scalars().all()

        return [product_to_pydantic(r) for r in rows], Pagination.build(page, limit, total)

    async def get_product(self, user_id: str, product_id: str) -> Product:
        async with self.db.session() as session:
            return product_to_pydantic(await self._get_owned(session, user_id, product_id))

    async def update_product(self, user_id: str, product_id: str, data: ProductUpdate) -> Product:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, product_id)
            changes = data.model_dump(exclude_none=True)
            if "availability" in changes:
                changes["availability"] = data.availability.value
            if "tags" in changes:
                changes["tags"] = list(dict.fromkeys(t.strip() for t in data.tags))
            for key in ("name", "description", "category"):
                if key in changes:
                    changes[key] = changes[key].strip()
            row = await _products.update(session, row, **changes)
            logger.info("product_updated", product_id=product_id, fields=sorted(changes))
            return product_to_pydantic(row)

    async def delete_product(self, user_id: str, product_id: str) -> None:
        async with self.db.session() as session:
            row = await self._get_owned(session, user_id, product_id)
            await _products.delete(session, row)
        logger.info("product_deleted", product_id=product_id, user_id=user_id)

    # -----------------------------------------------------------------------
    # Search
    # -----------------------------------------------------------------------

    async def search(self, user_id: str, request: ProductSearchRequest) -> SearchResponse:
        """
        Keyword search over the user's catalog.

        Candidates are fetched newest first with the SQL filters applied, kept
        when the query occurs in name, description, category or a tag, then
        stably sorted by descending relevance so ties keep fetch order. The
        search count of every returned product is incremented atomically.
        """
        started = time.perf_counter()
        query = request.query.strip()

        stmt = select(ProductModel).where(ProductModel.user_id == user_id)
        if request.category:
            stmt = stmt.where(func.lower(ProductModel.category) == request.category.strip().lower())
        filters = request.filters
        if filters is not None:
            if filters.price_min is not None:
                stmt = stmt.where(ProductModel.price >= filters.price_min)
            if filters.price_max is not None:
                stmt = stmt.where(ProductModel.price <= filters.price_max)
            if filters.availability is not None:
                stmt = stmt.where(ProductModel.availability == filters.availability.value)
        stmt = stmt.order_by(ProductModel.created_at.desc())

        async with self.db.session() as session:
            candidates = (await session.execute(stmt)).scalars().all()

            scored = []
            for row in candidates:
                matched = get_matched_fields(row, query)
                if matched:
                    scored.append((calculate_relevance_score(row, query), matched, row))
            scored.sort(key=lambda item: item[0], reverse=True)
            total_found = len(scored)
            top = scored[: request.limit]

            results = [
                SearchResult(
                    product=product_to_pydantic(row),
                    relevance_score=round(score, 2),
                    matched_fields=matched,
                    highlights={
                        field: highlight_search_terms(getattr(row, field), query)
                        for field in ("name", "description", "category")
                        if field in matched
                    },
                )
                for score, matched, row in top
            ]

            if top:
                await session.execute(
                    update(ProductModel)
                    .where(ProductModel.id.in_([row.id for _, _, row in top]))
                    .values(search_count=ProductModel.search_count + 1)
                )

        elapsed = round((time.perf_counter() - started) * 1000, 2)
        logger.info("product_search", user_id=user_id, total_found=total_found, search_time_ms=elapsed)
        return SearchResponse(
            results=results,
            total_found=total_found,
            search_time=elapsed,
            suggestions=generate_search_suggestions((row for _, _, row in top), query),
        )

    # -----------------------------------------------------------------------
    # Categories
    # -----------------------------------------------------------------------

    async def list_categories(self, user_id: str) -> List[Category]:
        """Declared categories merged with categories used by products."""
        async with self.db.session() as session:
            declared = await _categories.list(session, filters={"user_id": user_id}, order_by="name")
            counts = (await session.execute(
                select(ProductModel.category, func.count())
                .where(ProductModel.user_id == user_id)
                .group_by(ProductModel.category)
            )).all()

        usage = {name: count for name, count in counts}
        categories: Dict[str, Category] = {}
        for row in declared:
            categories[row.name.lower()] = Category(
                id=row.id,
                name=row.name,
                description=row.description,
                product_count=usage.pop(row.name, 0),
                created_at=row.created_at,
            )
        for name, count in usage.items():
            key = name.lower()
            if key in categories:
                categories[key].product_count += count
            else:
                categories[key] = Category(name=name, product_count=count)

        return sorted(categories.values(), key=lambda c: c.name.lower())

    async def _find_category(self, session: AsyncSession, user_id: str, name: str) -> Optional[ProductCategoryModel]:
        result = await session.execute(
            select(ProductCategoryModel).where(
                ProductCategoryModel.user_id == user_id,
                func.lower(ProductCategoryModel.name) == name.lower(),
            )
        )
        return result.scalar_one_or_none()

    async def create_category(self, user_id: str, data: CategoryCreate) -> Category:
        name = data.name.strip()
        async with self.db.session() as session:
            if await self._find_category(session, user_id, name) is not None:
                raise ConflictError("Category already exists")

            try:
                row = await _categories.create(session, user_id=user_id, name=name, description=data.description)
            except IntegrityError:
                raise ConflictError("Category already exists")
            logger.info("product_category_created", category_id=row.id, user_id=user_id)
            return Category(id=row.id, name=row.name, description=row.description, created_at=row.created_at)

    # -----------------------------------------------------------------------
    # Analytics
    # -----------------------------------------------------------------------

    async def get_analytics(self, user_id: str) -> ProductAnalytics:
        async with self.db.session() as session:
            rows = await _products.list(session, filters={"user_id": user_id}, order_by="-created_at")

        total = len(rows)
        by_category: Dict[str, int] = {}
        availability = AvailabilityBreakdown()
        for row in rows:
            by_category[row.category] = by_category.get(row.category, 0) + 1
            field = row.availability.lower()
            if hasattr(availability, field):
                setattr(availability, field, getattr(availability, field) + 1)

        categories = [
            CategoryBreakdown(name=name, count=count, percentage=round(count * 100.0 / total, 2))
            for name, count in sorted(by_category.items(), key=lambda kv: (-kv[1], kv[0]))
        ]
        top_searched = sorted(
            (r for r in rows if r.search_count), key=lambda r: r.search_count, reverse=True
        )[:10]

        return ProductAnalytics(
            total_products=total,
            categories=categories,
            availability=availability,
            top_searched_products=[
                TopSearchedProduct(product_id=r.id, product_name=r.name, search_count=r.search_count)
                for r in top_searched
            ],
            total_searches=sum(r.search_count or 0 for r in rows),
        )

    # -----------------------------------------------------------------------
    # Bulk import
    # -----------------------------------------------------------------------

    async def bulk_import(
        self,
        user_id: str,
        products: List[Any],
        category_mapping: Optional[Dict[str, str]] = None,
    ) -> BulkImportResult:
        """
        Import many products, validating each row on its own.

        ``category_mapping`` renames incoming categories before validation.
        Rows that fail are reported with their 1-based position; valid rows
        are inserted up to the per-user product limit.
        """
        mapping = category_mapping or {}
        errors: List[BulkImportError] = []
        successful = 0

        async with self.db.session() as session:
            capacity = self.settings.max_products_per_user - await _products.count(session, {"user_id": user_id})

            for index, raw in enumerate(products, start=1):
                item = dict(raw) if isinstance(raw, dict) else raw
                if isinstance(item, dict) and item.get("category") in mapping:
                    item["category"] = mapping[item["category"]]

                check = product_errors(item)
                if not check.is_valid:
                    errors.append(BulkImportError(row=index, error="; ".join(check.errors)))
                    continue
                if successful >= capacity:
                    errors.append(BulkImportError(row=index, error="Product limit reached"))
                    continue

                await self._insert(session, user_id, ProductCreate.model_validate(item))
                successful += 1

        logger.info(
            "product_bulk_import",
            user_id=user_id,
            total=len(products),
            successful=successful,
            failed=len(errors),
        )
        return BulkImportResult(
            total_processed=len(products),
            successful=successful,
            failed=len(errors),
            errors=errors,
        )


def get_product_service(
    db: Database = Depends(get_database),
    settings: Settings = Depends(get_settings),
) -> ProductService:
    return ProductService(db, settings)
