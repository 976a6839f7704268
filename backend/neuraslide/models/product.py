"""
Product catalog and keyword search schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from neuraslide.models.common import CamelModel


class Availability(str, Enum):
    IN_STOCK = "IN_STOCK"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    PRE_ORDER = "PRE_ORDER"
    DISCONTINUED = "DISCONTINUED"


class Product(CamelModel):
    id: str
    user_id: str
    name: str
    description: Optional[str] = None
    category: str
    price: float
    currency: str = "USD"
    images: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    specifications: Dict[str, Any] = Field(default_factory=dict)
    availability: Availability = Availability.IN_STOCK
    search_count: int = 0
    created_at: datetime
    updated_at: Optional[datetime] = None


class ProductCreate(CamelModel):
    name: str
    description: str
    category: str
    price: float
    currency: str = "USD"
    images: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    specifications: Dict[str, Any] = Field(default_factory=dict)
    availability: Availability = Availability.IN_STOCK

    @field_validator("currency", "availability", mode="before")
    @classmethod
    def upper_codes(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class ProductUpdate(CamelModel):
    name: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    images: Optional[List[str]] = None
    tags: Optional[List[str]] = None
    specifications: Optional[Dict[str, Any]] = None
    availability: Optional[Availability] = None

    @field_validator("currency", "availability", mode="before")
    @classmethod
    def upper_codes(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


# ============================================
# SEARCH
# ============================================

class SearchFilters(CamelModel):
    # Filter keys arrive in snake_case
    price_min: Optional[float] = Field(default=None, alias="price_min")
    price_max: Optional[float] = Field(default=None, alias="price_max")
    availability: Optional[Availability] = None

    @field_validator("availability", mode="before")
    @classmethod
    def upper_availability(cls, value: Any) -> Any:
        return value.upper() if isinstance(value, str) else value


class ProductSearchRequest(CamelModel):
    query: str
    category: Optional[str] = None
    filters: Optional[SearchFilters] = None
    limit: int = 10


class SearchResult(CamelModel):
    product: Product
    relevance_score: float
    matched_fields: List[str]
    highlights: Dict[str, str] = Field(default_factory=dict)


class SearchResponse(CamelModel):
    results: List[SearchResult]
    total_found: int
    search_time: float
    suggestions: List[str] = Field(default_factory=list)


# ============================================
# CATEGORIES, ANALYTICS, BULK IMPORT
# ============================================

class Category(CamelModel):
    id: Optional[str] = None
    name: str
    description: Optional[str] = None
    product_count: int = 0
    created_at: Optional[datetime] = None


class CategoryCreate(CamelModel):
    name: str
    description: Optional[str] = None


class CategoryBreakdown(CamelModel):
    name: str
    count: int
    percentage: float


class AvailabilityBreakdown(CamelModel):
    in_stock: int = 0
    out_of_stock: int = 0
    pre_order: int = 0
    discontinued: int = 0


class TopSearchedProduct(CamelModel):
    product_id: str
    product_name: str
    search_count: int


class ProductAnalytics(CamelModel):
    total_products: int
    categories: List[CategoryBreakdown]
    availability: AvailabilityBreakdown
    top_searched_products: List[TopSearchedProduct]
    total_searches: int = 0


class BulkImportError(CamelModel):
    row: int
    error: str


class BulkImportResult(CamelModel):
    total_processed: int
    successful: int
    failed: int
    errors: List[BulkImportError] = Field(default_factory=list)
