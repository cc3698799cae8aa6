from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class QueryResultType(str, Enum):
    SUCCESS = "Success"
    PRODUCT_NOT_FOUND = "ProductNotFound"
    ATTRIBUTE_NOT_FOUND = "AttributeNotFound"
    INVALID_QUERY = "InvalidQuery"
    SYSTEM_ERROR = "SystemError"


class ApiModel(BaseModel):
    """Base for payloads serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class QueryRequest(ApiModel):
    """Request payload for the query API."""
    query: str = ""
    conversation_id: Optional[str] = Field(default=None)


class ProductDetails(ApiModel):
    """Structured attribute answer attached to successful queries."""
    product_name: str
    attribute: str
    value: str
    unit: str = ""
    all_attributes: Dict[str, str] = Field(default_factory=dict)


class QueryResponse(ApiModel):
    """Result of one query, whatever the outcome."""
    success: bool
    message: str
    result_type: QueryResultType
    answer: Optional[str] = None
    conversation_id: Optional[str] = None
    suggestions: Optional[List[str]] = None
    product_details: Optional[ProductDetails] = None


class ConversationStartResponse(ApiModel):
    conversation_id: str
    created_at: datetime


class ProductAttributeResponse(ApiModel):
    """Direct attribute lookup result."""
    found: bool
    product_details: Optional[ProductDetails] = None
    available_attributes: List[str] = Field(default_factory=list)


class SimilarProductsResponse(ApiModel):
    similar_products: List[str] = Field(default_factory=list)

    @computed_field(alias="hasSuggestions")
    @property
    def has_suggestions(self) -> bool:
        return bool(self.similar_products)


class HealthResponse(ApiModel):
    status: str
    timestamp: datetime
    version: str


class ErrorResponse(ApiModel):
    success: bool = False
    message: str
    timestamp: datetime
