from __future__ import annotations

import base64
import hashlib
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import List, Optional

from .cache import CacheService
from .catalog import CatalogLoader, Product, ProductIdentifier
from .conversation import ConversationSession, ConversationStore
from .language_service import LanguageService, canonical_attribute
from .models import (
    ConversationStartResponse,
    ProductAttributeResponse,
    ProductDetails,
    QueryResponse,
    QueryResultType,
    SimilarProductsResponse,
)
from .similarity import ProductResolver
from .step_runtime import PipelineStep, StepRunner

logger = logging.getLogger("product_assistant.assistant")

QUERY_CACHE_TTL = timedelta(hours=6)
QUERY_KEY_PREFIX = "query:"
MAX_ATTRIBUTE_SUGGESTIONS = 5

MSG_EMPTY_QUERY = "Query cannot be empty"
MSG_PRODUCT_NOT_SPECIFIED = "Product not specified"
MSG_PRODUCT_NOT_FOUND = "Product not found"
MSG_ATTRIBUTE_NOT_SPECIFIED = "Attribute not specified"
MSG_ATTRIBUTE_NOT_AVAILABLE = "Attribute data not available"
MSG_SUCCESS = "Information retrieved successfully"
MSG_SYSTEM_ERROR = "An error occurred while processing your query"
PRODUCT_HINT = "Please specify an SKF product name (e.g., 6205, 6206-2RS1)"


def build_query_cache_key(query: str, conversation_id: str) -> str:
    """Purpose: Derive the cache key for a (query, conversation) pair.
    Inputs/Outputs: Inputs are the raw query and conversation id; output is
        "query:<16 base64 chars>:<conversation id>".
    Side Effects / State: None; pure function.
    Dependencies: Uses sha256 and base64.
    Failure Modes: None.
    If Removed: Repeated questions are always recomputed.
    Testing Notes: Case and surrounding whitespace must not change the key;
        queries sharing a long prefix must not collide.
    """
    # Only case and outer whitespace are ignored; 12 digest bytes give 16 base64 chars.
    digest = hashlib.sha256(query.strip().lower().encode("utf-8")).digest()
    token = base64.b64encode(digest[:12]).decode("ascii")
    return f"{QUERY_KEY_PREFIX}{token}:{conversation_id}"


@dataclass
class QueryContext:
    """Mutable state threaded through the query pipeline."""
    query: str
    conversation_id: Optional[str] = None
    session: Optional[ConversationSession] = None
    product_name: Optional[str] = None
    attribute_name: Optional[str] = None
    product: Optional[Product] = None
    response: Optional[QueryResponse] = None
    from_cache: bool = False
    trace: List[str] = field(default_factory=list)

    @property
    def done(self) -> bool:
        return self.response is not None

    def log(self, message: str) -> None:
        self.trace.append(message)
        logger.debug("conversation=%s %s", self.conversation_id, message)


def _result(
    result_type: QueryResultType,
    message: str,
    answer: Optional[str] = None,
    suggestions: Optional[List[str]] = None,
    product_details: Optional[ProductDetails] = None,
) -> QueryResponse:
    return QueryResponse(
        success=result_type is QueryResultType.SUCCESS,
        message=message,
        result_type=result_type,
        answer=answer,
        suggestions=suggestions,
        product_details=product_details,
    )


class ProductAssistant:
    """Query orchestrator: catalog, resolver, conversations, cache and language model."""

    def __init__(
        self,
        catalog_loader: CatalogLoader,
        resolver: ProductResolver,
        conversations: ConversationStore,
        cache: CacheService,
        language: LanguageService,
        query_ttl: timedelta = QUERY_CACHE_TTL,
    ) -> None:
        """Purpose: Wire the collaborators and build the query pipeline.
        Inputs/Outputs: Inputs are the service collaborators; no return value.
        Side Effects / State: Builds the StepRunner once; the catalog is loaded lazily.
        Dependencies: CatalogLoader, ProductResolver, ConversationStore,
            CacheService, LanguageService.
        Failure Modes: None at init.
        If Removed: The HTTP layer has nothing to call.
        Testing Notes: Inject a FakeLanguageService and a local-only CacheService.
        """
        # Step order is the request contract; keep it fixed.
        self._catalog_loader = catalog_loader
        self._resolver = resolver
        self._conversations = conversations
        self._cache = cache
        self._language = language
        self._query_ttl = query_ttl
        self._runner: StepRunner[QueryContext] = StepRunner(
            [
                PipelineStep("validate", self._validate),
                PipelineStep(
                    "cache_lookup",
                    self._cache_lookup,
                    skip_if=lambda ctx: ctx.done or not ctx.conversation_id,
                    recover=self._cache_lookup_failed,
                ),
                PipelineStep(
                    "load_conversation",
                    self._load_conversation,
                    skip_if=self._is_done,
                    recover=self._system_error,
                ),
                PipelineStep("extract", self._extract, skip_if=self._is_done, recover=self._system_error),
                PipelineStep(
                    "resolve_product",
                    self._resolve_product,
                    skip_if=self._is_done,
                    recover=self._system_error,
                ),
                PipelineStep(
                    "resolve_attribute",
                    self._resolve_attribute,
                    skip_if=self._is_done,
                    recover=self._system_error,
                ),
                PipelineStep(
                    "compose_answer",
                    self._compose_answer,
                    skip_if=self._is_done,
                    recover=self._system_error,
                ),
                PipelineStep(
                    "record_conversation",
                    self._record_conversation,
                    skip_if=lambda ctx: ctx.from_cache or ctx.session is None,
                    recover=self._record_failed,
                ),
                PipelineStep(
                    "cache_populate",
                    self._cache_populate,
                    skip_if=lambda ctx: ctx.from_cache or not self._is_success(ctx),
                    recover=self._cache_populate_failed,
                ),
            ]
        )

    # Public operations

    def process_query(self, query: str, conversation_id: Optional[str] = None) -> QueryResponse:
        """Purpose: Answer one free-text question about a catalog product.
        Inputs/Outputs: Inputs are the query and an optional conversation id;
            output is always a well-formed QueryResponse.
        Side Effects / State: Reads/writes the cache and the conversation session.
        Dependencies: The step pipeline built in __init__.
        Failure Modes: Never raises; unexpected errors become SystemError results.
        If Removed: The query endpoint has no implementation.
        Testing Notes: Cover the five result types and the cached-repeat path.
        """
        # Blank conversation ids count as absent.
        context = QueryContext(query=query or "", conversation_id=(conversation_id or "").strip() or None)
        self._runner.run(context)
        response = context.response
        if response is None:
            response = _result(QueryResultType.SYSTEM_ERROR, MSG_SYSTEM_ERROR)
        logger.info(
            "query processed conversation=%s result=%s cached=%s",
            response.conversation_id,
            response.result_type.value,
            context.from_cache,
        )
        return response

    def start_conversation(self) -> ConversationStartResponse:
        session = self._conversations.start()
        logger.info("conversation started id=%s", session.id)
        return ConversationStartResponse(conversation_id=session.id, created_at=session.created_at)

    def get_conversation(self, conversation_id: str) -> Optional[ConversationSession]:
        return self._conversations.get(conversation_id)

    def delete_conversation(self, conversation_id: str) -> None:
        self._conversations.delete(conversation_id)
        logger.info("conversation deleted id=%s", conversation_id)

    def get_product_attribute(self, product_name: str, attribute_name: str) -> ProductAttributeResponse:
        """Purpose: Direct attribute lookup by product name, no language model involved.
        Inputs/Outputs: Inputs are the product and attribute names; output is a
            ProductAttributeResponse.
        Side Effects / State: May trigger the one-time catalog load.
        Dependencies: ProductResolver.lookup and canonical_attribute.
        Failure Modes: Blank or unknown names return found=False.
        If Removed: Clients must phrase every lookup as a question.
        Testing Notes: "bore" maps to inner_diameter; unknown attributes list
            the available keys.
        """
        # Loose name match here; the query pipeline uses the stricter resolve.
        identifier = ProductIdentifier.parse(product_name)
        if identifier is None:
            return ProductAttributeResponse(found=False)
        product = self._resolver.lookup(identifier, self._catalog_loader.load())
        if product is None:
            return ProductAttributeResponse(found=False)

        available = product.available_attributes()
        key = canonical_attribute(attribute_name)
        attribute = product.get_attribute(key) if key else None
        if attribute is None:
            return ProductAttributeResponse(found=False, available_attributes=available)
        return ProductAttributeResponse(
            found=True,
            product_details=self._details(product, attribute.name),
            available_attributes=available,
        )

    def get_similar_products(self, product_name: str) -> SimilarProductsResponse:
        identifier = ProductIdentifier.parse(product_name)
        if identifier is None:
            return SimilarProductsResponse()
        similar = self._resolver.find_similar(identifier, self._catalog_loader.load())
        return SimilarProductsResponse(similar_products=[str(item) for item in similar])

    # Pipeline steps

    def _validate(self, ctx: QueryContext) -> None:
        if not ctx.query.strip():
            ctx.log("rejected empty query")
            ctx.response = _result(QueryResultType.INVALID_QUERY, MSG_EMPTY_QUERY)

    def _cache_lookup(self, ctx: QueryContext) -> None:
        cached = self._cache.get(build_query_cache_key(ctx.query, ctx.conversation_id), QueryResponse)
        if cached is not None:
            ctx.log("cache hit")
            ctx.response = cached
            ctx.from_cache = True

    def _load_conversation(self, ctx: QueryContext) -> None:
        ctx.session = self._conversations.get_or_create(ctx.conversation_id)
        ctx.conversation_id = ctx.session.id

    def _extract(self, ctx: QueryContext) -> None:
        ctx.product_name = self._language.extract_product(ctx.query, ctx.session)
        ctx.attribute_name = self._language.extract_attribute(ctx.query, ctx.session)
        ctx.log(f"extracted product={ctx.product_name} attribute={ctx.attribute_name}")
        if ctx.product_name is None:
            reply = self._language.generate_conversational_reply(ctx.query, ctx.session)
            ctx.response = _result(
                QueryResultType.INVALID_QUERY,
                MSG_PRODUCT_NOT_SPECIFIED,
                answer=reply,
                suggestions=[PRODUCT_HINT],
            )

    def _resolve_product(self, ctx: QueryContext) -> None:
        identifier = ProductIdentifier(ctx.product_name)
        catalog = self._catalog_loader.load()
        ctx.product = self._resolver.resolve(identifier, catalog)
        if ctx.product is not None:
            return

        suggestions = [str(item) for item in self._resolver.find_similar(identifier, catalog)]
        answer = f"I couldn't find product '{identifier}' in our database."
        if suggestions:
            answer += f" Did you mean: {', '.join(suggestions)}?"
        ctx.log(f"product not found suggestions={len(suggestions)}")
        ctx.response = _result(
            QueryResultType.PRODUCT_NOT_FOUND,
            MSG_PRODUCT_NOT_FOUND,
            answer=answer,
            suggestions=suggestions,
        )

    def _resolve_attribute(self, ctx: QueryContext) -> None:
        product = ctx.product
        available = product.available_attributes()[:MAX_ATTRIBUTE_SUGGESTIONS]
        if not ctx.attribute_name:
            ctx.response = _result(
                QueryResultType.INVALID_QUERY,
                MSG_ATTRIBUTE_NOT_SPECIFIED,
                answer=(
                    f"What would you like to know about the {product.name}? "
                    f"Available information: {', '.join(available)}"
                ),
                suggestions=available,
            )
        elif not product.has_attribute(ctx.attribute_name):
            ctx.response = _result(
                QueryResultType.ATTRIBUTE_NOT_FOUND,
                MSG_ATTRIBUTE_NOT_AVAILABLE,
                answer=(
                    f"I don't have {ctx.attribute_name} information for {product.name}. "
                    f"Available data: {', '.join(available)}"
                ),
                suggestions=available,
            )

    def _compose_answer(self, ctx: QueryContext) -> None:
        product = ctx.product
        attribute = product.get_attribute(ctx.attribute_name)
        details = self._details(product, attribute.name)
        answer = self._language.generate_answer(
            product.name, attribute.name, attribute.value, attribute.unit, ctx.session
        )
        # Only a completed answer moves the conversation focus.
        ctx.session.set_last_product(product.name)
        ctx.response = _result(
            QueryResultType.SUCCESS,
            MSG_SUCCESS,
            answer=answer,
            product_details=details,
        )

    def _record_conversation(self, ctx: QueryContext) -> None:
        ctx.session.append_query(ctx.query, ctx.response.answer if ctx.response else None)
        self._conversations.save(ctx.session)
        if ctx.response is not None:
            ctx.response.conversation_id = ctx.session.id

    def _cache_populate(self, ctx: QueryContext) -> None:
        key = build_query_cache_key(ctx.query, ctx.response.conversation_id or ctx.conversation_id)
        self._cache.set(key, ctx.response, self._query_ttl)

    # Recovery hooks

    def _system_error(self, ctx: QueryContext, exc: Exception) -> None:
        logger.exception("Error processing query conversation=%s", ctx.conversation_id, exc_info=exc)
        ctx.response = _result(QueryResultType.SYSTEM_ERROR, MSG_SYSTEM_ERROR)
        if ctx.conversation_id:
            ctx.response.conversation_id = ctx.conversation_id

    def _cache_lookup_failed(self, ctx: QueryContext, exc: Exception) -> None:
        logger.warning("Query cache lookup failed conversation=%s error=%s", ctx.conversation_id, exc)

    def _record_failed(self, ctx: QueryContext, exc: Exception) -> None:
        logger.exception("Error recording conversation id=%s", ctx.conversation_id, exc_info=exc)

    def _cache_populate_failed(self, ctx: QueryContext, exc: Exception) -> None:
        logger.warning("Query cache populate failed conversation=%s error=%s", ctx.conversation_id, exc)

    # Helpers

    @staticmethod
    def _is_done(ctx: QueryContext) -> bool:
        return ctx.done

    @staticmethod
    def _is_success(ctx: QueryContext) -> bool:
        return ctx.response is not None and ctx.response.result_type is QueryResultType.SUCCESS

    @staticmethod
    def _details(product: Product, attribute_key: str) -> ProductDetails:
        attribute = product.get_attribute(attribute_key)
        return ProductDetails(
            product_name=product.name,
            attribute=attribute.name,
            value=attribute.value,
            unit=attribute.unit,
            all_attributes=product.formatted_attributes(),
        )
