"""Pydantic models describing the marketplace gateway payloads."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class GatewayBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ProductPageResponse(GatewayBaseModel):
    """One page of products; gateways name the list and paging fields differently."""

    products: list[dict[str, object]] = Field(
        default_factory=list[dict[str, object]],
        validation_alias=AliasChoices("products", "content", "items", "data"),
    )
    page: int | None = None
    total_pages: int | None = Field(
        default=None,
        validation_alias=AliasChoices("totalPages", "total_pages"),
    )
    has_more: bool | None = Field(
        default=None,
        validation_alias=AliasChoices("hasMore", "has_more"),
    )

    def more_after(self, page: int, page_size: int) -> bool:
        if self.has_more is not None:
            return self.has_more
        if self.total_pages is not None:
            return page + 1 < self.total_pages
        return len(self.products) >= page_size


class CreatedProductResponse(GatewayBaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("id", "productId", "batchRequestId"),
    )


class ErrorResponse(GatewayBaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)

    message: str = Field(
        default="Unknown marketplace error",
        validation_alias=AliasChoices("message", "errorMessage", "error_description"),
    )
    code: str | None = Field(
        default=None,
        validation_alias=AliasChoices("code", "errorCode", "error"),
    )
