from typing import Optional
from fastapi import APIRouter, Depends, Query

from storefront.config import settings
from storefront.domain.models import ProductCategory
from storefront.presentation.schemas import ProductResponse, dump, envelope
from storefront.presentation.dependencies import get_list_products_use_case, get_get_product_use_case
from storefront.application.catalog import ListProductsUseCase, GetProductUseCase

router = APIRouter(prefix="/products", tags=["products"])


async def _list(use_case: ListProductsUseCase, category: Optional[ProductCategory], page: int, limit: int):
    result = await use_case(category=category, page=page, page_size=limit)
    return envelope(
        [dump(ProductResponse.from_domain(product)) for product in result.products],
        count=len(result.products),
        total=result.total,
        page=result.page,
        pages=result.pages
    )


@router.get("")
async def get_all_products(
    category: Optional[ProductCategory] = Query(default=None),
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE),
    use_case: ListProductsUseCase = Depends(get_list_products_use_case)
):
    return await _list(use_case, category, page, limit)


@router.get("/category/{category}")
async def get_products_by_category(
    category: ProductCategory,
    page: int = Query(default=1),
    limit: int = Query(default=settings.DEFAULT_PAGE_SIZE),
    use_case: ListProductsUseCase = Depends(get_list_products_use_case)
):
    return await _list(use_case, category, page, limit)


@router.get("/{product_id}")
async def get_product(
    product_id: str,
    use_case: GetProductUseCase = Depends(get_get_product_use_case)
):
    product = await use_case(product_id)
    return envelope(dump(ProductResponse.from_domain(product)))
