import math
from typing import Optional
from pydantic import BaseModel

from storefront.domain.models import Product, ProductCategory
from storefront.domain.exceptions import ProductNotFoundError, ValidationError


class ProductPage(BaseModel):
    products: list[Product]
    total: int
    page: int
    pages: int


class ListProductsUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, category: Optional[ProductCategory] = None, page: int = 1, page_size: int = 10) -> ProductPage:
        if page < 1 or page_size < 1:
            raise ValidationError("page and limit must be positive")

        async with self._uow() as uow:
            products = await uow.products.list_all(category, (page - 1) * page_size, page_size)
            total = await uow.products.count(category)
            return ProductPage(products=products, total=total, page=page, pages=math.ceil(total / page_size))


class GetProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
            if not product:
                raise ProductNotFoundError(f"Product {product_id} not found")
            return product
