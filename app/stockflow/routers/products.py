from fastapi import APIRouter, Depends

from app.stockflow.core.deps import get_current_caller, require_request_context
from app.stockflow.db.session import get_db
from app.stockflow.schemas.errors import ERROR_RESPONSES
from app.stockflow.schemas.products import (
    ProductCreateRequest,
    ProductDeletedResponse,
    ProductListResponse,
    ProductResponse,
    ProductStats,
    ProductUpdateRequest,
)
from app.stockflow.services.products import ProductService

router = APIRouter(dependencies=[Depends(require_request_context)], responses=ERROR_RESPONSES)


@router.post("/stockflow/products", response_model=ProductResponse, status_code=201)
def create_product(payload: ProductCreateRequest, caller=Depends(get_current_caller), db=Depends(get_db)):
    product = ProductService(db).create_product(owner_ref=caller.user_ref, **payload.model_dump())
    return ProductResponse.model_validate(product)


@router.get("/stockflow/products", response_model=ProductListResponse)
def list_products(
    active_only: bool = False,
    category: str | None = None,
    search: str | None = None,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    rows, stats, categories = ProductService(db).list_products(
        owner_ref=caller.user_ref,
        active_only=active_only,
        category=category,
        search=search,
    )
    return ProductListResponse(
        products=[ProductResponse.model_validate(row) for row in rows],
        stats=ProductStats(**stats),
        categories=categories,
    )


@router.get("/stockflow/products/{product_id}", response_model=ProductResponse)
def get_product(product_id: str, caller=Depends(get_current_caller), db=Depends(get_db)):
    return ProductResponse.model_validate(ProductService(db).get_product(product_id, owner_ref=caller.user_ref))


@router.patch("/stockflow/products/{product_id}", response_model=ProductResponse)
def update_product(
    product_id: str,
    payload: ProductUpdateRequest,
    caller=Depends(get_current_caller),
    db=Depends(get_db),
):
    product = ProductService(db).update_product(
        product_id,
        payload.model_dump(exclude_unset=True),
        owner_ref=caller.user_ref,
    )
    return ProductResponse.model_validate(product)


@router.delete("/stockflow/products/{product_id}", response_model=ProductDeletedResponse)
def delete_product(product_id: str, caller=Depends(get_current_caller), db=Depends(get_db)):
    product = ProductService(db).delete_product(product_id, owner_ref=caller.user_ref)
    return ProductDeletedResponse(id=product.id, deleted_at=product.deleted_at)
