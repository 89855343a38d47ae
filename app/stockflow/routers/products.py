from uuid import UUID

from fastapi import APIRouter, Depends, Query, Request

from app.stockflow.core.context import Actor, require_actor
from app.stockflow.core.error_catalog import ConflictError, ErrorCatalog, NotFoundError
from app.stockflow.db.models import Product
from app.stockflow.db.session import get_db
from app.stockflow.repos.products import ProductRepository
from app.stockflow.schemas.products import ProductCreateRequest, ProductItem, ProductListResponse
from app.stockflow.services.audit import AuditEventPayload, AuditService


router = APIRouter()


def _product_item(product: Product) -> ProductItem:
    return ProductItem(
        id=str(product.id),
        name=product.name,
        reference=product.reference,
        price=product.price,
        cost=product.cost,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


@router.get("/stockflow/products", response_model=ProductListResponse)
def list_products(
    q: str | None = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db=Depends(get_db),
):
    rows, total = ProductRepository(db).list_products(q=q, limit=limit, offset=offset)
    return ProductListResponse(
        products=[_product_item(product) for product in rows],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.post("/stockflow/products", response_model=ProductItem, status_code=201)
def create_product(
    request: Request,
    payload: ProductCreateRequest,
    actor: Actor = Depends(require_actor),
    db=Depends(get_db),
):
    repo = ProductRepository(db)
    if payload.reference and repo.get_by_reference(payload.reference):
        raise ConflictError(details={"message": "product reference already exists", "reference": payload.reference})
    product = repo.create(
        Product(
            name=payload.name.strip(),
            reference=payload.reference,
            price=payload.price,
            cost=payload.cost,
        )
    )
    response = _product_item(product)
    AuditService(db).record_event(
        AuditEventPayload(
            actor=actor,
            trace_id=getattr(request.state, "trace_id", "") or None,
            action="product.create",
            entity_type="product",
            entity_id=response.id,
            before=None,
            after=response.model_dump(mode="json"),
        )
    )
    return response


@router.get("/stockflow/products/{product_id}", response_model=ProductItem)
def get_product(product_id: UUID, db=Depends(get_db)):
    product = ProductRepository(db).get_by_id(product_id)
    if product is None:
        raise NotFoundError(ErrorCatalog.PRODUCT_NOT_FOUND, details={"product_id": str(product_id)})
    return _product_item(product)
