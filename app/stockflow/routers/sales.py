from uuid import UUID

from fastapi import APIRouter, Depends

from app.stockflow.db.session import get_db
from app.stockflow.schemas.sales import PaymentResponse, SaleLineResponse, SaleResponse
from app.stockflow.services.sales_ledger import SalesLedger


router = APIRouter()


@router.get("/stockflow/sales/{sale_id}", response_model=SaleResponse)
def get_sale(sale_id: UUID, db=Depends(get_db)):
    ledger = SalesLedger(db)
    sale = ledger.get_sale(sale_id)
    return SaleResponse(
        id=str(sale.id),
        invoice_number=sale.invoice_number,
        store_id=str(sale.store_id),
        buyer_store_id=str(sale.buyer_store_id) if sale.buyer_store_id else None,
        total=sale.total,
        payment_method=sale.payment_method,
        status=sale.status,
        created_by=sale.created_by,
        created_by_name=sale.created_by_name,
        cancelled_by=sale.cancelled_by,
        cancelled_at=sale.cancelled_at,
        cancellation_reason=sale.cancellation_reason,
        created_at=sale.created_at,
        lines=[
            SaleLineResponse(
                id=str(line.id),
                position=line.position,
                product_id=str(line.product_id),
                product_name=line.product_name,
                qty=line.qty,
                unit_price=line.unit_price,
                line_total=line.line_total,
            )
            for line in ledger.repo.get_lines(sale.id)
        ],
        payments=[
            PaymentResponse(
                id=str(payment.id),
                method=payment.method,
                amount=payment.amount,
                status=payment.status,
                cancelled_at=payment.cancelled_at,
                cancelled_by=payment.cancelled_by,
                cancelled_by_name=payment.cancelled_by_name,
                cancellation_reason=payment.cancellation_reason,
                created_at=payment.created_at,
            )
            for payment in ledger.repo.get_payments(sale.id)
        ],
    )
