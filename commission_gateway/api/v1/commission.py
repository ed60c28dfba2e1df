"""POST /v1/commission - transaction commission endpoint"""

import time
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from commission_gateway.api.v1.schemas import CommissionRequest, CommissionResponse
from commission_gateway.api.dependencies import get_calculator, get_request_id
from commission_gateway.domain.commission import CommissionCalculator
from commission_gateway.domain.exceptions import (
    InvalidExchangeRateError,
    TransactionValidationError,
    UpstreamError,
    UpstreamErrorKind,
)
from commission_gateway.domain.models import Transaction
from commission_gateway.infrastructure.observability.logging import log_commission
from commission_gateway.infrastructure.observability.metrics import record_commission

router = APIRouter()

_STATUS_BY_KIND = {
    UpstreamErrorKind.RATE_LIMITED: 429,
    UpstreamErrorKind.NOT_FOUND: 404,
}


@router.post("/commission", response_model=CommissionResponse)
def create_commission(
    request_body: CommissionRequest,
    request: Request,
    calculator: CommissionCalculator = Depends(get_calculator),
):
    """
    Calculate the commission for a single transaction.

    Flow:
    1. Validate the transaction
    2. Resolve issuer country and exchange rate (cache first)
    3. Return the commission in the reference currency
    """
    start_time = time.time()
    request_id = get_request_id(request)

    try:
        transaction = Transaction(
            bin=request_body.bin,
            amount=request_body.amount,
            currency=request_body.currency,
        )
        result = calculator.evaluate(transaction)

    except TransactionValidationError as e:
        logging.warning(f"Validation error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except UpstreamError as e:
        logging.error(
            f"Reference data error: {e}",
            extra={"request_id": request_id, "error_kind": e.kind.value, "status_code": e.status_code},
        )
        status_code = _STATUS_BY_KIND.get(e.kind, 503)
        detail = str(e) if status_code != 503 else "Reference data service unavailable"
        raise HTTPException(status_code=status_code, detail=detail)

    except InvalidExchangeRateError as e:
        logging.error(f"Invalid exchange rate: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Reference data service unavailable")

    except Exception as e:
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    duration_ms = (time.time() - start_time) * 1000
    record_commission(result.is_eu)
    log_commission(result, source="api", duration_ms=duration_ms)

    return CommissionResponse(commission=result.commission, currency=calculator.reference_currency)
