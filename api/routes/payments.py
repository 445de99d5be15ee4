"""
支付API路由 - 表现层

路由只做参数接收与响应包装；业务失败以 PaymentResponse.code 返回，
这里按业务码映射 HTTP 状态码，失败形态的支付响应仍放在 data 中返回。
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_payment_service
from application.dtos.payments import PagedResult, PaymentRequest, PaymentResponse, RefundRequest
from application.services.payment_service import PaymentApplicationService
from core.config import settings
from core.exceptions import business_code_to_http_status
from core.response import Response as ApiResponse
from core.response import error_response, success_response
from domain.payment.entity import PaymentMethod, PaymentStatus
from domain.payment.repository import PaymentFilter


router = APIRouter(prefix="/payments", tags=["Payments"])


def render_payment(request: Request, result: PaymentResponse):
    """成功时返回统一包装；失败时按业务码给出 HTTP 状态码"""
    if result.succeeded:
        return success_response(data=result, message=result.message or "Success")
    body = error_response(
        code=result.code,
        message=result.message,
        error_type="PaymentError",
        request_id=getattr(request.state, "request_id", None),
        data=result,
    )
    return JSONResponse(
        status_code=business_code_to_http_status(result.code),
        content=body.model_dump(mode="json"),
    )


@router.post("", summary="发起支付", response_model=ApiResponse[PaymentResponse])
async def process_payment(
    request: Request,
    payload: PaymentRequest,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    """
    处理一笔支付

    依次执行限流、校验、去重、网关调用并记录结果；拒付是正常结果（HTTP 200）。
    """
    result = await service.process_payment(payload)
    return render_payment(request, result)


@router.get("", summary="支付列表", response_model=ApiResponse[PagedResult[PaymentResponse]])
async def list_payments(
    status: Optional[PaymentStatus] = Query(None, description="按状态过滤"),
    customer_id: Optional[str] = Query(None, max_length=50),
    payment_method: Optional[PaymentMethod] = Query(None),
    start_date: Optional[datetime] = Query(None, description="创建时间下限（含）"),
    end_date: Optional[datetime] = Query(None, description="创建时间上限（含）"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    result = await service.list_payments(
        PaymentFilter(
            status=status,
            customer_id=customer_id,
            payment_method=payment_method,
            start_date=start_date,
            end_date=end_date,
            page=page,
            page_size=page_size,
        )
    )
    return success_response(data=result)


@router.get("/{transaction_id}", summary="查询支付状态", response_model=ApiResponse[PaymentResponse])
async def get_payment_status(
    request: Request,
    transaction_id: str = Path(..., max_length=50),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    result = await service.get_payment_status(transaction_id)
    return render_payment(request, result)


@router.post("/{transaction_id}/cancel", summary="取消支付", response_model=ApiResponse[PaymentResponse])
async def cancel_payment(
    request: Request,
    transaction_id: str = Path(..., max_length=50),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    """仅 Pending / Processing 状态可取消"""
    result = await service.cancel_payment(transaction_id)
    return render_payment(request, result)


@router.post("/{transaction_id}/refund", summary="退款", response_model=ApiResponse[PaymentResponse])
async def refund_payment(
    request: Request,
    refund: RefundRequest,
    transaction_id: str = Path(..., max_length=50),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    """仅 Approved 状态可退款，金额不能超过已处理金额"""
    result = await service.refund_payment(transaction_id, refund)
    return render_payment(request, result)
