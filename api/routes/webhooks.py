"""
网关回调路由

签名为原始请求体的 HMAC-SHA256（十六进制），由 X-Webhook-Signature 头携带；
未配置 secret 时跳过校验。
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.dependencies import get_webhook_service
from application.dtos.payments import PaymentWebhook, WebhookResult
from application.services.webhook_service import WebhookApplicationService
from core.exceptions import business_code_to_http_status
from core.logging_config import get_logger
from core.response import Response as ApiResponse
from core.response import error_response, success_response
from shared.codes.payment_codes import PaymentCode


router = APIRouter(prefix="/webhooks", tags=["Webhooks"])
logger = get_logger(__name__)


@router.post("/payment", summary="支付状态回调", response_model=ApiResponse[WebhookResult])
async def payment_webhook(
    request: Request,
    service: WebhookApplicationService = Depends(get_webhook_service),
):
    raw_body = await request.body()
    header = service.signature_header
    if not service.verify_signature(raw_body, request.headers.get(header)):
        logger.warning("webhook_signature_invalid")
        body = error_response(
            code=PaymentCode.WEBHOOK_SIGNATURE_INVALID,
            message="Invalid webhook signature",
            error_type="WebhookSignatureInvalid",
            request_id=getattr(request.state, "request_id", None),
        )
        return JSONResponse(
            status_code=business_code_to_http_status(PaymentCode.WEBHOOK_SIGNATURE_INVALID),
            content=body.model_dump(mode="json"),
        )

    try:
        webhook = PaymentWebhook.model_validate_json(raw_body or b"{}")
    except ValidationError as exc:
        # 交给全局处理器，统一 400 格式
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc

    result = await service.apply_webhook(webhook)
    if result.success:
        return success_response(data=result, message=result.message)
    body = error_response(
        code=result.code,
        message=result.message,
        error_type="WebhookRejected",
        request_id=getattr(request.state, "request_id", None),
        data=result,
    )
    return JSONResponse(
        status_code=business_code_to_http_status(result.code),
        content=body.model_dump(mode="json"),
    )
