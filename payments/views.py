"""
Razorpay HTTP endpoints
Following SRP: views only parse the request and map service results and
pipeline errors to JSON responses.
"""

import json
import logging

from django.core.exceptions import ValidationError
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.exceptions import ConflictError, NotFoundError, PipelineError
from .services import PaymentVerifier, PaymentWebhookHandler

logger = logging.getLogger(__name__)


def error_status(error: PipelineError) -> int:
    if error.retryable:
        return 503
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ConflictError):
        return 409
    return 400


def pipeline_error_response(error: PipelineError) -> JsonResponse:
    return JsonResponse(error.as_dict(), status=error_status(error))


@csrf_exempt
@require_http_methods(["POST"])
def payment_callback(request):
    """
    Checkout confirmation posted by the client after Razorpay Checkout
    completes. Returns the donation id and the campaigns it counted toward.
    """
    try:
        data = json.loads(request.body.decode('utf-8'))
    except (ValueError, UnicodeDecodeError):
        return JsonResponse({'success': False, 'reason': 'INVALID_JSON', 'message': 'Invalid JSON'}, status=400)

    missing = [
        key for key in ('razorpay_order_id', 'razorpay_payment_id', 'razorpay_signature')
        if not data.get(key)
    ]
    if missing:
        return JsonResponse({
            'success': False,
            'reason': 'VALIDATION_ERROR',
            'message': f"Missing required fields: {', '.join(missing)}",
        }, status=400)

    try:
        result = PaymentVerifier().verify(
            data['razorpay_order_id'],
            data['razorpay_payment_id'],
            data['razorpay_signature'],
        )
    except PipelineError as e:
        return pipeline_error_response(e)
    except Exception:
        logger.exception("Error processing payment callback")
        return JsonResponse({'success': False, 'reason': 'INTERNAL_ERROR', 'message': 'Internal error', 'retryable': True}, status=500)

    return JsonResponse(result.as_dict())


@csrf_exempt
@require_http_methods(["POST"])
def payment_webhook(request):
    """
    Razorpay webhook receiver. A non-2xx response makes Razorpay redeliver,
    which is safe because recording is idempotent.
    """
    signature = request.headers.get('X-Razorpay-Signature', '')
    try:
        result = PaymentWebhookHandler().handle(request.body, signature)
    except ValidationError as e:
        return JsonResponse({'success': False, 'reason': 'VALIDATION_ERROR', 'message': e.messages[0]}, status=400)
    except PipelineError as e:
        return pipeline_error_response(e)
    except Exception:
        logger.exception("Error processing payment webhook")
        return JsonResponse({'success': False, 'reason': 'INTERNAL_ERROR', 'message': 'Internal error', 'retryable': True}, status=500)

    return JsonResponse(result)
