"""
JSON endpoints for the intake client.

Views stay thin: they parse the request, call the service layer and map
domain errors to HTTP status codes.
"""
import json
import time
from functools import wraps

from django.conf import settings
from django.http import JsonResponse
from django.utils import timezone
from django.utils.dateparse import parse_date
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from core.errors import NotFoundError, StoreError, ValidationError, errmsg
from . import services


_STARTED_AT = time.monotonic()


def _error(message, status):
    return JsonResponse({'error': message}, status=status)


def json_errors(view):
    """Translate domain errors raised by a view into JSON error responses."""

    @wraps(view)
    def wrapper(request, *args, **kwargs):
        try:
            return view(request, *args, **kwargs)
        except ValidationError as e:
            return _error(e.message, 400)
        except NotFoundError as e:
            return _error(e.message, 404)
        except StoreError as e:
            return _error(e.message, 500)

    return wrapper


def _read_json(request):
    try:
        payload = json.loads(request.body or b'{}')
    except (ValueError, UnicodeDecodeError):
        raise ValidationError(errmsg.INVALID_JSON)
    if not isinstance(payload, dict):
        raise ValidationError(errmsg.INVALID_JSON)
    return payload


def _parse_day(value):
    try:
        day = parse_date(value)
    except ValueError:
        day = None
    if day is None:
        raise ValidationError(errmsg.INVALID_DATE)
    return day


def receipt_payload(receipt):
    return {
        'id': receipt.pk,
        'receipt_number': receipt.receipt_number,
        'created_at': receipt.created_at.isoformat(),
        'total_weight': receipt.total_weight,
        'total_sum': receipt.total_sum,
        'items': [
            {
                'id': item.pk,
                'receipt_id': item.receipt_id,
                'percentage': item.percentage,
                'weight': item.weight,
                'coefficient': item.coefficient,
                'sum': item.sum,
            }
            for item in receipt.items.all()
        ],
    }


def report_payload(report):
    return {
        'date': report.date.isoformat(),
        'receipts': [receipt_payload(receipt) for receipt in report.receipts],
        'totalWeight': report.total_weight,
        'totalSum': report.total_sum,
        'count': report.count,
        'groups': [
            {
                'percentage': group.percentage,
                'coefficient': group.coefficient,
                'totalWeight': group.total_weight,
                'totalSum': group.total_sum,
                'count': group.count,
                'transactions': [
                    {'weight': t.weight, 'sum': t.sum} for t in group.transactions
                ],
            }
            for group in report.groups
        ],
    }


# ── Health ───────────────────────────────────────────────

@require_http_methods(['GET'])
def health_check(request):
    """Report server and database status."""
    try:
        services.check_database()
    except StoreError as e:
        return JsonResponse({
            'status': 'error',
            'message': 'Database connection failed',
            'error': e.message,
        }, status=500)

    return JsonResponse({
        'status': 'ok',
        'timestamp': timezone.now().isoformat(),
        'message': 'Server is running',
        'uptime': time.monotonic() - _STARTED_AT,
        'database': 'connected',
        'environment': settings.ENVIRONMENT,
    })


# ── Settings ─────────────────────────────────────────────

@csrf_exempt
@require_http_methods(['GET', 'PUT'])
@json_errors
def coefficient(request):
    """
    GET: Return the base coefficient
    PUT: Replace the base coefficient
    """
    if request.method == 'PUT':
        value = services.set_base_coefficient(_read_json(request).get('coefficient'))
        return JsonResponse({'success': True, 'coefficient': value})

    return JsonResponse({'coefficient': services.get_base_coefficient()})


# ── Receipts ─────────────────────────────────────────────

@csrf_exempt
@require_http_methods(['GET', 'POST'])
@json_errors
def receipt_collection(request):
    """
    GET: List all receipts, newest first
    POST: Save a new receipt with its items
    """
    if request.method == 'POST':
        payload = _read_json(request)
        receipt = services.create_receipt(
            receipt_number=payload.get('receipt_number'),
            items=payload.get('items'),
        )
        return JsonResponse({
            'success': True,
            'receiptId': receipt.pk,
            'message': 'Receipt saved',
        })

    receipts = services.list_receipts()
    return JsonResponse([receipt_payload(r) for r in receipts], safe=False)


@csrf_exempt
@require_http_methods(['GET', 'DELETE'])
@json_errors
def receipt_detail(request, receipt_id):
    """
    GET: Return one receipt
    DELETE: Delete a receipt with its items
    """
    if request.method == 'DELETE':
        services.delete_receipt(receipt_id)
        return JsonResponse({'success': True, 'message': 'Receipt deleted'})

    return JsonResponse(receipt_payload(services.get_receipt(receipt_id)))


@require_http_methods(['GET'])
@json_errors
def daily_receipts(request, day):
    """List receipts of one calendar day, oldest first."""
    receipts = services.list_receipts_by_date(_parse_day(day))
    return JsonResponse([receipt_payload(r) for r in receipts], safe=False)


# ── Reports ──────────────────────────────────────────────

@require_http_methods(['GET'])
@json_errors
def daily_report(request, day):
    """Aggregate one calendar day by percentage and coefficient."""
    report = services.build_daily_report(_parse_day(day))
    return JsonResponse(report_payload(report))


# ── Pricing ──────────────────────────────────────────────

@csrf_exempt
@require_http_methods(['POST'])
@json_errors
def quote(request):
    """Price a set of bracket weights without saving anything."""
    payload = _read_json(request)
    base_coefficient, items, totals = services.quote_weights(
        payload.get('weights') or {},
        payload.get('coefficients') or {},
    )
    return JsonResponse({
        'baseCoefficient': base_coefficient,
        'items': [
            {
                'percentage': item.percentage,
                'weight': item.weight,
                'coefficient': item.coefficient,
                'sum': item.sum,
            }
            for item in items
        ],
        'totalWeight': totals.total_weight,
        'totalSum': totals.total_sum,
    })
