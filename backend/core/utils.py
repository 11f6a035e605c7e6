"""Utility functions for audit logging"""
import logging

from django.utils.dateparse import parse_date
from rest_framework.exceptions import ValidationError

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None,
                     organization=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, IP and tenant) - optional if user is provided
        action: Action type (create, update, delete, payment_add, po_approve, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., project name, folio)
        object_reference: Reference identifier (e.g., invoice number)
        organization: Optional tenant override (defaults to the request's tenant)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        if organization is None and request is not None:
            organization = getattr(request, '_tenant_organization', None)
        if organization is None and audit_user is not None:
            organization = getattr(audit_user, 'organization', None)

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            organization=organization,
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Audit failures never break the main operation
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def json_safe(value):
    """Convert Decimal/date values into strings for the audit ``changes`` payload"""
    if isinstance(value, dict):
        return {k: json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [json_safe(v) for v in value]
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, 'pk'):
        return value.pk
    return str(value)


def int_query_param(request, name):
    """Return an integer query param, None when absent; anything else is a 400"""
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError({name: 'A valid integer is required.'})


def date_query_param(request, name):
    """Return an ISO date query param, None when absent; anything else is a 400"""
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        parsed = parse_date(value)
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError({name: 'Date has wrong format. Use YYYY-MM-DD.'})
    return parsed
