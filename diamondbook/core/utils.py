"""Audit trail helpers"""
import logging

from .models import AuditLog

logger = logging.getLogger(__name__)


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR')
    if forwarded:
        return forwarded.split(',')[0].strip() or None
    return request.META.get('REMOTE_ADDR') or None


def snapshot(instance, fields):
    """Audit-friendly copy of ``fields`` on a model instance; values are stringified"""
    values = {}
    for field in fields:
        value = getattr(instance, field)
        values[field] = None if value is None else str(value)
    return values


def field_changes(before, after):
    """
    ``{field: {'from': old, 'to': new}}`` for every field whose value differs
    between two snapshots taken with :func:`snapshot`.
    """
    return {
        field: {'from': before.get(field), 'to': value}
        for field, value in after.items()
        if before.get(field) != value
    }


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None, object_reference=None):
    """
    Record an audit trail entry.

    ``action``, ``model_name`` and ``object_id`` are required; without them
    nothing is written. The acting user comes from ``user`` or else from
    ``request.user``; anonymous users are stored as NULL. A failure to write
    the entry is logged and never propagates to the caller.

    Returns the created AuditLog, or None.
    """
    if not (action and model_name and object_id):
        logger.warning(
            f"Audit log creation skipped: missing required fields "
            f"(action={action}, model_name={model_name}, object_id={object_id})"
        )
        return None

    if user is None and request is not None:
        user = getattr(request, 'user', None)
    if user is not None and not user.is_authenticated:
        user = None

    try:
        return AuditLog.objects.create(
            user=user,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            object_reference=object_reference,
            changes=changes or {},
            ip_address=get_client_ip(request),
        )
    except Exception as e:
        logger.error(f"Failed to create audit log for {model_name} {object_id}: {e}")
        return None
