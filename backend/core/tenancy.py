"""Resolve the active organization (tenant) of a request"""
import logging

from rest_framework.exceptions import PermissionDenied

from .models import Organization
from .roles import has_minimum_role_level, user_role_name, SUPERADMIN_LEVEL

logger = logging.getLogger(__name__)

TENANT_HEADERS = ('HTTP_X_ORG_ID', 'HTTP_X_TENANT_ID')


def _header_org_id(request):
    for header in TENANT_HEADERS:
        value = request.META.get(header)
        if value:
            return value.strip()
    return None


def get_request_organization(request):
    """
    Return the organization a request acts on.

    Superadmin-level users may target another organization through the
    ``X-Org-Id`` or ``X-Tenant-Id`` header. Everyone else is bound to their
    own organization; a missing organization is a 403.
    """
    cached = getattr(request, '_tenant_organization', None)
    if cached is not None:
        return cached

    user = request.user
    organization = getattr(user, 'organization', None)

    header_value = _header_org_id(request)
    if header_value and has_minimum_role_level(user_role_name(user), SUPERADMIN_LEVEL):
        try:
            organization = Organization.objects.get(pk=int(header_value))
        except (ValueError, Organization.DoesNotExist):
            logger.warning(f"Tenant header {header_value!r} from user {user.pk} does not match any organization")
            raise PermissionDenied('Organization not found.')

    if organization is None:
        raise PermissionDenied('Tenant context missing.')

    request._tenant_organization = organization
    return organization
