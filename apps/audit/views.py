from django.conf import settings
from rest_framework import viewsets
from rest_framework.exceptions import ParseError
from rest_framework.response import Response

from apps.audit.models import AuditLog
from apps.audit.serializers import AuditLogSerializer
from apps.audit.services import FILTER_LOOKUPS, query_audit_logs
from apps.common.permissions import RolePermission


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLog.objects.select_related("actor")
    serializer_class = AuditLogSerializer
    permission_classes = [RolePermission]
    lookup_field = "entry_code"
    capability_map = {
        "list": ["audit.view"],
        "retrieve": ["audit.view"],
    }

    def list(self, request, *args, **kwargs):
        params = request.query_params
        filters = {key: params[key] for key in FILTER_LOOKUPS if params.get(key)}
        try:
            page = int(params.get("page", 1))
            page_size = min(int(params.get("page_size", settings.AUDIT_PAGE_SIZE)), settings.AUDIT_MAX_PAGE_SIZE)
            entries, total_count = query_audit_logs(
                filters=filters,
                keyword=params.get("keyword", ""),
                sort_field=params.get("sort_field", "recorded_at"),
                sort_order=params.get("sort_order", "desc").lower(),
                page=page,
                page_size=page_size,
            )
        except ValueError as exc:
            raise ParseError(str(exc))

        serializer = self.get_serializer(entries, many=True)
        return Response({"count": total_count, "page": page, "page_size": page_size, "results": serializer.data})
