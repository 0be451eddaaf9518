import logging

from django.db import DatabaseError, transaction
from django.db.models import Q

from apps.audit.models import AuditAction, AuditCollection, AuditLog

logger = logging.getLogger(__name__)

SESSION_ACTIONS = {AuditAction.LOGIN, AuditAction.LOGOUT, AuditAction.CHANGE_PASSWORD}

KEYWORD_FIELDS = ("action", "collection", "changes", "actor_name")

FILTER_LOOKUPS = {
    "action": "action",
    "collection": "collection",
    "entity_code": "entity_code",
    "actor": "actor__user_code",
}

SORT_FIELDS = {"entry_code", "action", "collection", "entity_code", "changes", "actor_name", "recorded_at"}
SORT_ORDERS = {"asc", "desc"}


def _checked_snapshots(action, before, after):
    if action in SESSION_ACTIONS:
        return None, None
    if action == AuditAction.CREATE and (before is not None or after is None):
        raise ValueError("CREATE entries take an after snapshot and no before snapshot.")
    if action == AuditAction.DELETE and (before is None or after is not None):
        raise ValueError("DELETE entries take a before snapshot and no after snapshot.")
    if action == AuditAction.UPDATE and (before is None or after is None):
        raise ValueError("UPDATE entries take both before and after snapshots.")
    return before, after


def record_audit(*, actor, action, collection, entity_code, changes, before=None, after=None) -> None:
    action = AuditAction(action)
    collection = AuditCollection(collection)
    before, after = _checked_snapshots(action, before, after)

    try:
        with transaction.atomic():
            AuditLog.objects.create(
                action=action,
                collection=collection,
                entity_code=str(entity_code),
                changes=changes,
                before=before,
                after=after,
                actor=actor,
                actor_name=actor.display_name if actor is not None else "",
            )
    except (DatabaseError, TypeError, ValueError):
        logger.exception(
            "Audit write failed: action=%s collection=%s entity_code=%s",
            action,
            collection,
            entity_code,
            extra={"audit_action": action.value, "audit_collection": collection.value, "entity_code": str(entity_code)},
        )


def build_audit_queryset(*, filters=None, keyword=""):
    queryset = AuditLog.objects.select_related("actor")
    for key, value in (filters or {}).items():
        lookup = FILTER_LOOKUPS.get(key)
        if lookup is None:
            raise ValueError(f"Unsupported audit filter: {key}")
        queryset = queryset.filter(**{lookup: value})

    keyword = keyword or ""
    if keyword.strip():
        condition = Q()
        for field in KEYWORD_FIELDS:
            condition |= Q(**{f"{field}__icontains": keyword})
        queryset = queryset.filter(condition)
    return queryset


def query_audit_logs(*, filters=None, keyword="", sort_field="recorded_at", sort_order="desc", page=1, page_size=10):
    if sort_field not in SORT_FIELDS:
        raise ValueError(f"Unsupported sort field: {sort_field}")
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"Unsupported sort order: {sort_order}")
    page = int(page)
    page_size = int(page_size)
    if page < 1 or page_size < 1:
        raise ValueError("page and page_size must be greater than 0")

    queryset = build_audit_queryset(filters=filters, keyword=keyword)
    total_count = queryset.count()

    prefix = "-" if sort_order == "desc" else ""
    offset = (page - 1) * page_size
    entries = list(queryset.order_by(f"{prefix}{sort_field}", f"{prefix}id")[offset : offset + page_size])
    return entries, total_count


def get_audit_log(entry_code):
    return AuditLog.objects.select_related("actor").get(entry_code=entry_code)
