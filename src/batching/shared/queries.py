"""Repository query helpers for the batching context."""

from protean.utils.globals import current_domain

# Protean querysets default to 100 rows; warehouse queues hold more than that.
QUERY_LIMIT = 10_000


def find_all(aggregate_cls, **filters) -> list:
    """Return every record of ``aggregate_cls`` matching ``filters``."""
    repo = current_domain.repository_for(aggregate_cls)
    queryset = repo._dao.query.limit(QUERY_LIMIT)
    if filters:
        queryset = queryset.filter(**filters)
    return list(queryset.all().items)


def find_one(aggregate_cls, **filters):
    """Return the first matching record, or None."""
    results = find_all(aggregate_cls, **filters)
    return results[0] if results else None
