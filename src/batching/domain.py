"""Batching bounded context — Batch Queue, Carts and Station Progress.

Turns intake orders into batches, splits batches into chunks checked out on
physical carts, and records picking, engraving and shipping progress reported
by the stations. Uses CQRS because every station reports facts synchronously
and dashboards read the aggregate counters directly.
"""

from protean.domain import Domain

from batching.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

batching = Domain(name="batching")
