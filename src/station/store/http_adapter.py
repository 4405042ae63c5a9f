"""HTTP store adapter — talks to the batching API over httpx.

Status codes are mapped onto the ``StoreError`` hierarchy:

    400, 422  StoreValidationError
    404       StoreNotFoundError
    409       StoreConflictError
    5xx       StoreTransientError (as are connection failures and timeouts)
"""

import httpx

from batching.utils.logging import get_logger
from station.store.errors import (
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
    StoreTransientError,
    StoreValidationError,
)
from station.store.port import StorePort

logger = get_logger(__name__)

_STATUS_ERRORS = {
    400: StoreValidationError,
    404: StoreNotFoundError,
    409: StoreConflictError,
    422: StoreValidationError,
}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        message = body.get("error") or body.get("detail") or body.get("message")
        if isinstance(message, dict):
            return "; ".join(
                f"{field}: {', '.join(map(str, errors)) if isinstance(errors, list) else errors}"
                for field, errors in message.items()
            )
        if message:
            return str(message)
    return str(body)


class HttpStore(StorePort):
    """Store adapter over the batching HTTP API."""

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.Client | None = None):
        self.client = client or httpx.Client(base_url=base_url.rstrip("/"), timeout=timeout)

    def close(self) -> None:
        self.client.close()

    def _request(self, method: str, path: str, json: dict | None = None, params: dict | None = None):
        try:
            response = self.client.request(method, path, json=json, params=params)
        except httpx.TransportError as exc:
            logger.warning("store_unreachable", method=method, path=path, error=str(exc))
            raise StoreTransientError(f"Store unreachable: {exc}") from exc

        if response.is_success:
            if not response.content:
                return {}
            try:
                return response.json()
            except ValueError as exc:
                logger.warning("store_bad_response", method=method, path=path, status_code=response.status_code)
                raise StoreTransientError(f"Store returned an unreadable response for {path}") from exc

        message = _error_message(response)
        if response.status_code >= 500:
            error_class = StoreTransientError
        else:
            error_class = _STATUS_ERRORS.get(response.status_code, StoreError)
        logger.info(
            "store_request_failed",
            method=method,
            path=path,
            status_code=response.status_code,
            error=message,
        )
        raise error_class(message, status_code=response.status_code)

    # Queues and administration
    def get_cells(self, active_only: bool = False) -> list[dict]:
        return self._request("GET", "/cells", params={"active_only": active_only})

    def get_batches(self) -> list[dict]:
        return self._request("GET", "/batches")

    def get_queue(self, cell_id: str) -> list[dict]:
        return self._request("GET", f"/batches/queue/{cell_id}")

    def get_personalized_pool(self) -> list[dict]:
        return self._request("GET", "/batches/personalized")

    def create_batch(
        self,
        order_numbers: list[str],
        cell_ids: list[str],
        batch_type: str | None = None,
        is_personalized: bool | None = None,
        name: str | None = None,
    ) -> dict:
        return self._request(
            "POST",
            "/batches",
            json={
                "order_numbers": order_numbers,
                "cell_ids": cell_ids,
                "batch_type": batch_type,
                "is_personalized": is_personalized,
                "name": name,
            },
        )

    def reorder_batch(self, batch_id: str, cell_id: str | None, priority: int) -> dict:
        return self._request(
            "POST",
            f"/batches/{batch_id}/reorder",
            json={"cell_id": cell_id, "priority": priority},
        )

    def set_cell_assignments(self, batch_id: str, cell_ids: list[str]) -> dict:
        return self._request("PUT", f"/batches/{batch_id}/cells", json={"cell_ids": cell_ids})

    def delete_batch(self, batch_id: str) -> dict:
        return self._request("DELETE", f"/batches/{batch_id}")

    def reset_all_batches(self) -> dict:
        return self._request("POST", "/batches/reset", json={"requested_by": "station"})

    # Carts
    def checkout_cart(
        self,
        cart_id: str,
        worker_name: str,
        phase: str,
        cell_id: str | None = None,
    ) -> dict:
        return self._request(
            "POST",
            f"/carts/{cart_id}/checkout",
            json={"worker_name": worker_name, "phase": phase, "cell_id": cell_id},
        )

    def get_cart_chunk(self, cart_id: str) -> dict:
        return self._request("GET", f"/carts/{cart_id}/chunk")

    def release_cart(self, cart_id: str, reason: str | None = None) -> dict:
        return self._request("POST", f"/carts/{cart_id}/release", json={"reason": reason})

    # Picking
    def report_out_of_stock(self, chunk_id: str, bin_numbers: list[int]) -> dict:
        return self._request("POST", f"/chunks/{chunk_id}/out-of-stock", json={"bin_numbers": bin_numbers})

    def complete_picking(self, chunk_id: str) -> dict:
        return self._request("POST", f"/chunks/{chunk_id}/picked")

    def cancel_picking(self, chunk_id: str) -> dict:
        return self._request("POST", f"/chunks/{chunk_id}/cancel")

    # Shipping
    def complete_order(self, chunk_id: str, order_number: str, extra: dict | None = None) -> dict:
        return self._request(
            "POST",
            f"/chunks/{chunk_id}/orders/{order_number}/complete",
            json=extra or {},
        )

    def complete_cart(self, cart_id: str, chunk_id: str) -> dict:
        return self._request("POST", f"/carts/{cart_id}/complete", json={"chunk_id": chunk_id})

    # Engraving
    def mark_engraved_item(self, chunk_id: str, item_index: int, total_paused_ms: int) -> dict:
        return self._request(
            "POST",
            f"/chunks/{chunk_id}/engraving/items",
            json={"item_index": item_index, "total_paused_ms": total_paused_ms},
        )

    def mark_engraved(self, chunk_id: str, order_number: str) -> dict:
        return self._request("POST", f"/chunks/{chunk_id}/engraving/orders/{order_number}")

    def complete_engraving(self, chunk_id: str, metrics: dict) -> dict:
        return self._request("POST", f"/chunks/{chunk_id}/engraving/complete", json=metrics)

    def cancel_engraving(self, chunk_id: str) -> dict:
        return self._request("POST", f"/chunks/{chunk_id}/engraving/cancel")
