"""Webhook verification, identity and delivery for hookrelay.

Example:
    ```python
    from hookrelay.webhooks import (
        DeliveryWorker,
        GatewayClient,
        extract_event_id,
        verify_webhook_signature,
    )

    result = verify_webhook_signature(raw_body, headers, secret, False, 300_000)
    if result.ok:
        event_id = extract_event_id(json.loads(raw_body), raw_body)
    ```
"""

from .gateway import GatewayClient, GatewayResult
from .identity import extract_event_id, extract_event_type, fallback_event_id
from .scheduler import DeliveryWorker, compute_backoff
from .signature import (
    SignatureResult,
    compute_signature,
    get_header,
    parse_timestamp,
    verify_webhook_signature,
)

__all__ = [
    "DeliveryWorker",
    "GatewayClient",
    "GatewayResult",
    "SignatureResult",
    "compute_backoff",
    "compute_signature",
    "extract_event_id",
    "extract_event_type",
    "fallback_event_id",
    "get_header",
    "parse_timestamp",
    "verify_webhook_signature",
]
