"""concierge.integrations: External service gateway modules.

All outbound HTTP calls to third-party APIs must go through a gateway in this
package, never via bare `requests` calls in services or blueprints.

Every gateway call is:
  - Authenticated (service key injected by the gateway)
  - Retried with backoff on network errors and 5xx responses
  - Returned as a structured result (never raises to the service)

Current gateways:
  storage_gateway.StorageGateway: object storage REST API (checklist attachments)
"""
