from tests.helpers.app import build_test_app, override_dependencies
from tests.helpers.assertions import assert_error_payload
from tests.helpers.bus import build_delivery_policy, build_memory_bus, fast_retry_policy, no_sleep
from tests.helpers.factories import (
    make_checkout_session,
    make_create_order_request,
    make_envelope,
    make_order,
    make_session_response,
    make_webhook_body,
    sign_webhook,
)
from tests.helpers.fakes import (
    FakeCheckoutSessionRepository,
    FakeOrderRepository,
    FakeOutboxRepository,
    FakePaymentsClient,
    FakeProcessedEventRepository,
    FakeProjectionRepository,
    FakeSession,
    FakeSessionFactory,
)

__all__ = [
    "FakeCheckoutSessionRepository",
    "FakeOrderRepository",
    "FakeOutboxRepository",
    "FakePaymentsClient",
    "FakeProcessedEventRepository",
    "FakeProjectionRepository",
    "FakeSession",
    "FakeSessionFactory",
    "assert_error_payload",
    "build_delivery_policy",
    "build_memory_bus",
    "build_test_app",
    "fast_retry_policy",
    "make_checkout_session",
    "make_create_order_request",
    "make_envelope",
    "make_order",
    "make_session_response",
    "make_webhook_body",
    "no_sleep",
    "override_dependencies",
    "sign_webhook",
]
