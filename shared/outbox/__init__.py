from shared.outbox.relay import OutboxRelayWorker
from shared.outbox.repository import OutboxRepository, envelope_from_row

__all__ = ["OutboxRelayWorker", "OutboxRepository", "envelope_from_row"]
