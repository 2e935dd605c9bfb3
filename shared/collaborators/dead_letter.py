"""
Dead-Letter Sinks
Destinations for messages a stage could not turn into output
"""

from typing import List

from loguru import logger

from shared.collaborators.base import DeadLetterSink, MessageQueue
from shared.schemas.violation import DeadLetterRecord
from shared.utils.dedup import content_dedup_id


class QueueDeadLetterSink(DeadLetterSink):
    """Sends dead-letter records to a dedicated queue as JSON"""

    def __init__(self, queue: MessageQueue, group_id: str = 'dead-letters'):
        self.queue = queue
        self.group_id = group_id

    def put(self, record: DeadLetterRecord):
        # Re-dead-lettering the same redelivered message is suppressed by the queue
        dedup_id = content_dedup_id(
            record.stage,
            record.source_queue,
            record.error_type.value,
            record.original_message,
        )
        self.queue.send(record.model_dump_json(), group_id=self.group_id, dedup_id=dedup_id)
        logger.warning(
            f"💀 Dead-lettered {record.error_type.value} from {record.source_queue} "
            f"to {self.queue.name} (dlq_id={record.dlq_id})"
        )


class LogDeadLetterSink(DeadLetterSink):
    """Logs the full record at ERROR level when no dead-letter queue is configured"""

    def put(self, record: DeadLetterRecord):
        logger.error(
            f"💀 Dead letter ({record.error_type.value})\n"
            f"   ID: {record.dlq_id}\n"
            f"   Stage: {record.stage}\n"
            f"   Source Queue: {record.source_queue}\n"
            f"   Receives: {record.receive_count}\n"
            f"   Error: {record.error_message}\n"
            f"   Original Message: {record.original_message}"
        )


class InMemoryDeadLetterSink(DeadLetterSink):
    def __init__(self):
        self.records: List[DeadLetterRecord] = []

    def put(self, record: DeadLetterRecord):
        self.records.append(record)
