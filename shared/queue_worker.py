"""
Queue Worker
Long-running single-message poll loop shared by the enricher, notifier and
dead-letter monitor
"""

import signal
import threading
import time
from abc import ABC, abstractmethod
from typing import Dict, Optional

from loguru import logger
from prometheus_client import Counter, Histogram

from shared.collaborators.base import DeadLetterSink, MessageQueue, QueueMessage
from shared.collaborators.dead_letter import LogDeadLetterSink
from shared.errors import CollaboratorError
from shared.schemas.violation import DeadLetterErrorType, DeadLetterRecord, ProcessingOutcome


class QueueWorker(ABC):
    """
    Base class for queue consumers

    Each iteration waits up to wait_time_seconds for one message and drives it
    through Received -> Processing -> one of:
      - published and deleted (success)
      - deleted without output (defined miss, routed to the dead-letter sink)
      - left undeleted for redelivery (collaborator failure)

    Messages received more than max_receive_count times are dead-lettered
    before processing. stop() is cooperative: the message in flight is
    finished before the loop exits.
    """

    stage = 'worker'

    # Prometheus metrics (class-level, shared by all stages through labels)
    metrics_messages = Counter(
        'ticketing_worker_messages_total',
        'Queue messages handled',
        ['stage', 'outcome']
    )
    metrics_dead_letters = Counter(
        'ticketing_dead_letters_total',
        'Messages routed to the dead-letter sink',
        ['stage', 'error_type']
    )
    metrics_processing_time = Histogram(
        'ticketing_worker_processing_seconds',
        'Time spent processing one message',
        ['stage']
    )

    def __init__(
        self,
        source_queue: MessageQueue,
        dead_letter_sink: Optional[DeadLetterSink] = None,
        wait_time_seconds: float = 20,
        max_receive_count: int = 5,
        error_backoff_seconds: float = 1.0,
    ):
        """
        Args:
            source_queue: Queue this worker consumes
            dead_letter_sink: Where undeliverable messages go (logged if omitted)
            wait_time_seconds: Long-poll bound for each receive
            max_receive_count: Receives allowed before a message is dead-lettered
            error_backoff_seconds: Pause after a failed iteration
        """
        self.source_queue = source_queue
        self.dead_letter_sink = dead_letter_sink or LogDeadLetterSink()
        self.wait_time_seconds = wait_time_seconds
        self.max_receive_count = max_receive_count
        self.error_backoff_seconds = error_backoff_seconds

        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self.stats: Dict[str, int] = {outcome.value: 0 for outcome in ProcessingOutcome}

    @abstractmethod
    def process_message(self, message: QueueMessage) -> ProcessingOutcome:
        """
        Process one received message

        Implementations acknowledge (delete) the message on success and on
        defined misses, and raise CollaboratorError to leave it for redelivery.
        """

    def poll_once(self) -> ProcessingOutcome:
        """Receive and handle at most one message"""
        try:
            message = self.source_queue.receive(self.wait_time_seconds)
        except CollaboratorError as e:
            logger.error(f"Receive from {self.source_queue.name} failed: {e}")
            return self._record(ProcessingOutcome.RETRY)

        if message is None:
            return self._record(ProcessingOutcome.EMPTY)

        return self.handle(message)

    def handle(self, message: QueueMessage) -> ProcessingOutcome:
        """Run one received message through the state machine"""
        start_time = time.time()
        try:
            if message.receive_count > self.max_receive_count:
                self.dead_letter(
                    message,
                    DeadLetterErrorType.MAX_RECEIVES_EXCEEDED,
                    f"Received {message.receive_count} times (limit {self.max_receive_count})",
                )
                outcome = ProcessingOutcome.DEAD_LETTERED
            else:
                outcome = self.process_message(message)
        except CollaboratorError as e:
            logger.error(
                f"⚠️  {self.stage}: {e}; leaving message {message.message_id} for redelivery "
                f"(receive {message.receive_count}/{self.max_receive_count})"
            )
            outcome = ProcessingOutcome.RETRY
        except Exception:
            logger.exception(
                f"Unexpected error in {self.stage} handling message {message.message_id}; "
                f"leaving it for redelivery"
            )
            outcome = ProcessingOutcome.RETRY
        finally:
            self.metrics_processing_time.labels(stage=self.stage).observe(time.time() - start_time)

        return self._record(outcome)

    def acknowledge(self, message: QueueMessage):
        """Delete a fully handled message from the source queue"""
        self.source_queue.delete(message.receipt_handle)

    def dead_letter(self, message: QueueMessage, error_type: DeadLetterErrorType, error_message: str):
        """Route a message to the dead-letter sink, then delete it"""
        self.dead_letter_sink.put(DeadLetterRecord(
            stage=self.stage,
            source_queue=self.source_queue.name,
            error_type=error_type,
            error_message=error_message,
            original_message=message.body,
            receive_count=message.receive_count,
        ))
        self.metrics_dead_letters.labels(stage=self.stage, error_type=error_type.value).inc()
        self.acknowledge(message)

    def _record(self, outcome: ProcessingOutcome) -> ProcessingOutcome:
        self.stats[outcome.value] += 1
        if outcome is not ProcessingOutcome.EMPTY:
            self.metrics_messages.labels(stage=self.stage, outcome=outcome.value).inc()
        return outcome

    # Lifecycle

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def run(self):
        """Poll until stop() is called"""
        logger.info(f"🚀 Starting {self.stage} worker (queue: {self.source_queue.name})")

        while not self._stop_event.is_set():
            try:
                outcome = self.poll_once()
            except Exception:
                logger.exception(f"Unexpected error in {self.stage} worker")
                outcome = ProcessingOutcome.RETRY

            if outcome is ProcessingOutcome.RETRY:
                self._stop_event.wait(self.error_backoff_seconds)

        self._log_stats()
        logger.success(f"✅ {self.stage} worker stopped")

    def run_in_thread(self) -> threading.Thread:
        """Start the poll loop on a background thread"""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self.run, name=f"{self.stage}-worker", daemon=True)
        self._thread.start()
        return self._thread

    def stop(self, timeout: Optional[float] = None):
        """
        Request a graceful drain

        The message in flight is finished; the loop exits after the current
        poll returns. Joins the background thread if one was started.
        """
        logger.info(f"Stopping {self.stage} worker...")
        self._stop_event.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout)

    def install_signal_handlers(self):
        """Stop on SIGINT/SIGTERM (main thread only)"""
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        logger.warning(f"Received signal {signum}, draining {self.stage} worker...")
        self._stop_event.set()

    def _log_stats(self):
        summary = ', '.join(f"{name}={count}" for name, count in self.stats.items() if count)
        logger.info(f"📊 {self.stage} stats: {summary or 'no messages'}")

    def get_stats(self) -> Dict[str, int]:
        return dict(self.stats)
