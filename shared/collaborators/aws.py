"""
AWS Collaborator Adapters
SQS queues, EventBridge bus, SNS topic and Rekognition text detection via boto3
"""

import json
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from shared.collaborators.base import (
    EventBus,
    MessageQueue,
    NotificationChannel,
    QueueMessage,
    TextDetector,
)
from shared.errors import CollaboratorError
from shared.schemas.violation import CapturedImage, NotificationMessage, TextDetection

AWS_ERRORS = (BotoCoreError, ClientError)


class SQSQueue(MessageQueue):
    """
    SQS FIFO queue

    Receives use long polling with a batch size of one and request the
    ApproximateReceiveCount attribute so workers can bound redeliveries.
    """

    def __init__(self, queue_url: str, client=None, region: str = 'us-east-1'):
        """
        Args:
            queue_url: Full queue URL (must end in .fifo for FIFO semantics)
            client: Pre-built boto3 SQS client (built from region if omitted)
            region: AWS region for the default client
        """
        if not queue_url:
            raise ValueError("SQS queue URL is required")
        self.queue_url = queue_url
        self.name = queue_url.rstrip('/').rsplit('/', 1)[-1]
        self.client = client or boto3.client('sqs', region_name=region)

    def send(self, body: str, group_id: str, dedup_id: str) -> str:
        try:
            response = self.client.send_message(
                QueueUrl=self.queue_url,
                MessageBody=body,
                MessageGroupId=group_id,
                MessageDeduplicationId=dedup_id,
            )
        except AWS_ERRORS as e:
            raise CollaboratorError(self.name, f"send_message failed: {e}", e) from e

        logger.debug(f"📤 Sent to {self.name}: message_id={response.get('MessageId')}")
        return response['MessageId']

    def receive(self, wait_seconds: float) -> Optional[QueueMessage]:
        try:
            response = self.client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=1,
                WaitTimeSeconds=int(wait_seconds),
                AttributeNames=['ApproximateReceiveCount'],
            )
        except AWS_ERRORS as e:
            raise CollaboratorError(self.name, f"receive_message failed: {e}", e) from e

        messages = response.get('Messages', [])
        if not messages:
            return None

        message = messages[0]
        attributes = message.get('Attributes', {})
        return QueueMessage(
            body=message['Body'],
            receipt_handle=message['ReceiptHandle'],
            message_id=message['MessageId'],
            receive_count=int(attributes.get('ApproximateReceiveCount', 1)),
        )

    def delete(self, receipt_handle: str):
        try:
            self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except AWS_ERRORS as e:
            raise CollaboratorError(self.name, f"delete_message failed: {e}", e) from e


class EventBridgeBus(EventBus):
    """Named EventBridge bus"""

    def __init__(self, bus_name: str, client=None, region: str = 'us-east-1'):
        self.bus_name = bus_name
        self.client = client or boto3.client('events', region_name=region)

    def publish(self, source: str, detail_type: str, detail: Dict[str, Any]):
        try:
            response = self.client.put_events(Entries=[{
                'EventBusName': self.bus_name,
                'Source': source,
                'DetailType': detail_type,
                'Detail': json.dumps(detail),
            }])
        except AWS_ERRORS as e:
            raise CollaboratorError('eventbridge', f"put_events failed: {e}", e) from e

        # put_events reports per-entry failures in a successful response
        if response.get('FailedEntryCount', 0):
            entry = (response.get('Entries') or [{}])[0]
            raise CollaboratorError(
                'eventbridge',
                f"Event rejected: {entry.get('ErrorCode')} {entry.get('ErrorMessage')}",
            )


class SNSChannel(NotificationChannel):
    """SNS topic; subscribers (email, SMS) receive the plain-text body"""

    def __init__(self, topic_arn: str, client=None, region: str = 'us-east-1'):
        if not topic_arn:
            raise ValueError("SNS topic ARN is required")
        self.topic_arn = topic_arn
        self.client = client or boto3.client('sns', region_name=region)

    def publish(self, message: NotificationMessage):
        params = {'TopicArn': self.topic_arn, 'Message': message.body}
        if message.subject:
            params['Subject'] = message.subject[:100]  # SNS subject limit

        try:
            response = self.client.publish(**params)
        except AWS_ERRORS as e:
            raise CollaboratorError('sns', f"publish failed: {e}", e) from e

        logger.debug(f"📨 SNS publish accepted: message_id={response.get('MessageId')}")


class RekognitionTextDetector(TextDetector):
    """
    Rekognition DetectText

    Sends the image bytes when the object store returned them, otherwise an
    S3 object reference (bucket/key).
    """

    def __init__(self, client=None, region: str = 'us-east-1'):
        self.client = client or boto3.client('rekognition', region_name=region)

    def detect_text(self, image: CapturedImage) -> List[TextDetection]:
        if image.data:
            image_param = {'Bytes': image.data}
        else:
            image_param = {'S3Object': {'Bucket': image.bucket, 'Name': image.key}}

        try:
            response = self.client.detect_text(Image=image_param)
        except AWS_ERRORS as e:
            raise CollaboratorError('rekognition', f"detect_text failed: {e}", e) from e

        return [
            TextDetection(text=d['DetectedText'], confidence=d.get('Confidence', 0.0))
            for d in response.get('TextDetections', [])
        ]
