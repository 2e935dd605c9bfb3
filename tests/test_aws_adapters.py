"""Tests for the boto3 adapters, driven through botocore's Stubber."""

import json

import boto3
import pytest
from botocore.stub import Stubber

from shared.collaborators.aws import EventBridgeBus, RekognitionTextDetector, SNSChannel, SQSQueue
from shared.errors import CollaboratorError
from shared.schemas.violation import CapturedImage, NotificationMessage, TextDetection, ViolationMetadata

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/violations.fifo"
TOPIC_ARN = "arn:aws:sns:us-east-1:123456789012:ticket-notices"


def make_client(service):
    return boto3.client(
        service,
        region_name="us-east-1",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


@pytest.fixture
def sqs():
    client = make_client("sqs")
    with Stubber(client) as stubber:
        yield client, stubber
        stubber.assert_no_pending_responses()


@pytest.fixture
def captured_image():
    return CapturedImage(
        bucket="violation-captures",
        key="capture-001.jpg",
        metadata=ViolationMetadata(
            violation_type="no_stop",
            timestamp="2024-05-01T10:00:00Z",
            location="Main St and 116th AVE intersection, Bellevue",
        ),
        data=b"\xff\xd8jpeg",
    )


class TestSQSQueue:
    def test_name_from_url(self, sqs):
        client, _ = sqs

        assert SQSQueue(QUEUE_URL, client=client).name == "violations.fifo"

    def test_send_uses_group_and_dedup_id(self, sqs):
        client, stubber = sqs
        stubber.add_response(
            "send_message",
            {"MessageId": "msg-1"},
            {
                "QueueUrl": QUEUE_URL,
                "MessageBody": '{"plate": "3ABC123"}',
                "MessageGroupId": "ticketing",
                "MessageDeduplicationId": "abc123",
            },
        )

        message_id = SQSQueue(QUEUE_URL, client=client).send('{"plate": "3ABC123"}', "ticketing", "abc123")

        assert message_id == "msg-1"

    def test_receive_one_message(self, sqs):
        client, stubber = sqs
        stubber.add_response(
            "receive_message",
            {"Messages": [{
                "MessageId": "msg-1",
                "ReceiptHandle": "handle-1",
                "Body": "{}",
                "Attributes": {"ApproximateReceiveCount": "3"},
            }]},
            {
                "QueueUrl": QUEUE_URL,
                "MaxNumberOfMessages": 1,
                "WaitTimeSeconds": 20,
                "AttributeNames": ["ApproximateReceiveCount"],
            },
        )

        message = SQSQueue(QUEUE_URL, client=client).receive(20)

        assert message.body == "{}"
        assert message.receipt_handle == "handle-1"
        assert message.receive_count == 3

    def test_receive_nothing(self, sqs):
        client, stubber = sqs
        stubber.add_response("receive_message", {})

        assert SQSQueue(QUEUE_URL, client=client).receive(0) is None

    def test_delete(self, sqs):
        client, stubber = sqs
        stubber.add_response("delete_message", {}, {"QueueUrl": QUEUE_URL, "ReceiptHandle": "handle-1"})

        SQSQueue(QUEUE_URL, client=client).delete("handle-1")

    def test_client_error_is_wrapped(self, sqs):
        client, stubber = sqs
        stubber.add_client_error("send_message", service_error_code="InvalidParameterValue")

        with pytest.raises(CollaboratorError) as exc_info:
            SQSQueue(QUEUE_URL, client=client).send("{}", "ticketing", "abc")

        assert exc_info.value.collaborator == "violations.fifo"

    def test_requires_url(self):
        with pytest.raises(ValueError):
            SQSQueue("", client=make_client("sqs"))


class TestEventBridgeBus:
    def test_publish(self):
        client = make_client("events")
        detail = {"plate": "", "image_key": "capture-001.jpg"}
        with Stubber(client) as stubber:
            stubber.add_response(
                "put_events",
                {"FailedEntryCount": 0, "Entries": [{"EventId": "event-1"}]},
                {"Entries": [{
                    "EventBusName": "out-of-jurisdiction-plates",
                    "Source": "custom.imageProcessing",
                    "DetailType": "Image Processed",
                    "Detail": json.dumps(detail),
                }]},
            )

            EventBridgeBus("out-of-jurisdiction-plates", client=client).publish(
                "custom.imageProcessing", "Image Processed", detail
            )
            stubber.assert_no_pending_responses()

    def test_failed_entry_is_an_error(self):
        client = make_client("events")
        with Stubber(client) as stubber:
            stubber.add_response(
                "put_events",
                {"FailedEntryCount": 1, "Entries": [{"ErrorCode": "InternalFailure", "ErrorMessage": "try again"}]},
            )

            with pytest.raises(CollaboratorError):
                EventBridgeBus("bus", client=client).publish("src", "type", {})


class TestSNSChannel:
    def test_publish(self):
        client = make_client("sns")
        notice = NotificationMessage(recipient_contact="j@x.com", body="Hello J Doe", subject="Traffic violation notice")
        with Stubber(client) as stubber:
            stubber.add_response(
                "publish",
                {"MessageId": "sns-1"},
                {"TopicArn": TOPIC_ARN, "Message": "Hello J Doe", "Subject": "Traffic violation notice"},
            )

            SNSChannel(TOPIC_ARN, client=client).publish(notice)
            stubber.assert_no_pending_responses()

    def test_publish_failure(self):
        client = make_client("sns")
        with Stubber(client) as stubber:
            stubber.add_client_error("publish", service_error_code="InternalError", http_status_code=500)

            with pytest.raises(CollaboratorError):
                SNSChannel(TOPIC_ARN, client=client).publish(NotificationMessage(recipient_contact="x", body="b"))


class TestRekognitionTextDetector:
    def test_detect_from_bytes(self, captured_image):
        client = make_client("rekognition")
        with Stubber(client) as stubber:
            stubber.add_response(
                "detect_text",
                {"TextDetections": [
                    {"DetectedText": "CALIFORNIA", "Confidence": 97.5, "Type": "LINE"},
                    {"DetectedText": "3ABC123", "Confidence": 99.1, "Type": "LINE"},
                ]},
                {"Image": {"Bytes": b"\xff\xd8jpeg"}},
            )

            detections = RekognitionTextDetector(client=client).detect_text(captured_image)

        assert detections == [
            TextDetection(text="CALIFORNIA", confidence=97.5),
            TextDetection(text="3ABC123", confidence=99.1),
        ]

    def test_detect_from_object_reference(self, captured_image):
        client = make_client("rekognition")
        image = captured_image.model_copy(update={"data": b""})
        with Stubber(client) as stubber:
            stubber.add_response(
                "detect_text",
                {"TextDetections": []},
                {"Image": {"S3Object": {"Bucket": "violation-captures", "Name": "capture-001.jpg"}}},
            )

            assert RekognitionTextDetector(client=client).detect_text(image) == []
