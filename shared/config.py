"""
Pipeline Configuration
Loads config/ticketing.yaml into typed settings and applies environment overrides
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from loguru import logger
from pydantic import BaseModel, Field, field_validator

DEFAULT_CONFIG_PATH = 'config/ticketing.yaml'

DEFAULT_FINES = {
    'no_stop': 300,
    'no_full_stop_on_right': 75,
    'no_right_on_red': 125,
}


class AWSSettings(BaseModel):
    region: str = 'us-east-1'


class QueueSettings(BaseModel):
    violations_url: str = ''  # Queue A: detector -> enricher
    enriched_url: str = ''  # Queue B: enricher -> notifier
    dead_letter_url: str = ''  # Empty: dead letters are logged instead of queued
    message_group_id: str = 'ticketing'
    wait_time_seconds: int = Field(20, ge=0, le=20)  # Long-poll bound per receive
    max_receive_count: int = Field(5, ge=1)


class ObjectStoreSettings(BaseModel):
    endpoint: str = 'localhost:9000'
    access_key: str = ''
    secret_key: str = ''
    bucket: str = 'violation-captures'
    secure: bool = False


class EventBusSettings(BaseModel):
    backend: str = 'kafka'  # kafka or eventbridge
    name: str = 'out-of-jurisdiction-plates'
    source: str = 'custom.imageProcessing'
    detail_type: str = 'Image Processed'
    kafka_bootstrap_servers: str = 'localhost:9092'

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v):
        if v not in ('kafka', 'eventbridge'):
            raise ValueError(f"Unsupported event bus backend: {v}")
        return v


class RegistrySettings(BaseModel):
    path: str = 'data/dmv_database.xml'
    max_staleness_seconds: float = Field(0.0, ge=0.0)  # 0: check the file on every lookup


class EmailSettings(BaseModel):
    enabled: bool = False
    smtp_host: str = ''
    smtp_port: int = 587
    use_tls: bool = True
    username: str = ''
    password: str = ''
    from_address: str = ''
    recipients: List[str] = Field(default_factory=list)  # Empty: mail the owner's contact


class WebhookSettings(BaseModel):
    enabled: bool = False
    url: str = ''
    method: str = 'POST'
    headers: Dict[str, str] = Field(default_factory=dict)
    timeout: float = 10.0


class NotifierSettings(BaseModel):
    backend: str = 'sns'  # sns or fanout
    topic_arn: str = ''
    time_zone: str = 'America/Los_Angeles'
    duplicate_window_seconds: float = Field(3600.0, ge=0.0)
    fines: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_FINES))
    email: EmailSettings = Field(default_factory=EmailSettings)
    webhook: WebhookSettings = Field(default_factory=WebhookSettings)

    @field_validator('backend')
    @classmethod
    def validate_backend(cls, v):
        if v not in ('sns', 'fanout'):
            raise ValueError(f"Unsupported notifier backend: {v}")
        return v

    @field_validator('time_zone')
    @classmethod
    def validate_time_zone(cls, v):
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown time zone: {v}") from e
        return v

    @field_validator('fines')
    @classmethod
    def validate_fines(cls, v):
        if not v:
            raise ValueError("Fine schedule must not be empty")
        for violation_type, amount in v.items():
            if amount < 0:
                raise ValueError(f"Fine for {violation_type} must be non-negative")
        return v


class TicketingConfig(BaseModel):
    """Top-level settings shared by every service entry point"""
    log_level: str = 'INFO'
    metrics_port: int = 0  # 0 disables the Prometheus exporter
    aws: AWSSettings = Field(default_factory=AWSSettings)
    queues: QueueSettings = Field(default_factory=QueueSettings)
    object_store: ObjectStoreSettings = Field(default_factory=ObjectStoreSettings)
    event_bus: EventBusSettings = Field(default_factory=EventBusSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    notifier: NotifierSettings = Field(default_factory=NotifierSettings)


# Environment variable -> (section, key); section None means top level
ENV_OVERRIDES = {
    'LOG_LEVEL': (None, 'log_level'),
    'METRICS_PORT': (None, 'metrics_port'),
    'AWS_REGION': ('aws', 'region'),
    'VIOLATIONS_QUEUE_URL': ('queues', 'violations_url'),
    'ENRICHED_QUEUE_URL': ('queues', 'enriched_url'),
    'DEAD_LETTER_QUEUE_URL': ('queues', 'dead_letter_url'),
    'MINIO_ENDPOINT': ('object_store', 'endpoint'),
    'MINIO_ACCESS_KEY': ('object_store', 'access_key'),
    'MINIO_SECRET_KEY': ('object_store', 'secret_key'),
    'MINIO_BUCKET': ('object_store', 'bucket'),
    'EVENT_BUS_BACKEND': ('event_bus', 'backend'),
    'EVENT_BUS_NAME': ('event_bus', 'name'),
    'KAFKA_BOOTSTRAP_SERVERS': ('event_bus', 'kafka_bootstrap_servers'),
    'REGISTRY_PATH': ('registry', 'path'),
    'NOTIFIER_BACKEND': ('notifier', 'backend'),
    'SNS_TOPIC_ARN': ('notifier', 'topic_arn'),
}


def _apply_env_overrides(raw: Dict, environ: Dict[str, str]) -> Dict:
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value == '':
            continue
        target = raw if section is None else raw.setdefault(section, {})
        target[key] = value
        logger.debug(f"Config override from {env_name}")
    return raw


def load_config(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> TicketingConfig:
    """
    Load pipeline configuration

    Args:
        path: YAML file path (defaults to $TICKETING_CONFIG, then config/ticketing.yaml)
        environ: Environment mapping used for overrides (defaults to os.environ)

    Returns:
        Validated TicketingConfig. A missing file yields the defaults plus
        environment overrides.
    """
    environ = os.environ if environ is None else environ
    config_path = Path(path or environ.get('TICKETING_CONFIG', DEFAULT_CONFIG_PATH))

    raw: Dict = {}
    if config_path.exists():
        with open(config_path, 'r') as f:
            raw = yaml.safe_load(f) or {}
        logger.info(f"Loaded configuration from {config_path}")
    else:
        logger.warning(f"Config file {config_path} not found, using defaults")

    return TicketingConfig(**_apply_env_overrides(raw, environ))
