from dataclasses import dataclass


@dataclass
class AppConfig:
    name: str
    secret_key: str
    environment: str
    token_max_age: int


@dataclass
class EmailConfig:
    enabled: bool
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    sender: str
    internal_email: str


@dataclass
class AutomationConfig:
    endpoint_url: str
    timeout_seconds: float


@dataclass
class WhopConfig:
    webhook_secret: str
    allow_unsigned: bool
    tolerance_seconds: int


@dataclass
class OutboxConfig:
    max_attempts: int
    backoff_base_seconds: int
