"""Configuration for alert levels and the notification channels."""

from dataclasses import dataclass, field, replace
from datetime import timedelta

LOG_LEVELS = ("debug", "info", "warn", "error")
SYSLOG_FACILITIES = ("daemon",) + tuple(f"local{n}" for n in range(8))
AUDIT_FORMATS = ("json", "text")

_ZERO = timedelta(0)


class ValidationError(ValueError):
    """A configuration value is invalid."""

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


def _nested(prefix: str, err: ValidationError) -> ValidationError:
    return ValidationError(f"{prefix}.{err.field}", err.message)


@dataclass
class WebhookConfig:
    """Settings for the HTTP webhook notifier."""

    enabled: bool = False
    url: str = ""
    timeout: timedelta = _ZERO

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.url:
            raise ValidationError("webhook.url", "must not be empty when enabled")
        if self.timeout < _ZERO:
            raise ValidationError("webhook.timeout", "must not be negative")

    def merge(self, defaults: "WebhookConfig") -> "WebhookConfig":
        """Return a copy with zero-value fields taken from defaults."""
        return replace(self, timeout=self.timeout or defaults.timeout)


def default_webhook_config() -> WebhookConfig:
    return WebhookConfig(enabled=False, url="", timeout=timedelta(seconds=5))


@dataclass
class SlackConfig:
    """Settings for the Slack incoming-webhook notifier."""

    enabled: bool = False
    webhook_url: str = ""
    timeout: timedelta = _ZERO

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.webhook_url:
            raise ValidationError("slack.webhook_url", "must be set when enabled")
        if self.timeout < _ZERO:
            raise ValidationError("slack.timeout", "must not be negative")

    def merge(self, defaults: "SlackConfig") -> "SlackConfig":
        """Return a copy with zero-value fields taken from defaults."""
        return replace(self, timeout=self.timeout or defaults.timeout)


def default_slack_config() -> SlackConfig:
    return SlackConfig(enabled=False, webhook_url="", timeout=timedelta(seconds=5))


@dataclass
class EmailConfig:
    """Settings for the SMTP e-mail notifier."""

    enabled: bool = False
    smtp_host: str = ""
    smtp_port: int = 0
    username: str = ""
    password: str = ""
    sender: str = field(default="", metadata={"yaml": "from"})
    to: list[str] = field(default_factory=list)
    subject: str = ""
    timeout: timedelta = _ZERO

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.smtp_host:
            raise ValidationError("email.smtp_host", "is required when enabled")
        if not 0 < self.smtp_port <= 65535:
            raise ValidationError("email.smtp_port", "must be between 1 and 65535")
        if not self.sender:
            raise ValidationError("email.from", "address is required when enabled")
        if not self.to:
            raise ValidationError("email.to", "at least one recipient is required when enabled")
        if self.timeout < _ZERO:
            raise ValidationError("email.timeout", "must not be negative")

    def merge(self, defaults: "EmailConfig") -> "EmailConfig":
        """Return a copy with zero-value fields taken from defaults."""
        return replace(
            self,
            smtp_port=self.smtp_port or defaults.smtp_port,
            subject=self.subject or defaults.subject,
            timeout=self.timeout or defaults.timeout,
        )


def default_email_config() -> EmailConfig:
    return EmailConfig(
        enabled=False,
        smtp_port=587,
        subject="portwatch alert",
        timeout=timedelta(seconds=10),
    )


@dataclass
class ExecConfig:
    """Settings for the run-a-command notifier."""

    enabled: bool = False
    command: str = ""
    args: list[str] = field(default_factory=list)
    timeout: timedelta = _ZERO
    shell: bool = False

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.command:
            raise ValidationError("exec.command", "must not be empty when enabled")
        if self.timeout <= _ZERO:
            raise ValidationError(
                "exec.timeout", f"must be positive, got {self.timeout.total_seconds():g}s"
            )

    def merge(self, defaults: "ExecConfig") -> "ExecConfig":
        """Return a copy with zero-value fields taken from defaults."""
        return replace(self, timeout=self.timeout or defaults.timeout)


def default_exec_config() -> ExecConfig:
    return ExecConfig(enabled=False, command="", args=[], timeout=timedelta(seconds=5), shell=False)


@dataclass
class SyslogConfig:
    """Settings for the syslog notifier."""

    enabled: bool = False
    network: str = ""
    addr: str = ""
    tag: str = ""
    facility: str = ""

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.tag:
            raise ValidationError("syslog.tag", "must not be empty")
        if self.facility not in SYSLOG_FACILITIES:
            raise ValidationError("syslog.facility", f"unknown facility {self.facility!r}")
        if self.network and not self.addr:
            raise ValidationError("syslog.addr", f"must be set when network is {self.network!r}")

    def merge(self, defaults: "SyslogConfig") -> "SyslogConfig":
        """Return a copy with empty fields taken from defaults."""
        return replace(
            self,
            tag=self.tag or defaults.tag,
            facility=self.facility or defaults.facility,
        )


def default_syslog_config() -> SyslogConfig:
    return SyslogConfig(enabled=False, network="", addr="", tag="portwatch", facility="daemon")


@dataclass
class LogNotifierConfig:
    """Settings for the built-in log notifier."""

    enabled: bool = False
    level: str = ""

    def validate(self) -> None:
        if self.enabled and self.level not in LOG_LEVELS:
            raise ValidationError("log.level", "must be one of: " + ", ".join(LOG_LEVELS))


def default_log_notifier_config() -> LogNotifierConfig:
    return LogNotifierConfig(enabled=True, level="info")


@dataclass
class NotifierConfig:
    """All notification channels together."""

    log: LogNotifierConfig = field(default_factory=LogNotifierConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    email: EmailConfig = field(default_factory=EmailConfig)

    def validate(self) -> None:
        self.log.validate()
        self.webhook.validate()
        self.slack.validate()
        self.email.validate()

    def merge(self, defaults: "NotifierConfig") -> "NotifierConfig":
        """Return a copy whose empty log level is taken from defaults."""
        log = replace(self.log, level=self.log.level or defaults.log.level)
        return replace(self, log=log)


def default_notifier_config() -> NotifierConfig:
    return NotifierConfig(
        log=default_log_notifier_config(),
        webhook=default_webhook_config(),
        slack=default_slack_config(),
        email=default_email_config(),
    )


@dataclass
class AlertConfig:
    """Alert level, deduplication window and the alert channels."""

    level: str = ""
    dedup_window: timedelta = _ZERO
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    slack: SlackConfig = field(default_factory=SlackConfig)
    email: EmailConfig = field(default_factory=EmailConfig)

    def validate(self) -> None:
        if self.level not in LOG_LEVELS:
            raise ValidationError("alert.level", f"unknown level {self.level!r}")
        if self.dedup_window < _ZERO:
            raise ValidationError("alert.dedup_window", "must not be negative")
        if self.dedup_window == _ZERO:
            raise ValidationError("alert.dedup_window", "must be greater than zero")
        for channel in (self.webhook, self.slack, self.email):
            try:
                channel.validate()
            except ValidationError as err:
                raise _nested("alert", err) from err

    def merge(self, defaults: "AlertConfig") -> "AlertConfig":
        """Return a copy with zero-value fields taken from defaults."""
        return replace(
            self,
            level=self.level or defaults.level,
            dedup_window=self.dedup_window or defaults.dedup_window,
            webhook=self.webhook.merge(defaults.webhook),
            slack=self.slack.merge(defaults.slack),
            email=self.email.merge(defaults.email),
        )


def default_alert_config() -> AlertConfig:
    return AlertConfig(
        level="info",
        dedup_window=timedelta(seconds=30),
        webhook=default_webhook_config(),
        slack=default_slack_config(),
        email=default_email_config(),
    )


@dataclass
class AuditNotifierConfig:
    """Settings for wiring the audit log into the alert pipeline."""

    enabled: bool = False
    path: str = ""
    format: str = ""

    def validate(self) -> None:
        if not self.enabled:
            return
        if not self.path:
            raise ValidationError("audit_notifier.path", "must not be empty when enabled")
        if self.format not in AUDIT_FORMATS:
            raise ValidationError(
                "audit_notifier.format",
                f"invalid format {self.format!r}, must be 'json' or 'text'",
            )

    def merge(self, defaults: "AuditNotifierConfig") -> "AuditNotifierConfig":
        """Return a copy with zero-value fields taken from defaults."""
        return replace(
            self,
            path=self.path or defaults.path,
            format=self.format or defaults.format,
        )


def default_audit_notifier_config() -> AuditNotifierConfig:
    return AuditNotifierConfig(enabled=False, path="/var/log/portwatch/audit.log", format="json")