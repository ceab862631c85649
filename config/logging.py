"""Logging configuration for the risk assessment engine.

This module provides:
- Centralized logging configuration
- JSON log formatting for production
- structlog setup for request logging
- Audit logging for risk assessments and alert lifecycle events
"""

import logging
import logging.config
import sys
from datetime import datetime, timezone
from typing import Dict, Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

from .base import BaseConfig
from .factory import get_settings


class CustomJSONFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with service fields."""

    def __init__(self, *args, service_version: str = "unknown", environment: str = "unknown", **kwargs):
        super().__init__(*args, **kwargs)
        self.service_version = service_version
        self.environment = environment

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]):
        """Add custom fields to log record.

        Args:
            log_record: Log record dictionary
            record: Original log record
            message_dict: Message dictionary
        """
        super().add_fields(log_record, record, message_dict)

        if not log_record.get('timestamp'):
            log_record['timestamp'] = datetime.now(timezone.utc).isoformat()

        log_record['service'] = 'p2p-risk-engine'
        log_record['version'] = self.service_version
        log_record['environment'] = self.environment

        if log_record.get('level'):
            log_record['level'] = log_record['level'].upper()
        else:
            log_record['level'] = record.levelname


class AuditLogger:
    """Specialized logger for audit events."""

    def __init__(self, settings: Optional[BaseConfig] = None):
        self.settings = settings or get_settings()
        self.logger = logging.getLogger('audit')
        self._setup_audit_logger()

    def _setup_audit_logger(self):
        """Attach a JSON handler once."""
        if self.logger.handlers:
            return

        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(CustomJSONFormatter(
            '%(timestamp)s %(level)s %(name)s %(message)s',
            service_version=self.settings.app_version,
            environment=self.settings.environment.value,
        ))

        self.logger.addHandler(handler)
        self.logger.setLevel(logging.INFO)
        self.logger.propagate = False

    def log_risk_assessment(self,
                            transaction_id: str,
                            user_id: str,
                            risk_score: float,
                            risk_level: str,
                            recommended_action: str,
                            confidence: float,
                            factor_names: list,
                            processing_time_ms: float,
                            degraded: bool = False):
        """Log a completed risk assessment.

        Args:
            transaction_id: Transaction ID
            user_id: User ID
            risk_score: Final risk score (0-100)
            risk_level: Risk level bin
            recommended_action: Action handed to the payment pipeline
            confidence: Assessment confidence (0-1)
            factor_names: Names of the factors that fired
            processing_time_ms: Processing time in milliseconds
            degraded: Whether one or more collaborators were unavailable
        """
        self.logger.info(
            "Risk assessment completed",
            extra={
                'event_type': 'risk_assessment',
                'transaction_id': transaction_id,
                'user_id': user_id,
                'risk_score': risk_score,
                'risk_level': risk_level,
                'recommended_action': recommended_action,
                'confidence': confidence,
                'factors': factor_names,
                'factor_count': len(factor_names),
                'processing_time_ms': processing_time_ms,
                'degraded': degraded,
            }
        )

    def log_alert_event(self,
                        event: str,
                        alert_id: str,
                        transaction_id: str,
                        severity: str,
                        status: str,
                        actor: Optional[str] = None):
        """Log an alert lifecycle event.

        Args:
            event: Lifecycle event name (created, investigating, resolved)
            alert_id: Alert ID
            transaction_id: Transaction the alert references
            severity: Alert severity
            status: Alert status after the event
            actor: Operator responsible for the change, if any
        """
        self.logger.info(
            f"Fraud alert {event}",
            extra={
                'event_type': 'fraud_alert',
                'alert_event': event,
                'alert_id': alert_id,
                'transaction_id': transaction_id,
                'severity': severity,
                'status': status,
                'actor': actor,
            }
        )


def setup_logging(settings: Optional[BaseConfig] = None) -> Dict[str, Any]:
    """Build the logging configuration dictionary.

    Args:
        settings: Configuration instance. If None, uses current settings.

    Returns:
        Logging configuration dictionary
    """
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level.value.upper(), logging.INFO)

    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'json': {
                '()': CustomJSONFormatter,
                'fmt': '%(timestamp)s %(level)s %(name)s %(message)s',
                'service_version': settings.app_version,
                'environment': settings.environment.value,
            },
            'simple': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            }
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': log_level,
                'formatter': 'json' if settings.is_production() else 'simple',
                'stream': 'ext://sys.stdout'
            }
        },
        'loggers': {
            '': {  # Root logger
                'level': log_level,
                'handlers': ['console'],
                'propagate': False
            },
            'uvicorn': {
                'level': log_level,
                'handlers': ['console'],
                'propagate': False
            },
            'fastapi': {
                'level': log_level,
                'handlers': ['console'],
                'propagate': False
            }
        }
    }


def configure_structlog(settings: Optional[BaseConfig] = None):
    """Configure structlog for structured logging."""
    settings = settings or get_settings()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if settings.is_production() else structlog.dev.ConsoleRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def initialize_logging(settings: Optional[BaseConfig] = None) -> AuditLogger:
    """Initialize logging system.

    Returns:
        The audit logger
    """
    settings = settings or get_settings()

    logging.config.dictConfig(setup_logging(settings))
    configure_structlog(settings)

    logging.getLogger("asyncio").setLevel(logging.WARNING)
    logging.getLogger("aiohttp").setLevel(logging.WARNING)

    audit_logger = AuditLogger(settings)
    logging.getLogger(__name__).info(
        f"Logging initialized for {settings.environment.value} environment"
    )
    return audit_logger

