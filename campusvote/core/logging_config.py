"""Structured logging configuration for the application."""

from datetime import UTC, datetime
import json
import logging
import sys

from campusvote.core.config import settings


class JSONFormatter(logging.Formatter):
    """Format logs as JSON for structured logging in production."""

    def format(self, record: logging.LogRecord) -> str:
        """Format the log record as JSON."""
        log_data = {
            "timestamp": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields if present
        if hasattr(record, "extra_fields"):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class StandardFormatter(logging.Formatter):
    """Human-readable formatter for development."""

    def __init__(self) -> None:
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )


def setup_logging() -> None:
    """Configure application logging based on environment."""
    log_level = logging.INFO
    if settings.ENVIRONMENT == "development":
        log_level = logging.DEBUG
    elif settings.ENVIRONMENT == "production":
        log_level = logging.WARNING

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)

    if settings.ENVIRONMENT == "production":
        formatter = JSONFormatter()
    else:
        formatter = StandardFormatter()

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set specific log levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)
    logging.getLogger("fastapi").setLevel(logging.INFO)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name."""
    return logging.getLogger(name)


class ElectionEventLogger:
    """Specialized logger for ballot, participation and candidacy events."""

    def __init__(self) -> None:
        self.logger = get_logger("election_events")

    def log_ballot_cast(self, election_id: str, position_id: str, voter_id: str) -> None:
        """Log an accepted ballot."""
        self.logger.info(
            f"Ballot cast for position: {position_id}",
            extra={
                "extra_fields": {
                    "event_type": "ballot_cast",
                    "election_id": election_id,
                    "position_id": position_id,
                    "voter_id": voter_id,
                }
            },
        )

    def log_ballot_rejected(
        self, election_id: str, position_id: str, voter_id: str, state: str
    ) -> None:
        """Log a ballot refused because the position was not open for the voter."""
        self.logger.warning(
            f"Ballot rejected for position {position_id}: {state}",
            extra={
                "extra_fields": {
                    "event_type": "ballot_rejected",
                    "election_id": election_id,
                    "position_id": position_id,
                    "voter_id": voter_id,
                    "state": state,
                }
            },
        )

    def log_participation_confirmed(
        self, election_id: str, voter_id: str, created: bool
    ) -> None:
        """Log a participation confirmation (or a repeated one)."""
        self.logger.info(
            f"Participation {'confirmed' if created else 'already confirmed'} for voter: {voter_id}",
            extra={
                "extra_fields": {
                    "event_type": "participation_confirmed",
                    "election_id": election_id,
                    "voter_id": voter_id,
                    "created": created,
                }
            },
        )

    def log_candidacy_admitted(
        self, election_id: str, position_id: str, candidate_id: str, edited: bool
    ) -> None:
        """Log an admitted candidacy."""
        self.logger.info(
            f"Candidacy {'updated' if edited else 'admitted'}: {candidate_id}",
            extra={
                "extra_fields": {
                    "event_type": "candidacy_admitted",
                    "election_id": election_id,
                    "position_id": position_id,
                    "candidate_id": candidate_id,
                    "edited": edited,
                }
            },
        )

    def log_candidacy_rejected(
        self, election_id: str, position_id: str, voter_id: str, kinds: list[str]
    ) -> None:
        """Log a candidacy refused by admission rules."""
        self.logger.warning(
            f"Candidacy rejected for voter {voter_id}: {', '.join(kinds)}",
            extra={
                "extra_fields": {
                    "event_type": "candidacy_rejected",
                    "election_id": election_id,
                    "position_id": position_id,
                    "voter_id": voter_id,
                    "violations": kinds,
                }
            },
        )

    def log_configuration_error(self, message: str, details: dict) -> None:
        """Log bad administrative data that blocks a position."""
        self.logger.warning(
            f"Configuration error: {message}",
            extra={"extra_fields": {"event_type": "configuration_error", **details}},
        )

    def log_data_integrity_error(self, message: str, details: dict) -> None:
        """Log corrupted data that aborted a tally."""
        self.logger.error(
            f"Data integrity error: {message}",
            extra={"extra_fields": {"event_type": "data_integrity_error", **details}},
        )


# Global election event logger instance
election_logger = ElectionEventLogger()
