"""Logging setup and structured request logging."""

import logging
import sys
from typing import Any

from backend.equiptrack.db.context import Identity

http_logger = logging.getLogger("HTTP")


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the root logger."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())


class RequestLogger:
    """Structured logger for completed HTTP requests."""

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
        ip_address: str | None,
        identity: Identity | None,
    ) -> None:
        """Log one request; errors at ERROR level, everything else at INFO."""
        log_data: dict[str, Any] = {
            "method": method,
            "path": path,
            "status": status_code,
            "duration_ms": round(duration_ms, 2),
            "ip": ip_address,
        }

        if identity is not None:
            log_data["user_id"] = str(identity.user_id)
            log_data["company_id"] = str(identity.company_id)

        log_msg = f"{method} {path} {status_code} - {duration_ms:.0f}ms - {ip_address}"
        if identity is not None:
            log_msg += f" - User: {identity.email}"

        if status_code >= 400:
            http_logger.error(log_msg, extra={"structured": log_data})
        else:
            http_logger.info(log_msg, extra={"structured": log_data})
