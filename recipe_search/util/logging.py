"""
Structured operation logging for backfill, index, search and chat operations.
"""

import logging
from typing import Any, Dict, List

class StructuredLogger:
    """Structured logger for backfill, index lifecycle, search and chat relay operations."""

    def __init__(self, name: str = "recipe_search"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None, level: int = logging.INFO):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {sanitize_payload(details)}"

        self.logger.log(level, message)

    def log_backfill_state(self, job_id: str, state: str, details: Dict[str, Any] = None):
        """Log a backfill job state transition."""
        log_details = {"job_id": job_id}
        if details:
            log_details.update(details)

        status = "failed" if state == "failed" else "transition"
        level = logging.ERROR if state == "failed" else logging.INFO
        self.log_operation(f"backfill.{state}", status, log_details, level)

    def log_backfill_progress(self, job_id: str, batch_number: int, batch_count: int, processed: int, errored: int):
        """Log progress after a batch of embedding requests resolves."""
        self.log_operation("backfill.batch", "complete", {
            "job_id": job_id,
            "batch": f"{batch_number}/{batch_count}",
            "processed": processed,
            "errored": errored,
        })

    def log_embedding_failure(self, doc_id: Any, reason: str):
        """Log a per-document embedding failure. Recovered locally by the caller."""
        self.log_operation("embedding.document", "failed", {
            "doc_id": str(doc_id),
            "reason": reason,
        }, logging.WARNING)

    def log_index_operation(self, operation: str, index_name: str, status: str = "success", details: Dict[str, Any] = None):
        """Log a vector index lifecycle operation."""
        log_details = {"index_name": index_name}
        if details:
            log_details.update(details)

        self.log_operation(f"index.{operation}", status, log_details)

    def log_search(self, query: str, limit: int, num_candidates: int, result_count: int):
        """Log a completed vector search."""
        self.log_operation("search", "success", {
            "query": query,
            "limit": limit,
            "num_candidates": num_candidates,
            "result_count": result_count,
        })

    def log_chat_relay(self, model: str, message_count: int, status: str = "success", details: Dict[str, Any] = None):
        """Log a relayed chat completion."""
        log_details = {"model": model, "message_count": message_count}
        if details:
            log_details.update(details)

        level = logging.INFO if status == "success" else logging.ERROR
        self.log_operation("chat.reply", status, log_details, level)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)

# Global logger instance
logger = StructuredLogger()

# Payload sanitization utility
def sanitize_payload(payload: Any, max_length: int = 100, max_items: int = 8) -> Any:
    """Shorten payloads for logging: long strings are truncated, long lists (vectors) summarized."""
    if isinstance(payload, dict):
        return {k: sanitize_payload(v, max_length, max_items) for k, v in payload.items()}
    elif isinstance(payload, str):
        return payload[:max_length] + "..." if len(payload) > max_length else payload
    elif isinstance(payload, (list, tuple)):
        if len(payload) > max_items:
            return f"[{len(payload)} items]"
        return [sanitize_payload(item, max_length, max_items) for item in payload]
    else:
        return payload


def summarize_errors(errors: List[Any], limit: int = 5) -> List[str]:
    """Render a bounded list of error messages for log details."""
    return [str(error)[:100] for error in errors[:limit]]
