"""
Logging of contract output.

Contract logs and receipt failures are reported through the standard
``logging`` module under the ``near_client.contract`` logger. Setting the
``NEAR_NO_LOGS`` environment variable silences them.
"""

import logging
import os
from typing import Iterable, Optional

from ..runtime.errors import format_failure

logger = logging.getLogger("near_client.contract")


def logs_suppressed() -> bool:
    return bool(os.environ.get("NEAR_NO_LOGS"))


def log_outcome_logs(contract_id: str, logs: Iterable[str], prefix: str = "") -> None:
    """Log each contract log line."""
    if logs_suppressed():
        return
    for line in logs:
        logger.info(f"{prefix}Log [{contract_id}]: {line}")


def log_outcome_logs_and_failures(contract_id: str, outcome, *, log: Optional[logging.Logger] = None) -> None:
    """
    Log the logs and failures of every node of a final execution outcome.

    Nodes are reported in traversal order; nodes with neither logs nor a
    failure are skipped.
    """
    if logs_suppressed():
        return
    log = log or logger
    for node in outcome.traversal:
        result = node.outcome.outcome
        if not result.logs and not result.status.is_failure:
            continue
        receipt_ids = result.receipt_ids
        log.info(f"Receipt{'s' if len(receipt_ids) > 1 else ''}: {', '.join(receipt_ids)}")
        for line in result.logs:
            log.info(f"\tLog [{contract_id}]: {line}")
        if result.status.is_failure:
            log.warning(f"\tFailure [{contract_id}]: {format_failure(result.status.failure)}")
