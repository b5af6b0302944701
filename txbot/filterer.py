"""Decides which reportables and messages reach which reporters."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Sequence

from txbot.logger import TRACE


class ReportableKind(enum.Enum):
    """What a reportable is, as far as filtering is concerned."""

    TX = "tx"
    TX_ERROR = "tx_error"
    NODE_CONNECT_ERROR = "node_connect_error"
    UNSUPPORTED = "unsupported"


class MessageKind(enum.Enum):
    """Whether a message was understood by the parser."""

    REGULAR = "regular"
    UNSUPPORTED = "unsupported"
    UNPARSED = "unparsed"


class FilterReason(str, enum.Enum):
    """Why an event was dropped; used as a metrics label."""

    TX_ERROR_NOT_LOGGED = "tx_error_not_logged"
    NODE_ERROR_NOT_LOGGED = "node_error_not_logged"
    UNSUPPORTED_MSG_TYPE_NOT_LOGGED = "unsupported_msg_type"
    FAILED_TX_NOT_LOGGED = "failed_tx_not_logged"
    EMPTY_TX_NOT_LOGGED = "empty_tx_not_logged"


@dataclass
class Report:
    """A reportable bound to the subscription it is delivered for."""

    chain: Any
    node: Any
    reportable: Any
    subscription: Any = None
    chain_subscription: Any = None


def _filters_match(filters: Sequence[Any] | None, values: Any) -> bool:
    """True when there are no filters or any of them matches ``values``."""
    if not filters:
        return True
    return any(query.matches(values) for query in filters)


class Filterer:
    """Filters reportables per chain subscription.

    ``config`` exposes ``chains`` (objects with ``name``) and ``subscriptions``
    (objects with ``name``, ``reporter`` and ``chain_subscriptions``).
    Reportables carry ``kind`` (a ReportableKind), ``type_name`` and ``hash``;
    transactions also carry ``code``, ``height`` (a link with ``value``) and
    ``messages``. Messages carry ``kind`` (a MessageKind), ``type_name``,
    ``get_values()`` and a ``parsed_messages`` list; unsupported and unparsed
    messages also carry ``msg_type``, unparsed ones an ``error``.
    """

    def __init__(self, config: Any, metrics_manager: Any = None, logger: logging.Logger | None = None) -> None:
        self.config = config
        self.metrics_manager = metrics_manager
        self.logger = logging.LoggerAdapter(
            logger or logging.getLogger("txbot"), {"component": "filterer"}
        )
        self._last_block_heights: dict[str, int] = {}

    def _find_chain_by_name(self, name: str) -> Any | None:
        return next((c for c in self.config.chains if c.name == name), None)

    def _log_filtered(self, chain_subscription: Any, reportable: Any, reason: FilterReason) -> None:
        if self.metrics_manager is not None:
            self.metrics_manager.log_filtered_event(
                chain_subscription.chain, reportable.type_name, reason
            )

    def get_reportable_for_reporters(self, report: Any) -> dict[str, Report]:
        """Return, per reporter name, the report filtered for its subscription."""
        reportables: dict[str, Report] = {}

        for subscription in self.config.subscriptions:
            for chain_subscription in subscription.chain_subscriptions:
                if chain_subscription.chain != report.chain.name:
                    continue

                chain = self._find_chain_by_name(chain_subscription.chain)
                if chain is None:
                    self.logger.error(
                        "Chain %s is not configured, skipping", chain_subscription.chain
                    )
                    continue

                filtered = self.filter_for_chain_and_subscription(
                    report.reportable, chain, chain_subscription
                )
                if filtered is None:
                    continue

                self.logger.info(
                    "Got report for subscription %s: type=%s chain=%s hash=%s",
                    subscription.name,
                    report.reportable.type_name,
                    chain.name,
                    report.reportable.hash,
                )
                reportables[subscription.reporter] = Report(
                    chain=report.chain,
                    node=report.node,
                    reportable=filtered,
                    subscription=subscription,
                    chain_subscription=chain_subscription,
                )
                if self.metrics_manager is not None:
                    self.metrics_manager.log_matched_event(
                        chain_subscription.chain, filtered.type_name, subscription.name
                    )

        return reportables

    def filter_for_chain_and_subscription(
        self, reportable: Any, chain: Any, chain_subscription: Any
    ) -> Any | None:
        """Return the reportable (with messages filtered) or None if it is dropped.

        Raises ValueError when a transaction's height is not an integer.
        """
        kind = reportable.kind

        if kind is ReportableKind.TX_ERROR:
            if not chain_subscription.log_node_errors:
                self._log_filtered(chain_subscription, reportable, FilterReason.TX_ERROR_NOT_LOGGED)
                self.logger.debug(
                    "Got transaction error, skipping as node errors logging is disabled"
                )
                return None
            return reportable

        if kind is ReportableKind.NODE_CONNECT_ERROR:
            if not chain_subscription.log_node_errors:
                self._log_filtered(chain_subscription, reportable, FilterReason.NODE_ERROR_NOT_LOGGED)
                self.logger.debug("Got node error, skipping as node errors logging is disabled")
                return None
            return reportable

        if kind is not ReportableKind.TX:
            self.logger.error("Unsupported reportable type %s, ignoring.", reportable.type_name)
            self._log_filtered(
                chain_subscription, reportable, FilterReason.UNSUPPORTED_MSG_TYPE_NOT_LOGGED
            )
            return None

        tx = reportable
        if not chain_subscription.log_failed_transactions and tx.code > 0:
            self.logger.debug("Transaction %s is failed, skipping", tx.hash)
            self._log_filtered(chain_subscription, reportable, FilterReason.FAILED_TX_NOT_LOGGED)
            return None

        try:
            tx_height = int(tx.height.value)
        except (TypeError, ValueError) as error:
            raise ValueError(f"Error converting height to int: {tx.height.value!r}") from error

        last_height = self._last_block_heights.get(chain.name)
        if last_height is not None and last_height > tx_height:
            self.logger.debug(
                "Transaction %s height %d on %s is less than the last one received (%d), skipping",
                tx.hash,
                tx_height,
                chain_subscription.chain,
                last_height,
            )
            return None

        if last_height is None or last_height < tx_height:
            self._last_block_heights[chain.name] = tx_height

        messages = [
            filtered
            for filtered in (
                self.filter_message(message, chain_subscription, False)
                for message in tx.messages
            )
            if filtered is not None
        ]

        if not messages:
            self.logger.debug(
                "All messages in transaction %s were filtered out, skipping.", tx.hash
            )
            self._log_filtered(chain_subscription, reportable, FilterReason.EMPTY_TX_NOT_LOGGED)
            return None

        tx.messages = messages
        return tx

    def filter_message(self, message: Any, chain_subscription: Any, internal: bool) -> Any | None:
        """Return the message (with inner messages filtered) or None if it is dropped."""
        kind = message.kind

        if kind is MessageKind.UNSUPPORTED:
            if chain_subscription.log_unknown_messages:
                self.logger.error("Unsupported message type %s", message.msg_type)
                return message
            self.logger.debug("Unsupported message type %s", message.msg_type)
            return None

        if kind is MessageKind.UNPARSED:
            if chain_subscription.log_unparsed_messages:
                self.logger.error(
                    "Error parsing message of type %s: %s", message.msg_type, message.error
                )
                return message
            self.logger.debug(
                "Not logging unparsed message of type %s (%s), skipping.",
                message.msg_type,
                message.error,
            )
            return None

        # Top-level messages are always filtered; inner ones only when asked to.
        if not internal or chain_subscription.filter_internal_messages:
            values = message.get_values()
            try:
                matches = _filters_match(chain_subscription.filters, values)
            except Exception as error:
                self.logger.error(
                    "Error checking if message %s matches filters: %s", message.type_name, error
                )
            else:
                self.logger.log(
                    TRACE,
                    "Matching message %s values %r against filters %r: %s",
                    message.type_name,
                    values,
                    chain_subscription.filters,
                    matches,
                )
                if not matches:
                    self.logger.debug("Message %s is ignored by filters.", message.type_name)
                    return None

        inner_messages = list(message.parsed_messages or ())
        if not inner_messages:
            return message

        kept = [
            filtered
            for filtered in (
                self.filter_message(inner, chain_subscription, True) for inner in inner_messages
            )
            if filtered is not None
        ]

        if not kept:
            self.logger.debug(
                "Message %s has 0 messages inside after filtering, skipping.", message.type_name
            )
            return None

        message.parsed_messages = kept
        return message