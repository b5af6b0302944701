"""Cached access to chain data, querying configured API nodes in turn."""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Sequence

IBC_DENOM_PREFIX = "ibc"

_MISSING = object()


def _is_present(value: Any) -> bool:
    return value is not None


def _is_list(value: Any) -> bool:
    return isinstance(value, list)


def _is_str(value: Any) -> bool:
    return isinstance(value, str)


class DataFetcher:
    """Fetches and caches chain data.

    ``config`` exposes ``chains`` (objects with ``name`` and ``chain_id``) and
    ``subscriptions`` (objects with ``name``, ``reporter`` and
    ``chain_subscriptions``, each of which names a ``chain``).
    ``api_clients`` maps a chain name to the API node clients to try, in order;
    a client signals a failed query by raising.
    """

    def __init__(
        self,
        config: Any,
        alias_manager: Any = None,
        api_clients: Mapping[str, Sequence[Any]] | None = None,
        cosmos_directory_client: Any = None,
        price_fetcher_factory: Callable[..., Any] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.alias_manager = alias_manager
        self.api_clients: dict[str, list[Any]] = {
            name: list(clients) for name, clients in (api_clients or {}).items()
        }
        self.cosmos_directory_client = cosmos_directory_client
        self.price_fetcher_factory = price_fetcher_factory
        self.price_fetchers: dict[str, Any] = {}
        self.cache: dict[str, Any] = {}
        self.logger = logging.LoggerAdapter(
            logger or logging.getLogger("txbot"), {"component": "data_fetcher"}
        )

    # Lookups in the configuration.

    def find_chain_by_id(self, chain_id: str) -> Any | None:
        """Return the configured chain with ``chain_id``, or None."""
        return next((c for c in self.config.chains if c.chain_id == chain_id), None)

    def _find_chain_by_name(self, name: str) -> Any | None:
        return next((c for c in self.config.chains if c.name == name), None)

    def find_subscription_by_reporter(self, reporter_name: str) -> Any | None:
        """Return the first subscription using ``reporter_name``, or None."""
        return next(
            (s for s in self.config.subscriptions if s.reporter == reporter_name),
            None,
        )

    def find_chains_by_reporter(self, reporter_name: str) -> list[Any]:
        """Return the configured chains subscribed to by ``reporter_name``."""
        chains = (
            self._find_chain_by_name(chain_subscription.chain)
            for subscription in self.config.subscriptions
            if subscription.reporter == reporter_name
            for chain_subscription in subscription.chain_subscriptions
        )
        return [chain for chain in chains if chain is not None]

    # Cache and node helpers.

    def _from_cache(self, key: str, accept: Callable[[Any], bool], what: str) -> Any:
        """Return the cached value, None if it is unusable, or _MISSING if absent."""
        if key not in self.cache:
            return _MISSING
        value = self.cache[key]
        if accept(value):
            return value
        self.logger.error("Could not convert cached %s", what)
        return None

    def _first_successful(
        self, chain_name: str, query: Callable[[Any], Any], what: str
    ) -> Any:
        nodes: Iterable[Any] = self.api_clients.get(chain_name, ())
        for node in nodes:
            try:
                return query(node)
            except Exception as error:  # any node failure means: try the next one
                self.logger.error("Error fetching %s: %s", what, error)
        return _MISSING

    def _cached_query(
        self,
        key: str,
        accept: Callable[[Any], bool],
        chain_name: str,
        query: Callable[[Any], Any],
        what: str,
    ) -> Any:
        cached = self._from_cache(key, accept, what)
        if cached is not _MISSING:
            return cached
        result = self._first_successful(chain_name, query, what)
        if result is _MISSING:
            self.logger.error("Could not connect to any nodes to get %s", what)
            return None
        self.cache[key] = result
        return result

    # Fetchers.

    def get_commission_at_block(self, chain: Any, validator: str, block: int) -> list | None:
        """Return the validator's commission as of the block before ``block``."""
        key = f"{chain.name}_commission_{validator}_{block}"
        return self._cached_query(
            key,
            _is_list,
            chain.name,
            lambda node: node.get_validator_commission_at_block(validator, block - 1),
            "commission",
        )

    def get_cosmos_directory_chains(self) -> Any | None:
        """Return the chain list from the cosmos.directory client, or None."""
        key = "cosmos_directory_chains"
        cached = self._from_cache(key, _is_present, "cosmos.directory chains")
        if cached is not _MISSING:
            return cached
        if self.cosmos_directory_client is None:
            self.logger.error("No cosmos.directory client configured")
            return None
        try:
            chains = self.cosmos_directory_client.get_all_chains()
        except Exception as error:
            self.logger.error("Error fetching chains list: %s", error)
            return None
        self.cache[key] = chains
        return chains

    def get_denom_trace(self, chain: Any, denom: str) -> Any | None:
        """Return the IBC denom trace for an ``ibc/<hash>`` denom, or None."""
        parts = denom.split("/")
        if len(parts) != 2 or parts[0] != IBC_DENOM_PREFIX:
            self.logger.error("Invalid IBC prefix provided")
            return None
        denom_hash = parts[1]
        key = f"{chain.name}_denom_trace_{denom_hash}"
        return self._cached_query(
            key,
            _is_present,
            chain.name,
            lambda node: node.get_ibc_denom_trace(denom_hash),
            "IBC denom trace",
        )

    def get_proposal(self, chain: Any, proposal_id: str) -> Any | None:
        """Return the governance proposal with ``proposal_id``, or None."""
        key = f"{chain.name}_proposal_{proposal_id}"
        return self._cached_query(
            key,
            _is_present,
            chain.name,
            lambda node: node.get_proposal(proposal_id),
            "proposal",
        )

    def get_ibc_remote_chain_id(self, chain_id: str, channel: str, port: str) -> str | None:
        """Return the chain-id at the other end of ``channel``/``port``, or None."""
        chain = self.find_chain_by_id(chain_id)
        if chain is None:
            return None

        key = f"{chain.name}_channel_{channel}_port_{port}"
        cached = self._from_cache(key, _is_str, "IBC channel")
        if cached is not _MISSING:
            return cached

        ibc_channel = self._first_successful(
            chain.name, lambda node: node.get_ibc_channel(channel, port), "IBC channel"
        )
        if ibc_channel is _MISSING:
            self.logger.error("Could not connect to any nodes to get IBC channel")
            return None

        hops = list(ibc_channel.connection_hops)
        if len(hops) != 1:
            self.logger.error(
                "Multi-hop IBC connections are not yet supported (%d hops).", len(hops)
            )
            return None

        client_state = self._first_successful(
            chain.name,
            lambda node: node.get_ibc_connection_client_state(hops[0]),
            "IBC client state",
        )
        if client_state is _MISSING:
            self.logger.error("Could not connect to any nodes to get IBC client state")
            return None

        remote_chain_id = client_state.client_state.chain_id
        self.cache[key] = remote_chain_id
        return remote_chain_id

    def get_rewards_at_block(
        self, chain: Any, delegator: str, validator: str, block: int
    ) -> list | None:
        """Return the delegator's rewards from a validator as of the block before ``block``."""
        key = f"{chain.name}_rewards_{delegator}_{validator}_{block}"
        return self._cached_query(
            key,
            _is_list,
            chain.name,
            lambda node: node.get_delegators_rewards_at_block(delegator, validator, block - 1),
            "rewards",
        )

    def get_staking_params(self, chain: Any) -> Any | None:
        """Return the chain's staking parameters, or None."""
        key = f"{chain.name}_staking_params"
        return self._cached_query(
            key,
            _is_present,
            chain.name,
            lambda node: node.get_staking_params(),
            "staking params",
        )

    def get_validator(self, chain: Any, address: str) -> Any | None:
        """Return the validator with operator ``address``, or None."""
        key = f"{chain.name}_validator_{address}"
        return self._cached_query(
            key,
            _is_present,
            chain.name,
            lambda node: node.get_validator(address),
            "validator",
        )

    def populate_validator(self, chain: Any, validator_link: Any) -> None:
        """Set the link's title to the validator's moniker when it can be fetched."""
        validator = self.get_validator(chain, validator_link.value)
        if validator is not None:
            validator_link.title = validator.description.moniker