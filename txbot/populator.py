"""Fills in denoms, USD prices, wallet links and aliases using fetched chain data."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Iterable, Mapping

from txbot.fetcher import DataFetcher

COINGECKO_PRICE_FETCHER_NAME = "coingecko"
IBC_DENOM_PREFIX = "ibc/"


def _is_ibc_denom(denom: Any) -> bool:
    return str(denom).startswith(IBC_DENOM_PREFIX)


def _price_items(prices: Any) -> Iterable[tuple[Any, float]]:
    if isinstance(prices, Mapping):
        return prices.items()
    return prices


class Populator(DataFetcher):
    """A data fetcher that also enriches amounts and links for reports.

    Amounts expose ``base_denom``, ``denom``, ``convert_denom(display_denom,
    exponent)`` and ``add_usd_price(price)``. Denom infos expose ``denom``,
    ``display_denom``, ``denom_exponent`` and ``coingecko_currency``. Links
    expose ``value``, ``title`` and ``href``. A price fetcher exposes
    ``get_prices(denom_infos)`` returning denom info to price pairs.
    """

    # Denom resolution across chains.

    def populate_multichain_denom_info(self, chain_id: str, base_denom: Any) -> Any | None:
        """Return the denom info for ``base_denom`` on ``chain_id``, or None."""
        denom_name = str(base_denom)

        chain = self.find_chain_by_id(chain_id)
        if chain is not None:
            local = next(
                (info for info in (chain.denoms or ()) if info.denom == denom_name), None
            )
            if local is not None:
                return local

        if _is_ibc_denom(denom_name):
            resolved = self.get_remote_chain_id_and_denom_by_ibc_denom(chain_id, denom_name)
            if resolved is None:
                return None
            remote_chain_id, remote_denom = resolved
            return self.populate_multichain_denom_info(remote_chain_id, remote_denom)

        directory_chains = self.get_cosmos_directory_chains()
        if directory_chains is None:
            return None

        remote_chain = next(
            (c for c in directory_chains if c.chain_id == chain_id), None
        )
        if remote_chain is None:
            return None

        try:
            return remote_chain.get_denom_info(denom_name)
        except Exception as error:
            self.logger.error(
                "Error parsing the remote denom %s on chain %s from cosmos.directory: %s",
                denom_name,
                chain_id,
                error,
            )
            return None

    def get_remote_chain_id_and_denom_by_ibc_denom(
        self, chain_id: str, denom: Any
    ) -> tuple[str, str] | None:
        """Return the chain-id where an IBC denom was minted and its base denom, or None."""
        chain = self.find_chain_by_id(chain_id)
        if chain is None:
            return None

        trace = self.get_denom_trace(chain, str(denom))
        if trace is None:
            return None

        path = trace.path.split("/") if trace.path else []
        if len(path) % 2:
            self.logger.error("Malformed IBC denom trace path: %s", trace.path)
            return None

        remote_chain_id = chain_id
        for port, channel in zip(path[::2], path[1::2]):
            fetched = self.get_ibc_remote_chain_id(remote_chain_id, channel, port)
            if fetched is None:
                return None
            remote_chain_id = fetched

        return remote_chain_id, trace.base_denom

    # Prices.

    def _price_fetcher_key(self, denom_info: Any) -> str | None:
        if not denom_info.coingecko_currency:
            return None
        if COINGECKO_PRICE_FETCHER_NAME not in self.price_fetchers:
            if self.price_fetcher_factory is None:
                return None
            self.price_fetchers[COINGECKO_PRICE_FETCHER_NAME] = self.price_fetcher_factory()
        return COINGECKO_PRICE_FETCHER_NAME

    def get_price_fetcher(self, denom_info: Any) -> Any | None:
        """Return the price fetcher suited to ``denom_info``, creating it if needed."""
        key = self._price_fetcher_key(denom_info)
        return None if key is None else self.price_fetchers[key]

    def get_denom_price_key(self, chain_id: str, denom_info: Any) -> str:
        """Return the cache key under which the denom's price is stored."""
        return f"{chain_id}_price_{denom_info.denom}"

    def maybe_get_cached_price(self, chain_id: str, denom_info: Any) -> float | None:
        """Return the cached price, or None when there is no usable one."""
        key = self.get_denom_price_key(chain_id, denom_info)
        if key not in self.cache:
            return None
        price = self.cache[key]
        if isinstance(price, (int, float)) and not isinstance(price, bool):
            return float(price)
        self.logger.error("Could not convert cached price to float")
        return None

    def set_cached_price(self, chain_id: str, denom_info: Any, price: float) -> None:
        """Store the denom's price in the cache."""
        self.cache[self.get_denom_price_key(chain_id, denom_info)] = price

    def populate_amount(self, chain_id: str, amount: Any) -> None:
        """Convert a single amount to its display denom and attach its USD price."""
        self.populate_amounts(chain_id, [amount])

    def populate_amounts(self, chain_id: str, amounts: Iterable[Any]) -> None:
        """Convert amounts to display denoms and attach USD prices where known."""
        amounts = list(amounts)
        to_query: dict[str, list[Any]] = defaultdict(list)

        for amount in amounts:
            denom_info = self.populate_multichain_denom_info(chain_id, amount.base_denom)
            if denom_info is None:
                self.logger.warning(
                    "Could not fetch denom info for %s on chain %s", amount.denom, chain_id
                )
                continue

            self.logger.debug(
                "Fetched denom %s for chain %s: display %s, exponent %d",
                amount.denom,
                chain_id,
                denom_info.display_denom,
                denom_info.denom_exponent,
            )
            amount.convert_denom(denom_info.display_denom, denom_info.denom_exponent)

            price = self.maybe_get_cached_price(chain_id, denom_info)
            if price is not None:
                if price != 0:
                    amount.add_usd_price(price)
                continue

            key = self._price_fetcher_key(denom_info)
            if key is not None:
                to_query[key].append(denom_info)

        if not to_query:
            return

        fetched_prices: dict[str, float] = {}
        for key, fetcher in self.price_fetchers.items():
            denom_infos = to_query.get(key)
            if denom_infos is None:
                continue
            try:
                prices = fetcher.get_prices(denom_infos)
            except Exception as error:
                self.logger.error("Error fetching prices with %s: %s", key, error)
                continue
            for denom_info, price in _price_items(prices):
                self.set_cached_price(chain_id, denom_info, price)
                fetched_prices[denom_info.denom] = price

        for amount in amounts:
            price = fetched_prices.get(str(amount.base_denom))
            if price:
                amount.add_usd_price(price)

    # Wallets and aliases.

    def _alias(self, subscription_name: str, chain_name: str, address: str) -> str:
        if self.alias_manager is None:
            return ""
        return self.alias_manager.get(subscription_name, chain_name, address) or ""

    def populate_wallet(self, chain: Any, wallet_link: Any, subscription_name: str) -> None:
        """Set the wallet's explorer link and alias from the chain's configuration."""
        if chain.explorer is None:
            return
        wallet_link.href = chain.explorer.get_wallet_link(wallet_link.value)
        alias = self._alias(subscription_name, chain.name, wallet_link.value)
        if alias:
            wallet_link.title = alias

    def populate_multichain_wallet(
        self,
        chain: Any,
        channel: str,
        port: str,
        wallet_link: Any,
        subscription_name: str,
    ) -> None:
        """Like populate_wallet, resolving the wallet's chain over IBC when needed."""
        if not channel or not port:
            self.populate_wallet(chain, wallet_link, subscription_name)
            return

        remote_chain_id = self.get_ibc_remote_chain_id(chain.chain_id, channel, port)
        if remote_chain_id is None:
            return

        local_chain = self.find_chain_by_id(remote_chain_id)
        if local_chain is None or local_chain.explorer is None:
            return

        wallet_link.href = local_chain.explorer.get_wallet_link(wallet_link.value)
        alias = self._alias(subscription_name, local_chain.name, wallet_link.value)
        if alias:
            wallet_link.title = alias

    def populate_wallet_alias(self, chain: Any, link: Any, subscription_name: str) -> None:
        """Set the link's title to its alias, if one is known."""
        alias = self._alias(subscription_name, chain.name, link.value)
        if alias:
            link.title = alias