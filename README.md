# txbot

The core of a bot that watches blockchain transactions and decides what to
report to whom. It is a library: you give it a configuration object and the
clients that talk to chain API nodes, and it fetches, caches, enriches and
filters data for you.

## Modules

### `txbot.fs`

`OsFS` reads and creates files on the local disk:

- `read_file(name)` returns the file's bytes.
- `create(path)` creates (or truncates) a file and returns it opened for
  binary writing.

`FS` is the protocol these two methods make up, for use in type hints.

### `txbot.http_client`

`HttpClient(host, chain_name, timeout=60.0)` performs GET requests against one
host and decodes the JSON body.

- `get(relative_url)` and `get_with_headers(relative_url, headers)` return a
  `(data, QueryInfo)` pair. The URL is `host + relative_url`; every request
  sends `User-Agent: cosmos-transactions-bot` unless `headers` overrides it.
- `QueryInfo` holds `success`, `node` (the host) and `time` (seconds taken).
- Any failure — a connection error, an HTTP status of 400 or above
  (`"bad HTTP code: <status>"`), or a body that is not JSON — raises
  `QueryError`, whose `query_info` attribute still carries the node and timing.

```python
from txbot.http_client import HttpClient, QueryError

client = HttpClient("https://api.example.com", "cosmoshub")
try:
    data, info = client.get("/cosmos/staking/v1beta1/params")
    print(data, info.time)
except QueryError as error:
    print("query failed:", error, error.query_info.node)
```

### `txbot.logger`

- `get_default_logger()` — console output to stdout, everything down to the
  `TRACE` level (5).
- `get_nop_logger()` — a logger that discards everything.
- `get_logger(log_level, json_output=False)` — stdout output at the given
  level, one JSON object per line when `json_output` is true. Accepted levels
  (case-insensitive): `trace`, `debug`, `info`, `warn`, `error`, `fatal`,
  `panic`, `disabled`, and the empty string. Anything else raises `ValueError`.

```python
from txbot.logger import get_logger

log = get_logger("info", json_output=True)
log.info("bot started")
```

### `txbot.fetcher`

`DataFetcher(config, alias_manager=None, api_clients=None,
cosmos_directory_client=None, price_fetcher_factory=None, logger=None)`.

`config` needs `chains` (with `name` and `chain_id`) and `subscriptions`
(with `name`, `reporter` and `chain_subscriptions`, each naming a `chain`).
`api_clients` maps a chain name to the node clients to try, in order; a client
signals a failed query by raising, and the next one is tried.

Configuration lookups: `find_chain_by_id`, `find_subscription_by_reporter`,
`find_chains_by_reporter`.

Fetchers, each returning `None` when nothing usable can be had:
`get_validator`, `get_proposal`, `get_staking_params`,
`get_commission_at_block` and `get_rewards_at_block` (both query the block
before the one given), `get_denom_trace` (only for `ibc/<hash>` denoms),
`get_ibc_remote_chain_id` (single-hop channels only) and
`get_cosmos_directory_chains`. Results are kept in the `cache` dict, keyed for
example `"<chain>_validator_<address>"`; a cached value of the wrong shape
gives `None` rather than a new query.

`populate_validator(chain, link)` sets `link.title` to the validator's moniker.

### `txbot.populator`

`Populator` is a `DataFetcher` that also enriches report data:

- `populate_multichain_denom_info(chain_id, base_denom)` finds denom info in
  the local chain config, then follows IBC traces to the minting chain, then
  falls back to the cosmos.directory chain list.
- `get_remote_chain_id_and_denom_by_ibc_denom(chain_id, denom)` returns the
  minting chain-id and base denom of an IBC denom.
- `populate_amount` / `populate_amounts` convert amounts to their display
  denom and attach USD prices, from the cache (`"<chain-id>_price_<denom>"`)
  or from the price fetcher made by `price_fetcher_factory` for denoms with a
  `coingecko_currency`. Helpers: `get_price_fetcher`, `get_denom_price_key`,
  `maybe_get_cached_price`, `set_cached_price`.
- `populate_wallet`, `populate_multichain_wallet` (resolving the wallet's
  chain over IBC when a channel and port are given) and
  `populate_wallet_alias` fill in explorer links and alias titles.

### `txbot.filterer`

`Filterer(config, metrics_manager=None, logger=None)` decides what reaches
each reporter.

- `get_reportable_for_reporters(report)` returns a dict of reporter name to
  `Report` for every subscription whose chain subscription keeps the report.
- `filter_for_chain_and_subscription(reportable, chain, chain_subscription)`
  drops node and transaction errors unless `log_node_errors` is set, failed
  transactions unless `log_failed_transactions` is set, unsupported
  reportables, transactions older than the last height seen for the chain, and
  transactions whose messages were all filtered out. A height that is not an
  integer raises `ValueError`.
- `filter_message(message, chain_subscription, internal)` keeps a message when
  any of the subscription's filters matches its values (or there are no
  filters); inner messages are matched only with `filter_internal_messages`.

Reportables and messages say what they are through `kind`, using
`ReportableKind` and `MessageKind`. Dropped events are reported to the
metrics manager with a `FilterReason`.

## What this package does not do

It has no command to start a bot, no configuration file loading, and no
reporters that deliver messages anywhere. It does not include the chain API
node clients, the cosmos.directory client, a price fetcher, alias storage,
a metrics manager or filter query parsing: these are passed in by the caller,
and the package uses only the methods described above.

## Installation

```
pip install .
```

With test dependencies:

```
pip install .[test]
pytest
```