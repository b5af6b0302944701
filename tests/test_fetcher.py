from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from types import SimpleNamespace
from typing import Any

from txbot.fetcher import DataFetcher
from txbot.logger import get_nop_logger


@dataclass
class Chain:
    name: str
    chain_id: str = ""


@dataclass
class ChainSubscription:
    chain: str


@dataclass
class Subscription:
    name: str
    reporter: str
    chain_subscriptions: list = field(default_factory=list)


@dataclass
class Config:
    chains: list = field(default_factory=list)
    subscriptions: list = field(default_factory=list)


@dataclass
class Link:
    value: str
    title: str = ""
    href: str = ""


class FakeNode:
    """API node answering only the queries it was given answers for."""

    def __init__(self, **answers: Any) -> None:
        self.answers = answers
        self.calls: list[tuple] = []

    def _answer(self, name: str, *args: Any) -> Any:
        self.calls.append((name, *args))
        if name not in self.answers:
            raise RuntimeError("no responder")
        return self.answers[name]

    def get_validator_commission_at_block(self, validator, block):
        return self._answer("commission", validator, block)

    def get_ibc_denom_trace(self, denom_hash):
        return self._answer("denom_trace", denom_hash)

    def get_proposal(self, proposal_id):
        return self._answer("proposal", proposal_id)

    def get_ibc_channel(self, channel, port):
        return self._answer("channel", channel, port)

    def get_ibc_connection_client_state(self, connection):
        return self._answer("client_state", connection)

    def get_delegators_rewards_at_block(self, delegator, validator, block):
        return self._answer("rewards", delegator, validator, block)

    def get_staking_params(self):
        return self._answer("staking_params")

    def get_validator(self, address):
        return self._answer("validator", address)


class FakeDirectory:
    def __init__(self, chains=None) -> None:
        self.chains = chains

    def get_all_chains(self):
        if self.chains is None:
            raise RuntimeError("no responder")
        return self.chains


def make_fetcher(config, nodes=None, directory=None):
    return DataFetcher(
        config,
        api_clients=nodes or {},
        cosmos_directory_client=directory,
        logger=get_nop_logger(),
    )


def single_chain_config(**kwargs):
    return Config(chains=[Chain(name="chain", **kwargs)])


# Configuration lookups


def test_find_chain_by_id():
    fetcher = make_fetcher(Config(chains=[Chain(name="chain", chain_id="chain-id")]))
    chain = fetcher.find_chain_by_id("chain-id")
    assert chain is not None and chain.name == "chain"
    assert fetcher.find_chain_by_id("random") is None


def test_find_subscription_by_reporter():
    config = Config(subscriptions=[Subscription(name="subscription", reporter="reporter")])
    fetcher = make_fetcher(config)
    subscription = fetcher.find_subscription_by_reporter("reporter")
    assert subscription is not None and subscription.name == "subscription"
    assert fetcher.find_subscription_by_reporter("random") is None


def test_find_chains_by_reporter():
    config = Config(
        subscriptions=[
            Subscription(
                name="subscription",
                reporter="reporter",
                chain_subscriptions=[ChainSubscription("chain"), ChainSubscription("chain2")],
            )
        ],
        chains=[Chain(name="chain", chain_id="chain-id")],
    )
    fetcher = make_fetcher(config)
    chains = fetcher.find_chains_by_reporter("reporter")
    assert [chain.name for chain in chains] == ["chain"]
    assert fetcher.find_chains_by_reporter("random") == []


# Commission


def test_commission_cached_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_commission_validator_100"] = [
        SimpleNamespace(amount="100", denom="ustake")
    ]
    data = fetcher.get_commission_at_block(config.chains[0], "validator", 100)
    assert data is not None and len(data) == 1
    assert data[0].amount == "100"
    assert data[0].denom == "ustake"


def test_commission_cached_not_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_commission_validator_100"] = None
    assert fetcher.get_commission_at_block(config.chains[0], "validator", 100) is None


def test_commission_all_queries_failed():
    config = single_chain_config()
    fetcher = make_fetcher(config, {"chain": [FakeNode()]})
    assert fetcher.get_commission_at_block(config.chains[0], "validator", 100) is None


def test_commission_successfully_fetched_at_previous_block():
    config = single_chain_config()
    node = FakeNode(commission=[SimpleNamespace(amount="12345", denom="uatom")])
    fetcher = make_fetcher(config, {"chain": [node]})
    data = fetcher.get_commission_at_block(config.chains[0], "validator", 100)
    assert data is not None and len(data) == 1
    assert data[0].amount == "12345"
    assert data[0].denom == "uatom"
    assert node.calls == [("commission", "validator", 99)]
    assert fetcher.cache["chain_commission_validator_100"] is data


def test_commission_falls_back_to_next_node_and_caches():
    config = single_chain_config()
    broken = FakeNode()
    working = FakeNode(commission=[SimpleNamespace(amount="1", denom="uatom")])
    fetcher = make_fetcher(config, {"chain": [broken, working]})
    first = fetcher.get_commission_at_block(config.chains[0], "validator", 10)
    second = fetcher.get_commission_at_block(config.chains[0], "validator", 10)
    assert first is second
    assert len(broken.calls) == 1
    assert len(working.calls) == 1


# cosmos.directory chains


def test_cosmos_directory_chains_cached_ok():
    fetcher = make_fetcher(single_chain_config())
    fetcher.cache["cosmos_directory_chains"] = [SimpleNamespace(chain_id="chain")]
    data = fetcher.get_cosmos_directory_chains()
    assert data is not None and len(data) == 1
    assert data[0].chain_id == "chain"


def test_cosmos_directory_chains_cached_not_ok():
    fetcher = make_fetcher(single_chain_config(), directory=FakeDirectory([]))
    fetcher.cache["cosmos_directory_chains"] = None
    assert fetcher.get_cosmos_directory_chains() is None


def test_cosmos_directory_chains_query_failed():
    fetcher = make_fetcher(single_chain_config(), directory=FakeDirectory())
    assert fetcher.get_cosmos_directory_chains() is None
    assert "cosmos_directory_chains" not in fetcher.cache


def test_cosmos_directory_chains_successfully_fetched():
    chains = [SimpleNamespace(chain_id="eightball-1")]
    fetcher = make_fetcher(single_chain_config(), directory=FakeDirectory(chains))
    data = fetcher.get_cosmos_directory_chains()
    assert data is not None and len(data) == 1
    assert data[0].chain_id == "eightball-1"
    assert fetcher.cache["cosmos_directory_chains"] is chains


# Denom trace


def test_denom_trace_invalid_denom():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    assert fetcher.get_denom_trace(config.chains[0], "invalid") is None


def test_denom_trace_wrong_prefix():
    config = single_chain_config()
    node = FakeNode(denom_trace=SimpleNamespace(path="p", base_denom="untrn"))
    fetcher = make_fetcher(config, {"chain": [node]})
    assert fetcher.get_denom_trace(config.chains[0], "factory/denom") is None
    assert node.calls == []


def test_denom_trace_cached_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_denom_trace_denom"] = SimpleNamespace(path="path")
    data = fetcher.get_denom_trace(config.chains[0], "ibc/denom")
    assert data is not None
    assert data.path == "path"


def test_denom_trace_cached_not_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_denom_trace_denom"] = None
    assert fetcher.get_denom_trace(config.chains[0], "ibc/denom") is None


def test_denom_trace_all_queries_failed():
    config = single_chain_config()
    fetcher = make_fetcher(config, {"chain": [FakeNode()]})
    assert fetcher.get_denom_trace(config.chains[0], "ibc/denom") is None


def test_denom_trace_successfully_fetched():
    config = single_chain_config()
    node = FakeNode(denom_trace=SimpleNamespace(path="transfer/channel-0", base_denom="untrn"))
    fetcher = make_fetcher(config, {"chain": [node]})
    data = fetcher.get_denom_trace(config.chains[0], "ibc/denom")
    assert data is not None
    assert data.base_denom == "untrn"
    assert node.calls == [("denom_trace", "denom")]


# Proposal


def test_proposal_cached_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_proposal_id"] = SimpleNamespace(proposal_id="1")
    data = fetcher.get_proposal(config.chains[0], "id")
    assert data is not None
    assert data.proposal_id == "1"


def test_proposal_cached_not_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_proposal_id"] = None
    assert fetcher.get_proposal(config.chains[0], "id") is None


def test_proposal_all_queries_failed():
    config = single_chain_config()
    fetcher = make_fetcher(config, {"chain": [FakeNode()]})
    assert fetcher.get_proposal(config.chains[0], "id") is None


def test_proposal_successfully_fetched():
    config = single_chain_config()
    node = FakeNode(proposal=SimpleNamespace(proposal_id="1"))
    fetcher = make_fetcher(config, {"chain": [node]})
    data = fetcher.get_proposal(config.chains[0], "id")
    assert data is not None
    assert data.proposal_id == "1"
    assert node.calls == [("proposal", "id")]


# Remote chain id


def test_remote_chain_id_chain_not_found():
    fetcher = make_fetcher(single_chain_config())
    assert fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port") is None


def test_remote_chain_id_cached_ok():
    fetcher = make_fetcher(single_chain_config(chain_id="chain-id"))
    fetcher.cache["chain_channel_channel_port_port"] = "remote-chain"
    assert fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port") == "remote-chain"


def test_remote_chain_id_cached_not_ok():
    fetcher = make_fetcher(single_chain_config(chain_id="chain-id"))
    fetcher.cache["chain_channel_channel_port_port"] = None
    assert fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port") is None


def test_remote_chain_id_channel_query_failed():
    fetcher = make_fetcher(single_chain_config(chain_id="chain-id"), {"chain": [FakeNode()]})
    assert fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port") is None


def test_remote_chain_id_multihop():
    node = FakeNode(
        channel=SimpleNamespace(connection_hops=["connection-5", "connection-6"]),
        client_state=SimpleNamespace(client_state=SimpleNamespace(chain_id="x")),
    )
    fetcher = make_fetcher(single_chain_config(chain_id="chain-id"), {"chain": [node]})
    assert fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port") is None
    assert [call[0] for call in node.calls] == ["channel"]


def test_remote_chain_id_client_state_query_failed():
    node = FakeNode(channel=SimpleNamespace(connection_hops=["connection-5"]))
    fetcher = make_fetcher(single_chain_config(chain_id="chain-id"), {"chain": [node]})
    assert fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port") is None


def test_remote_chain_id_ok():
    node = FakeNode(
        channel=SimpleNamespace(connection_hops=["connection-5"]),
        client_state=SimpleNamespace(
            client_state=SimpleNamespace(chain_id="example-remote-chain")
        ),
    )
    fetcher = make_fetcher(single_chain_config(chain_id="chain-id"), {"chain": [node]})
    assert (
        fetcher.get_ibc_remote_chain_id("chain-id", "channel", "port")
        == "example-remote-chain"
    )
    assert node.calls == [
        ("channel", "channel", "port"),
        ("client_state", "connection-5"),
    ]
    assert fetcher.cache["chain_channel_channel_port_port"] == "example-remote-chain"


# Rewards


def test_rewards_cached_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_rewards_delegator_validator_100"] = [
        SimpleNamespace(amount="100", denom="ustake")
    ]
    data = fetcher.get_rewards_at_block(config.chains[0], "delegator", "validator", 100)
    assert data is not None and len(data) == 1
    assert data[0].amount == "100"
    assert data[0].denom == "ustake"


def test_rewards_cached_not_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_rewards_delegator_validator_100"] = None
    assert fetcher.get_rewards_at_block(config.chains[0], "delegator", "validator", 100) is None


def test_rewards_all_queries_failed():
    config = single_chain_config()
    fetcher = make_fetcher(config, {"chain": [FakeNode()]})
    assert fetcher.get_rewards_at_block(config.chains[0], "delegator", "validator", 100) is None


def test_rewards_successfully_fetched():
    config = single_chain_config()
    node = FakeNode(rewards=[SimpleNamespace(amount="23456", denom="uatom")])
    fetcher = make_fetcher(config, {"chain": [node]})
    data = fetcher.get_rewards_at_block(config.chains[0], "delegator", "validator", 100)
    assert data is not None and len(data) == 1
    assert data[0].amount == "23456"
    assert data[0].denom == "uatom"
    assert node.calls == [("rewards", "delegator", "validator", 99)]


# Staking params


def test_staking_params_cached_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_staking_params"] = SimpleNamespace(
        unbonding_time=timedelta(seconds=15)
    )
    data = fetcher.get_staking_params(config.chains[0])
    assert data is not None
    assert data.unbonding_time == timedelta(seconds=15)


def test_staking_params_cached_not_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_staking_params"] = None
    assert fetcher.get_staking_params(config.chains[0]) is None


def test_staking_params_all_queries_failed():
    config = single_chain_config()
    fetcher = make_fetcher(config, {"chain": [FakeNode()]})
    assert fetcher.get_staking_params(config.chains[0]) is None


def test_staking_params_successfully_fetched():
    config = single_chain_config()
    node = FakeNode(staking_params=SimpleNamespace(unbonding_time=timedelta(hours=504)))
    fetcher = make_fetcher(config, {"chain": [node]})
    data = fetcher.get_staking_params(config.chains[0])
    assert data is not None
    assert data.unbonding_time == timedelta(hours=504)


# Validator


def test_validator_cached_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_validator_address"] = SimpleNamespace(operator_address="test")
    data = fetcher.get_validator(config.chains[0], "address")
    assert data is not None
    assert data.operator_address == "test"


def test_validator_cached_not_ok():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_validator_address"] = None
    assert fetcher.get_validator(config.chains[0], "address") is None


def test_validator_all_queries_failed():
    config = single_chain_config()
    fetcher = make_fetcher(config, {"chain": [FakeNode()]})
    assert fetcher.get_validator(config.chains[0], "address") is None


def test_validator_successfully_fetched():
    config = single_chain_config()
    node = FakeNode(validator=SimpleNamespace(operator_address="cosmosvaloper1exampleoperator"))
    fetcher = make_fetcher(config, {"chain": [node]})
    data = fetcher.get_validator(config.chains[0], "address")
    assert data is not None
    assert data.operator_address == "cosmosvaloper1exampleoperator"
    assert node.calls == [("validator", "address")]


def test_populate_validator_not_present():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    validator = Link(value="address")
    fetcher.populate_validator(config.chains[0], validator)
    assert validator.title == ""


def test_populate_validator_present():
    config = single_chain_config()
    fetcher = make_fetcher(config)
    fetcher.cache["chain_validator_address"] = SimpleNamespace(
        description=SimpleNamespace(moniker="🐹 Quokka Stake")
    )
    validator = Link(value="address")
    fetcher.populate_validator(config.chains[0], validator)
    assert validator.title == "🐹 Quokka Stake"