"""Tests for ContractFactory: networks, linking, defaults, freezing, deployment."""

from __future__ import annotations

import asyncio
import dataclasses

import pytest
from eth_abi import encode

from comdao.chain.abi import event_topic, function_selector
from comdao.chain.rpc import RpcError
from comdao.contracts import comdao, sgb_manager
from comdao.errors import (
    ConfigurationFrozenError,
    ContractError,
    InvalidAddressError,
    MissingBinaryError,
    NotDeployedError,
    ProviderNotSetError,
    SubmissionError,
    TransportError,
    UnknownNetworkError,
    UnresolvedLibraryError,
)
from comdao.orchestrator.confirm import ConfirmationTracker
from comdao.orchestrator.factory import (
    ContractFactory,
    ContractInstance,
    find_unresolved_libraries,
    link_binary,
)

from conftest import ADDRESS, DEPLOYED, SENDER, FakeClock, FakeTransport

LIB1 = "0x" + "01" * 20
LIB2 = "0x" + "02" * 20

COUNTER_ABI = [
    {"type": "constructor", "inputs": [{"name": "start", "type": "uint256"}], "payable": False},
    {"type": "function", "name": "count", "constant": True, "inputs": [], "outputs": [{"name": "", "type": "uint256"}]},
    {"type": "function", "name": "bump", "constant": False, "inputs": [{"name": "by", "type": "uint256"}], "outputs": []},
]

UNLINKED = "0x6060" + "__Lib1___" + "aa" + "__Lib2___" + "bb" + "__Lib1___"


def make_factory(binary: str = "0x60606040", **kwargs) -> ContractFactory:
    networks = {
        "default": {"abi": COUNTER_ABI, "unlinked_binary": binary, "address": ADDRESS, "events": {}, "links": {}},
        "3": {"abi": COUNTER_ABI, "unlinked_binary": binary, "address": None},
    }
    return ContractFactory("Counter", networks, **kwargs)


def attach(factory: ContractFactory, transport: FakeTransport, clock: FakeClock) -> None:
    factory.set_provider(transport, ConfirmationTracker(transport, clock=clock, sleep=clock.sleep))


class TestLibraryLinking:
    """Placeholder detection and substitution."""

    def test_unresolved_names_deduplicated_and_sorted(self) -> None:
        assert find_unresolved_libraries(UNLINKED) == ["Lib1", "Lib2"]

    def test_new_reports_unresolved(self, transport: FakeTransport) -> None:
        factory = make_factory(UNLINKED, transport=transport)

        with pytest.raises(UnresolvedLibraryError) as excinfo:
            asyncio.run(factory.new(1))

        assert excinfo.value.libraries == ["Lib1", "Lib2"]
        assert "Lib1, Lib2" in str(excinfo.value)
        assert transport.sent == []

    def test_link_substitutes_address(self) -> None:
        factory = make_factory(UNLINKED)
        factory.link("Lib1", LIB1)

        assert factory.unresolved_libraries() == ["Lib2"]
        assert factory.binary.count(LIB1[2:]) == 2
        assert "__Lib1" not in factory.binary

    def test_link_mapping(self) -> None:
        factory = make_factory(UNLINKED)
        factory.link({"Lib1": LIB1, "Lib2": LIB2})
        assert factory.unresolved_libraries() == []
        assert factory.links == {"Lib1": LIB1, "Lib2": LIB2}

    def test_link_factory_merges_events(self) -> None:
        library = ContractFactory(
            "Lib1",
            {"default": {"abi": [], "address": LIB1, "events": {"0x" + "ff" * 32: {"type": "event", "name": "Logged", "inputs": []}}}},
        )
        factory = make_factory(UNLINKED)
        factory.link(library)

        assert factory.links["Lib1"] == LIB1
        assert "0x" + "ff" * 32 in factory.events

    def test_link_factory_without_address(self) -> None:
        library = ContractFactory("Lib1", {"default": {"abi": []}})
        with pytest.raises(ContractError):
            make_factory(UNLINKED).link(library)

    def test_link_rejects_bad_address(self) -> None:
        with pytest.raises(InvalidAddressError):
            make_factory(UNLINKED).link("Lib1", "0x1234")

    def test_link_binary_leaves_other_names(self) -> None:
        assert link_binary("__Lib1___ff__Lib2___", {"Lib2": LIB2}) == "__Lib1___ff" + LIB2[2:]


class TestAtAndDeployed:
    """Address validation and deployed lookup."""

    def test_at_rejects_invalid_address_without_network(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        with pytest.raises(InvalidAddressError):
            factory.at("not-an-address")
        assert transport.calls == []
        assert transport.network_queries == 0

    @pytest.mark.parametrize("bad", [None, 42, "0x123", "ab" * 21, "0x" + "zz" * 20])
    def test_at_rejects(self, bad: object) -> None:
        with pytest.raises(InvalidAddressError):
            make_factory().at(bad)

    def test_at_returns_instance(self) -> None:
        instance = make_factory().at(ADDRESS)
        assert isinstance(instance, ContractInstance)
        assert instance.address == ADDRESS
        assert set(instance.functions) == {"count", "bump"}

    def test_deployed(self) -> None:
        assert make_factory().deployed().address == ADDRESS

    def test_not_deployed(self) -> None:
        with pytest.raises(NotDeployedError):
            make_factory().for_network("3").deployed()

    def test_embedded_artifacts(self) -> None:
        assert comdao.factory().deployed().address == "0xb7fe5d01d33b6405904edde2b58687fae11b664f"
        with pytest.raises(NotDeployedError):
            sgb_manager.factory().deployed()


class TestNetworks:
    """Explicit selection and auto-detection."""

    def test_networks_listed(self) -> None:
        assert make_factory().networks() == ["default", "3"]

    def test_unknown_explicit_network(self) -> None:
        with pytest.raises(UnknownNetworkError) as excinfo:
            make_factory().set_network("77")
        assert excinfo.value.network_id == "77"

    def test_mainnet_maps_to_default(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        transport.network_id = "1"
        assert asyncio.run(factory.check_network()) == "default"
        assert factory.network_id == "default"

    def test_exact_match(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        transport.network_id = "3"
        assert asyncio.run(factory.check_network()) == "3"
        assert factory.address is None

    def test_unknown_detected_network(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        transport.network_id = "1337"
        with pytest.raises(UnknownNetworkError):
            asyncio.run(factory.check_network())

    def test_detection_transport_failure(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        transport.network_error = RpcError("down")
        with pytest.raises(TransportError):
            asyncio.run(factory.check_network())

    def test_explicit_selection_skips_detection(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        factory.set_network("3")
        assert asyncio.run(factory.check_network()) == "3"
        assert transport.network_queries == 0

    def test_detection_keeps_links_and_events(self, transport: FakeTransport) -> None:
        library = ContractFactory(
            "Lib1",
            {"default": {"abi": [], "address": LIB1, "events": {"0x" + "ff" * 32: {"type": "event", "name": "Logged", "inputs": []}}}},
        )
        factory = make_factory(UNLINKED, transport=transport)
        factory.link(library)
        factory.link("Lib2", LIB2)
        transport.network_id = "3"

        assert asyncio.run(factory.check_network()) == "3"
        assert factory.unresolved_libraries() == []
        assert "0x" + "ff" * 32 in factory.events

    def test_explicit_network_drops_links(self) -> None:
        factory = make_factory(UNLINKED)
        factory.link("Lib1", LIB1)
        factory.set_network("3")
        assert factory.links == {}
        assert factory.unresolved_libraries() == ["Lib1", "Lib2"]

    def test_for_network_is_independent(self) -> None:
        factory = make_factory()
        factory.defaults({"gas": 1})
        clone = factory.for_network("3")
        clone.defaults({"gas": 2})

        assert factory.network_id is None
        assert clone.network_id == "3"
        assert factory.defaults() == {"gas": 1}
        assert clone.defaults() == {"gas": 2}


class TestDefaults:
    """Class defaults flow into calls; call-site options win."""

    def test_defaults_merge(self) -> None:
        factory = make_factory(defaults={"from": SENDER})
        assert factory.defaults({"gas": 10}) == {"from": SENDER, "gas": 10}
        assert factory.defaults() == {"from": SENDER, "gas": 10}

    def test_options_reach_transport(self, transport: FakeTransport) -> None:
        transport.call_result = "0x" + encode(["uint256"], [4]).hex()
        factory = make_factory(defaults={"from": SENDER, "gas": 10}, transport=transport)
        instance = factory.at(ADDRESS)

        assert asyncio.run(instance.functions["count"]({"gas": 99})) == 4
        sent = transport.calls[-1]
        assert sent["from"] == SENDER
        assert sent["gas"] == 99
        assert sent["to"] == ADDRESS


class TestBoundFunction:
    """Read/write dispatch and the explicit variants."""

    def test_write_waits_for_receipt(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.receipt_after = 3
        factory = make_factory()
        attach(factory, transport, clock)
        bump = factory.at(ADDRESS).functions["bump"]

        tx_hash = asyncio.run(bump(2))

        assert transport.attempts(tx_hash) == 3
        assert transport.sent[0]["data"].startswith("0x" + function_selector(COUNTER_ABI[2]).hex())

    def test_send_transaction_does_not_wait(self, transport: FakeTransport, clock: FakeClock) -> None:
        factory = make_factory()
        attach(factory, transport, clock)
        tx_hash = asyncio.run(factory.at(ADDRESS).functions["bump"].send_transaction(2))
        assert tx_hash.startswith("0x")
        assert transport.receipt_queries == []

    def test_call_on_write_function_reads(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        assert asyncio.run(factory.at(ADDRESS).functions["bump"].call(2)) is None
        assert len(transport.calls) == 1
        assert transport.sent == []
        assert not factory.frozen

    def test_estimate_gas(self, transport: FakeTransport) -> None:
        transport.gas = 54321
        factory = make_factory(transport=transport)
        assert asyncio.run(factory.at(ADDRESS).functions["bump"].estimate_gas(1)) == 54321

    def test_request_builds_without_sending(self, transport: FakeTransport) -> None:
        factory = make_factory(defaults={"from": SENDER}, transport=transport)
        tx = factory.at(ADDRESS).functions["bump"].request(1)
        assert tx["from"] == SENDER
        assert tx["to"] == ADDRESS
        assert transport.sent == [] and transport.calls == []

    def test_no_provider(self) -> None:
        instance = make_factory().at(ADDRESS)
        with pytest.raises(ProviderNotSetError):
            asyncio.run(instance.functions["count"]())

    def test_submission_error(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.send_error = RpcError("insufficient funds for gas * price + value")
        factory = make_factory()
        attach(factory, transport, clock)
        with pytest.raises(SubmissionError):
            asyncio.run(factory.at(ADDRESS).functions["bump"](1))
        assert transport.receipt_queries == []

    def test_unknown_function(self) -> None:
        with pytest.raises(AttributeError):
            make_factory().at(ADDRESS).function("missing")


class TestFreezing:
    """Reconfiguration is refused once a transaction went out."""

    def test_reads_do_not_freeze(self, transport: FakeTransport) -> None:
        transport.call_result = "0x" + encode(["uint256"], [1]).hex()
        factory = make_factory(transport=transport)
        asyncio.run(factory.at(ADDRESS).functions["count"]())
        factory.link("Lib1", LIB1)
        assert not factory.frozen

    def test_transaction_freezes(self, transport: FakeTransport, clock: FakeClock) -> None:
        factory = make_factory()
        attach(factory, transport, clock)
        asyncio.run(factory.at(ADDRESS).functions["bump"](1))

        assert factory.frozen
        with pytest.raises(ConfigurationFrozenError):
            factory.link("Lib1", LIB1)
        with pytest.raises(ConfigurationFrozenError):
            factory.set_network("3")
        with pytest.raises(ConfigurationFrozenError):
            factory.defaults({"gas": 1})
        with pytest.raises(ConfigurationFrozenError):
            factory.set_provider(transport)
        # Reading the defaults is still allowed.
        assert factory.defaults() == {}

    def test_instances_keep_their_snapshot(self) -> None:
        factory = make_factory(defaults={"gas": 1})
        instance = factory.at(ADDRESS)
        factory.defaults({"gas": 2})
        assert instance.config.defaults["gas"] == 1


class TestNew:
    """Deployment."""

    def test_requires_provider(self) -> None:
        with pytest.raises(ProviderNotSetError):
            asyncio.run(make_factory().new(1))

    def test_requires_binary(self, transport: FakeTransport) -> None:
        factory = ContractFactory("Empty", {"default": {"abi": COUNTER_ABI}}, transport=transport)
        with pytest.raises(MissingBinaryError):
            asyncio.run(factory.new(1))

    def test_deploys_and_returns_instance(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.receipt = {"status": "0x1", "contractAddress": DEPLOYED, "logs": []}
        transport.receipt_after = 2
        factory = make_factory(defaults={"from": SENDER})
        attach(factory, transport, clock)

        instance = asyncio.run(factory.new(7, {"gas": 900_000}))

        assert instance.address == DEPLOYED
        assert instance.transaction_hash == "0x" + f"{1:064x}"
        tx = transport.sent[0]
        assert tx["data"] == "0x60606040" + encode(["uint256"], [7]).hex()
        assert tx["from"] == SENDER
        assert tx["gas"] == 900_000
        assert "to" not in tx
        assert factory.network_id == "default"
        assert factory.frozen

    def test_explicit_data_wins(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.receipt = {"contractAddress": DEPLOYED}
        factory = make_factory()
        attach(factory, transport, clock)
        asyncio.run(factory.new({"data": "0xfeed"}))
        assert transport.sent[0]["data"] == "0xfeed"

    def test_receipt_without_address(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.receipt = {"status": "0x0"}
        factory = make_factory()
        attach(factory, transport, clock)
        with pytest.raises(NotDeployedError):
            asyncio.run(factory.new(1))

    def test_linked_deploy_after_detection(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.receipt = {"contractAddress": DEPLOYED}
        transport.network_id = "3"
        factory = make_factory(UNLINKED)
        factory.link({"Lib1": LIB1, "Lib2": LIB2})
        attach(factory, transport, clock)

        instance = asyncio.run(factory.new(0))

        assert instance.address == DEPLOYED
        assert factory.network_id == "3"
        assert LIB2[2:] in transport.sent[0]["data"]

    def test_missing_tracker(self, transport: FakeTransport) -> None:
        factory = make_factory(transport=transport)
        config = dataclasses.replace(factory.config(), tracker=None)
        instance = ContractInstance(config, ADDRESS)
        with pytest.raises(ProviderNotSetError):
            asyncio.run(instance.functions["bump"](1))
        assert transport.sent == []

    def test_linked_deploy_uses_linked_binary(self, transport: FakeTransport, clock: FakeClock) -> None:
        transport.receipt = {"contractAddress": DEPLOYED}
        factory = make_factory(UNLINKED)
        factory.link({"Lib1": LIB1, "Lib2": LIB2})
        attach(factory, transport, clock)
        asyncio.run(factory.new(0))
        assert LIB1[2:] in transport.sent[0]["data"]
        assert "__" not in transport.sent[0]["data"]


class TestGetLogs:
    """Past events through eth_getLogs."""

    PING = {"type": "event", "name": "Ping", "inputs": [{"name": "n", "type": "uint256", "indexed": False}]}

    def _factory(self, transport: FakeTransport) -> ContractFactory:
        topic = event_topic(self.PING)
        networks = {"default": {"abi": COUNTER_ABI + [self.PING], "address": ADDRESS, "events": {topic: self.PING}}}
        return ContractFactory("Counter", networks, transport=transport)

    def _log(self, n: int, topic: str = "") -> dict:
        return {
            "address": ADDRESS,
            "topics": [topic or event_topic(self.PING)],
            "data": "0x" + encode(["uint256"], [n]).hex(),
            "blockNumber": hex(n),
        }

    def test_all_events(self, transport: FakeTransport) -> None:
        transport.logs = [self._log(1), self._log(2, "0x" + "99" * 32), self._log(3)]
        events = asyncio.run(self._factory(transport).at(ADDRESS).get_logs())

        assert [(e.event, e.args["n"], e.block_number) for e in events] == [("Ping", 1, 1), ("Ping", 3, 3)]
        assert transport.log_filters == [{"address": ADDRESS, "fromBlock": "earliest", "toBlock": "latest"}]

    def test_single_event_filter(self, transport: FakeTransport) -> None:
        asyncio.run(self._factory(transport).at(ADDRESS).get_logs("Ping", from_block=10, to_block=20))
        log_filter = transport.log_filters[0]
        assert log_filter["topics"] == [event_topic(self.PING)]
        assert (log_filter["fromBlock"], log_filter["toBlock"]) == (10, 20)

    def test_unknown_event(self, transport: FakeTransport) -> None:
        with pytest.raises(AttributeError):
            asyncio.run(self._factory(transport).at(ADDRESS).get_logs("Missing"))
        assert transport.log_filters == []

    def test_transport_failure(self, transport: FakeTransport) -> None:
        transport.logs_error = RpcError("query returned more than 10000 results")
        with pytest.raises(TransportError):
            asyncio.run(self._factory(transport).at(ADDRESS).get_logs())

    def test_reads_do_not_freeze(self, transport: FakeTransport) -> None:
        factory = self._factory(transport)
        asyncio.run(factory.at(ADDRESS).get_logs())
        assert not factory.frozen
