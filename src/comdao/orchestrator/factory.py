"""
Contract factories and instances.

A ``ContractFactory`` owns the per-contract configuration: embedded network
records, the selected network, library links, default call options and the
transport. Instances snapshot that configuration into an immutable
``ContractConfig`` when they are created. The first transaction issued through
a factory or any of its instances freezes the factory, after which it can no
longer be re-linked, re-pointed at another network or given new defaults.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping, Optional, Sequence, Union

from ..chain.abi import encode_deployment, find_constructor
from ..chain.rpc import RpcError
from ..errors import (
    ConfigurationFrozenError,
    ContractError,
    MissingBinaryError,
    NotDeployedError,
    ProviderNotSetError,
    TransportError,
    UnknownNetworkError,
    UnresolvedLibraryError,
)
from ..utils import require_address, strip_0x
from .confirm import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_TIMEOUT,
    ConfirmationTracker,
    TransactionResult,
)
from .events import DecodedEvent, EventDecoder, topic_table
from .invoke import ReadInvoker, TransactionSubmitter, Transport, build_tx
from .params import CallSpec, call_specs, merge_options, split_params

logger = logging.getLogger(__name__)

# "__" + library name + "_" padding up to the 40 hex chars of an address.
PLACEHOLDER_RE = re.compile(r"__[^_]+_+")

# Detected network id -> artifact keys to try, in order.
NETWORK_ALIASES: dict[str, tuple[str, ...]] = {
    "1": ("1", "live", "default"),
}

DEFAULT_NETWORK = "default"


def find_unresolved_libraries(binary: str) -> list[str]:
    """Distinct, sorted library names whose placeholders remain in ``binary``."""
    return sorted({match.replace("_", "") for match in PLACEHOLDER_RE.findall(binary)})


def link_binary(binary: str, links: Mapping[str, str]) -> str:
    for library_name, library_address in links.items():
        pattern = re.compile("__" + re.escape(library_name) + "_*")
        binary = pattern.sub(strip_0x(library_address), binary)
    return binary


@dataclass(frozen=True)
class NetworkArtifact:
    abi: tuple
    unlinked_binary: Optional[str] = None
    address: Optional[str] = None
    events: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    links: Mapping[str, str] = field(default_factory=dict)
    updated_at: Optional[int] = None

    @classmethod
    def from_dict(cls, record: Mapping[str, Any]) -> "NetworkArtifact":
        return cls(
            abi=tuple(record.get("abi") or ()),
            unlinked_binary=record.get("unlinked_binary"),
            address=record.get("address"),
            events=topic_table(record.get("events") or {}),
            links=MappingProxyType(dict(record.get("links") or {})),
            updated_at=record.get("updated_at"),
        )


@dataclass(frozen=True)
class ContractConfig:
    """Immutable snapshot of a factory's configuration, shared by an instance's calls."""

    contract_name: str
    network_id: Optional[str]
    abi: tuple
    specs: Mapping[str, CallSpec]
    events: Mapping[str, Mapping[str, Any]]
    defaults: Mapping[str, Any]
    transport: Optional[Transport]
    tracker: Optional[ConfirmationTracker]
    extended_results: bool = False
    on_transaction: Optional[Callable[[], None]] = None


class BoundFunction:
    """
    One ABI function bound to a deployed instance.

    Calling it reads for constant functions and submits-then-confirms for the
    others. ``call``, ``send_transaction`` and ``estimate_gas`` force a
    specific path. Arguments may end with an options mapping.
    """

    def __init__(self, instance: "ContractInstance", spec: CallSpec) -> None:
        self.instance = instance
        self.spec = spec

    def __repr__(self) -> str:
        return f"<BoundFunction {self.instance.contract_name}.{self.spec.name}>"

    def _split(self, args: Sequence[Any]) -> tuple[list[Any], dict[str, Any]]:
        return split_params(args, self.instance.config.defaults)

    async def __call__(self, *args: Any, extended: Optional[bool] = None) -> Any:
        if self.spec.constant:
            return await self.call(*args)
        return await self.transact(*args, extended=extended)

    async def call(self, *args: Any) -> Any:
        positional, options = self._split(args)
        reader = ReadInvoker(self.instance.require_transport())
        return await reader.invoke(self.spec, self.instance.address, positional, options)

    async def transact(
        self, *args: Any, extended: Optional[bool] = None
    ) -> Union[str, TransactionResult]:
        positional, options = self._split(args)
        submitter = self.instance.submitter()
        if extended is None:
            extended = self.instance.config.extended_results
        return await submitter.submit(
            self.spec,
            self.instance.address,
            positional,
            options,
            extended=extended,
            decoder=self.instance.decoder,
        )

    async def send_transaction(self, *args: Any) -> str:
        """Submit without waiting for confirmation."""
        positional, options = self._split(args)
        return await self.instance.submitter().send_call(
            self.spec, self.instance.address, positional, options
        )

    async def estimate_gas(self, *args: Any) -> int:
        positional, options = self._split(args)
        submitter = TransactionSubmitter(self.instance.require_transport(), self.instance.config.tracker)
        return await submitter.estimate_gas(self.spec, self.instance.address, positional, options)

    def request(self, *args: Any) -> dict[str, Any]:
        """The transaction dict that would be sent, without sending it."""
        positional, options = self._split(args)
        return build_tx(self.spec, self.instance.address, positional, options)


class ContractInstance:
    """A contract at a known address."""

    def __init__(
        self,
        config: ContractConfig,
        address: str,
        transaction_hash: Optional[str] = None,
    ) -> None:
        self.config = config
        self.address = require_address(address, f"{config.contract_name}.at()")
        self.transaction_hash = transaction_hash
        self.decoder = EventDecoder(config.events, self.address)
        self.functions: Mapping[str, BoundFunction] = MappingProxyType(
            {name: BoundFunction(self, spec) for name, spec in config.specs.items()}
        )

    def __repr__(self) -> str:
        return f"<{self.contract_name} at {self.address}>"

    @property
    def contract_name(self) -> str:
        return self.config.contract_name

    @property
    def abi(self) -> tuple:
        return self.config.abi

    def function(self, name: str) -> BoundFunction:
        try:
            return self.functions[name]
        except KeyError:
            raise AttributeError(f"{self.contract_name} has no function {name!r}") from None

    def require_transport(self) -> Transport:
        if self.config.transport is None:
            raise ProviderNotSetError(
                f"{self.contract_name} error: Please call set_provider() first."
            )
        return self.config.transport

    def submitter(self) -> TransactionSubmitter:
        transport = self.require_transport()
        if self.config.tracker is None:
            raise ProviderNotSetError(
                f"{self.contract_name} error: no confirmation tracker configured."
            )
        if self.config.on_transaction is not None:
            self.config.on_transaction()
        return TransactionSubmitter(transport, self.config.tracker)

    def decode_logs(self, logs: Sequence[Mapping[str, Any]]) -> list[DecodedEvent]:
        return self.decoder.decode(logs)

    def event_topic(self, name: str) -> str:
        for topic, entry in self.config.events.items():
            if entry.get("name") == name:
                return topic
        raise AttributeError(f"{self.contract_name} has no event {name!r}")

    async def get_logs(
        self,
        event: Optional[str] = None,
        from_block: Union[int, str] = "earliest",
        to_block: Union[int, str] = "latest",
    ) -> list[DecodedEvent]:
        """
        Past events emitted at this address, decoded against the topic table.

        ``event`` restricts the query to one event name. Without it every log
        at the address is fetched and those with unknown topics are dropped,
        as for receipts.
        """
        log_filter: dict[str, Any] = {
            "address": self.address,
            "fromBlock": from_block,
            "toBlock": to_block,
        }
        if event is not None:
            log_filter["topics"] = [self.event_topic(event)]

        transport = self.require_transport()
        try:
            logs = await transport.get_logs(log_filter)
        except RpcError as exc:
            raise TransportError(f"Log query for {self.contract_name} failed: {exc}") from exc
        return self.decoder.decode(logs)


class ContractFactory:
    """
    Per-contract configuration and the entry point for ``new``/``at``/``deployed``.

    ``for_network`` returns an independent factory bound to one network id.
    Without an explicit network, ``new()`` asks the node for its network id
    and picks the matching record.
    """

    def __init__(
        self,
        contract_name: str,
        networks: Mapping[str, Union[NetworkArtifact, Mapping[str, Any]]],
        defaults: Optional[Mapping[str, Any]] = None,
        transport: Optional[Transport] = None,
        synchronization_timeout: float = DEFAULT_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        extended_results: bool = False,
        instance_class: type = ContractInstance,
        generated_with: Optional[str] = None,
    ) -> None:
        self.contract_name = contract_name
        self.generated_with = generated_with
        self.all_networks: Mapping[str, NetworkArtifact] = MappingProxyType(
            {
                str(key): value if isinstance(value, NetworkArtifact) else NetworkArtifact.from_dict(value)
                for key, value in networks.items()
            }
        )
        self.synchronization_timeout = synchronization_timeout
        self.poll_interval = poll_interval
        self.extended_results = extended_results
        self.instance_class = instance_class

        self.network_id: Optional[str] = None
        self._class_defaults: dict[str, Any] = dict(defaults or {})
        self._artifact: Optional[NetworkArtifact] = None
        self._loaded: Optional[str] = None
        self._links: dict[str, str] = {}
        self._events: dict[str, Mapping[str, Any]] = {}
        # What link() added on top of the loaded record.
        self._user_links: dict[str, str] = {}
        self._user_events: dict[str, Mapping[str, Any]] = {}
        self._transport: Optional[Transport] = None
        self._tracker: Optional[ConfirmationTracker] = None
        self._frozen = False

        # Load default data up front, but leave the network unselected so it
        # is auto-detected on first deployment.
        if DEFAULT_NETWORK in self.all_networks:
            self._load(DEFAULT_NETWORK)
        if transport is not None:
            self.set_provider(transport)

    def __repr__(self) -> str:
        return f"<ContractFactory {self.contract_name} network={self.network_id or self._loaded}>"

    # ---- configuration -------------------------------------------------

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        if not self._frozen:
            logger.debug("Freezing %s configuration", self.contract_name)
        self._frozen = True

    def _check_mutable(self, operation: str) -> None:
        if self._frozen:
            raise ConfigurationFrozenError(
                f"{self.contract_name} error: cannot {operation} after a transaction was issued."
            )

    @property
    def transport(self) -> Optional[Transport]:
        return self._transport

    @property
    def tracker(self) -> Optional[ConfirmationTracker]:
        return self._tracker

    def set_provider(
        self, transport: Transport, tracker: Optional[ConfirmationTracker] = None
    ) -> None:
        self._check_mutable("change the provider")
        self._transport = transport
        self._tracker = tracker or ConfirmationTracker(
            transport,
            timeout=self.synchronization_timeout,
            poll_interval=self.poll_interval,
        )

    def _require_transport(self) -> Transport:
        if self._transport is None:
            raise ProviderNotSetError(
                f"{self.contract_name} error: Please call set_provider() first before calling new()."
            )
        return self._transport

    def defaults(self, options: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """Merge ``options`` into the class defaults and return the result."""
        if options:
            self._check_mutable("change defaults")
            self._class_defaults = merge_options(self._class_defaults, options)
        return dict(self._class_defaults)

    def networks(self) -> list[str]:
        return list(self.all_networks)

    def _load(self, network_id: str, keep_links: bool = False) -> None:
        artifact = self.all_networks[network_id]
        if not keep_links:
            self._user_links = {}
            self._user_events = {}
        self._artifact = artifact
        self._loaded = network_id
        self._links = {**artifact.links, **self._user_links}
        self._events = {**artifact.events, **self._user_events}

    def set_network(self, network_id: Union[str, int]) -> None:
        """Select a network record explicitly. Links made earlier are dropped."""
        network_id = str(network_id)
        self._check_mutable("switch network")
        if network_id not in self.all_networks:
            raise UnknownNetworkError(
                f"{self.contract_name} error: Can't find artifacts for network id '{network_id}'",
                network_id=network_id,
            )
        self._load(network_id)
        self.network_id = network_id
        logger.info("%s using network %s", self.contract_name, network_id)

    def for_network(self, network_id: Union[str, int]) -> "ContractFactory":
        """An independent, unfrozen factory bound to ``network_id``."""
        clone = ContractFactory(
            self.contract_name,
            self.all_networks,
            defaults=self._class_defaults,
            synchronization_timeout=self.synchronization_timeout,
            poll_interval=self.poll_interval,
            extended_results=self.extended_results,
            instance_class=self.instance_class,
            generated_with=self.generated_with,
        )
        if self._transport is not None:
            clone.set_provider(self._transport)
        clone.set_network(network_id)
        return clone

    def resolve_network_id(self, detected: str) -> str:
        for candidate in NETWORK_ALIASES.get(detected, (detected,)):
            if candidate in self.all_networks:
                return candidate
        raise UnknownNetworkError(
            f"{self.contract_name} error: Can't find artifacts for network id '{detected}'",
            network_id=detected,
        )

    async def check_network(self) -> str:
        """Select the network reported by the node unless one is already selected."""
        if self.network_id is not None:
            return self.network_id

        transport = self._require_transport()
        try:
            detected = str(await transport.get_network_id())
        except RpcError as exc:
            raise TransportError(f"Network detection failed: {exc}") from exc

        network_id = self.resolve_network_id(detected)
        if self._frozen and network_id != self._loaded:
            raise ConfigurationFrozenError(
                f"{self.contract_name} error: detected network '{network_id}' "
                f"differs from '{self._loaded}' already in use."
            )
        self._load(network_id, keep_links=True)
        self.network_id = network_id
        logger.info("%s detected network %s (node reported %s)", self.contract_name, network_id, detected)
        return network_id

    # ---- network record accessors -------------------------------------

    def _require_artifact(self) -> NetworkArtifact:
        if self._artifact is None:
            raise UnknownNetworkError(f"{self.contract_name} error: no network selected.")
        return self._artifact

    @property
    def abi(self) -> tuple:
        return self._require_artifact().abi

    @property
    def address(self) -> Optional[str]:
        return self._artifact.address if self._artifact is not None else None

    @property
    def updated_at(self) -> Optional[int]:
        return self._artifact.updated_at if self._artifact is not None else None

    @property
    def unlinked_binary(self) -> Optional[str]:
        return self._artifact.unlinked_binary if self._artifact is not None else None

    @property
    def events(self) -> Mapping[str, Mapping[str, Any]]:
        return MappingProxyType(self._events)

    @property
    def links(self) -> Mapping[str, str]:
        return MappingProxyType(self._links)

    @property
    def binary(self) -> str:
        return link_binary(self.unlinked_binary or "", self._links)

    # ---- linking -------------------------------------------------------

    def link(
        self,
        name: Union[str, Mapping[str, str], "ContractFactory"],
        address: Optional[str] = None,
    ) -> None:
        """
        Link a library into this contract's binary.

        Accepts ``(name, address)``, a ``{name: address}`` mapping, or a
        library's ``ContractFactory`` (its deployed address is used and its
        event topics are merged so this contract can decode them).
        """
        self._check_mutable("link libraries")

        if isinstance(name, ContractFactory):
            library = name
            if library.address is None:
                raise ContractError("Cannot link contract without an address.")
            self.link(library.contract_name, library.address)
            self._user_events.update(library.events)
            self._events.update(library.events)
            return

        if isinstance(name, Mapping):
            for library_name, library_address in name.items():
                self.link(library_name, library_address)
            return

        self._links[name] = require_address(address, f"{self.contract_name}.link()")
        self._user_links[name] = self._links[name]
        logger.info("%s linked %s at %s", self.contract_name, name, address)

    def unresolved_libraries(self) -> list[str]:
        return find_unresolved_libraries(self.binary)

    def _deployable_binary(self) -> str:
        if not self.unlinked_binary:
            raise MissingBinaryError(
                f"{self.contract_name} error: contract binary not set. Can't deploy new instance."
            )
        binary = self.binary
        unresolved = find_unresolved_libraries(binary)
        if unresolved:
            raise UnresolvedLibraryError(
                f"{self.contract_name} contains unresolved libraries. You must deploy and "
                f"link the following libraries before you can deploy a new version of "
                f"{self.contract_name}: {', '.join(unresolved)}",
                libraries=unresolved,
            )
        return binary

    # ---- instances -----------------------------------------------------

    def config(self) -> ContractConfig:
        artifact = self._require_artifact()
        return ContractConfig(
            contract_name=self.contract_name,
            network_id=self.network_id or self._loaded,
            abi=artifact.abi,
            specs=MappingProxyType(call_specs(artifact.abi)),
            events=topic_table(self._events),
            defaults=MappingProxyType(dict(self._class_defaults)),
            transport=self._transport,
            tracker=self._tracker,
            extended_results=self.extended_results,
            on_transaction=self.freeze,
        )

    def at(self, address: str) -> ContractInstance:
        """Instance at ``address``. Validates the address; makes no network call."""
        require_address(address, f"{self.contract_name}.at()")
        return self.instance_class(self.config(), address)

    def deployed(self) -> ContractInstance:
        if not self.address:
            raise NotDeployedError(
                f"Cannot find deployed address: {self.contract_name} not deployed or address not set."
            )
        return self.at(self.address)

    async def new(self, *args: Any) -> ContractInstance:
        """
        Deploy a new instance and wait for it to be mined.

        Arguments are the constructor arguments, optionally followed by an
        options mapping. An explicit ``data`` option replaces the binary.
        """
        transport = self._require_transport()
        self._deployable_binary()
        await self.check_network()
        binary = self._deployable_binary()

        positional, options = split_params(args, self._class_defaults)
        tx = dict(options)
        tx.pop("to", None)
        if tx.get("data") is None:
            tx["data"] = encode_deployment(binary, find_constructor(self.abi), positional)

        tracker = self._tracker
        if tracker is None:
            raise ProviderNotSetError(
                f"{self.contract_name} error: no confirmation tracker configured."
            )
        self.freeze()
        submitter = TransactionSubmitter(transport, tracker)
        tx_hash = await submitter.send(tx, label=f"{self.contract_name} deployment")
        result = await tracker.wait(tx_hash, extended=True)

        address = result.receipt.get("contractAddress")
        if not address:
            raise NotDeployedError(
                f"{self.contract_name} deployment {tx_hash} was mined without a contract address."
            )
        logger.info("%s deployed at %s (tx %s)", self.contract_name, address, tx_hash)
        return self.instance_class(self.config(), address, transaction_hash=tx_hash)
