__all__ = [
    # Errors
    "ContractError",
    "ConfigurationFrozenError",
    "InvalidAddressError",
    "MissingBinaryError",
    "NotDeployedError",
    "ProviderNotSetError",
    "SubmissionError",
    "TransactionTimeoutError",
    "TransportError",
    "UnknownNetworkError",
    "UnresolvedLibraryError",
    # Transport
    "JsonRpcTransport",
    "RpcError",
    # Orchestrator
    "CallSpec",
    "split_params",
    "merge_options",
    "is_options_bag",
    "ReadInvoker",
    "TransactionSubmitter",
    "ConfirmationTracker",
    "TransactionResult",
    "TxState",
    "DecodedEvent",
    "EventDecoder",
    "decode_logs",
    "ContractFactory",
    "ContractInstance",
    "NetworkArtifact",
    # Contracts
    "ComDAO",
    "SGBManager",
    "build_factory",
    # Config
    "Settings",
    "load_settings",
]

from .errors import (
    ConfigurationFrozenError,
    ContractError,
    InvalidAddressError,
    MissingBinaryError,
    NotDeployedError,
    ProviderNotSetError,
    SubmissionError,
    TransactionTimeoutError,
    TransportError,
    UnknownNetworkError,
    UnresolvedLibraryError,
)
from .chain.rpc import JsonRpcTransport, RpcError
from .orchestrator.params import CallSpec, is_options_bag, merge_options, split_params
from .orchestrator.invoke import ReadInvoker, TransactionSubmitter
from .orchestrator.confirm import ConfirmationTracker, TransactionResult, TxState
from .orchestrator.events import DecodedEvent, EventDecoder, decode_logs
from .orchestrator.factory import ContractFactory, ContractInstance, NetworkArtifact
from .contracts import ComDAO, SGBManager, build_factory
from .config import Settings, load_settings
