"""
SGBManager bindings.

Registry of SGBs (location, rate, capacity, owner) and the waste records
submitted against them.
"""

from __future__ import annotations

from typing import Any, Mapping, NamedTuple, Optional, Union

from ..artifacts import load_artifact
from ..orchestrator.confirm import TransactionResult
from ..orchestrator.factory import ContractFactory, ContractInstance

Options = Mapping[str, Any]
TxResult = Union[str, TransactionResult]


class SGB(NamedTuple):
    sgb_id: int
    latitude: str
    longitude: str
    rate: int
    max: int
    current: int
    owner: str


class Record(NamedTuple):
    record_id: int
    user: str
    sgb_id: int
    waste: int
    message: str


def _opts(options: Optional[Options]) -> Options:
    return options if options is not None else {}


class SGBManager(ContractInstance):
    async def sgb_collection(self, index: int, options: Optional[Options] = None) -> SGB:
        return SGB(*await self.functions["sgbCollection"](index, _opts(options)))

    async def record_collection(self, index: int, options: Optional[Options] = None) -> Record:
        return Record(*await self.functions["recordCollection"](index, _opts(options)))

    async def add_sgb(
        self,
        latitude: str,
        longitude: str,
        rate: int,
        max: int,
        current: int,
        owner: str,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["addSGB"](
            latitude, longitude, rate, max, current, owner, _opts(options), extended=extended
        )

    async def calculate_price(
        self,
        weight: int,
        sgb_id: int,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        # Not declared constant, so this is a transaction; use
        # ``functions["calculatePrice"].call`` to only read the price.
        return await self.functions["calculatePrice"](weight, sgb_id, _opts(options), extended=extended)

    async def add_record(
        self,
        user_address: str,
        sgb_id: int,
        waste: int,
        message: str,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["addRecord"](
            user_address, sgb_id, waste, message, _opts(options), extended=extended
        )


def factory(**kwargs: Any) -> ContractFactory:
    """A fresh SGBManager factory built from the embedded artifact."""
    artifact = load_artifact("SGBManager")
    return ContractFactory(
        artifact["contract_name"],
        artifact["networks"],
        instance_class=SGBManager,
        generated_with=artifact.get("generated_with"),
        **kwargs,
    )
