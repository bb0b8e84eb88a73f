"""
ComDAO bindings.

Congress-style DAO: members vote on proposals, voting rules are set by the
owner, and it inherits the SGB registry from SGBManager.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional

from ..artifacts import load_artifact
from ..orchestrator.factory import ContractFactory
from .sgb_manager import Options, SGBManager, TxResult, _opts


class Proposal(NamedTuple):
    recipient: str
    amount: int
    description: str
    voting_deadline: int
    executed: bool
    proposal_passed: bool
    number_of_votes: int
    current_result: int
    proposal_hash: bytes


class Member(NamedTuple):
    member: str
    name: str
    member_since: int


class ComDAO(SGBManager):
    # ---- reads ----

    async def proposals(self, index: int, options: Optional[Options] = None) -> Proposal:
        return Proposal(*await self.functions["proposals"](index, _opts(options)))

    async def members(self, index: int, options: Optional[Options] = None) -> Member:
        return Member(*await self.functions["members"](index, _opts(options)))

    async def member_id(self, member: str, options: Optional[Options] = None) -> int:
        return await self.functions["memberId"](member, _opts(options))

    async def num_proposals(self, options: Optional[Options] = None) -> int:
        return await self.functions["numProposals"](_opts(options))

    async def debating_period_in_minutes(self, options: Optional[Options] = None) -> int:
        return await self.functions["debatingPeriodInMinutes"](_opts(options))

    async def minimum_quorum(self, options: Optional[Options] = None) -> int:
        return await self.functions["minimumQuorum"](_opts(options))

    async def majority_margin(self, options: Optional[Options] = None) -> int:
        return await self.functions["majorityMargin"](_opts(options))

    async def owner(self, options: Optional[Options] = None) -> str:
        return await self.functions["owner"](_opts(options))

    async def check_proposal_code(
        self,
        proposal_number: int,
        beneficiary: str,
        ether_amount: int,
        transaction_bytecode: bytes,
        options: Optional[Options] = None,
    ) -> bool:
        return await self.functions["checkProposalCode"](
            proposal_number, beneficiary, ether_amount, transaction_bytecode, _opts(options)
        )

    # ---- transactions ----

    async def add_member(
        self,
        target_member: str,
        member_name: str,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["addMember"](target_member, member_name, _opts(options), extended=extended)

    async def remove_member(
        self, target_member: str, options: Optional[Options] = None, extended: Optional[bool] = None
    ) -> TxResult:
        return await self.functions["removeMember"](target_member, _opts(options), extended=extended)

    async def change_voting_rules(
        self,
        minimum_quorum_for_proposals: int,
        minutes_for_debate: int,
        margin_of_votes_for_majority: int,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["changeVotingRules"](
            minimum_quorum_for_proposals,
            minutes_for_debate,
            margin_of_votes_for_majority,
            _opts(options),
            extended=extended,
        )

    async def new_proposal(
        self,
        beneficiary: str,
        ether_amount: int,
        job_description: str,
        transaction_bytecode: bytes,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["newProposal"](
            beneficiary, ether_amount, job_description, transaction_bytecode, _opts(options), extended=extended
        )

    async def vote(
        self,
        proposal_number: int,
        supports_proposal: bool,
        justification_text: str,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["vote"](
            proposal_number, supports_proposal, justification_text, _opts(options), extended=extended
        )

    async def execute_proposal(
        self,
        proposal_number: int,
        transaction_bytecode: bytes,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["executeProposal"](
            proposal_number, transaction_bytecode, _opts(options), extended=extended
        )

    async def receive_approval(
        self,
        from_address: str,
        value: int,
        token: str,
        extra_data: bytes,
        options: Optional[Options] = None,
        extended: Optional[bool] = None,
    ) -> TxResult:
        return await self.functions["receiveApproval"](
            from_address, value, token, extra_data, _opts(options), extended=extended
        )

    async def transfer_ownership(
        self, new_owner: str, options: Optional[Options] = None, extended: Optional[bool] = None
    ) -> TxResult:
        return await self.functions["transferOwnership"](new_owner, _opts(options), extended=extended)


def factory(**kwargs: Any) -> ContractFactory:
    """A fresh ComDAO factory built from the embedded artifact."""
    artifact = load_artifact("ComDAO")
    return ContractFactory(
        artifact["contract_name"],
        artifact["networks"],
        instance_class=ComDAO,
        generated_with=artifact.get("generated_with"),
        **kwargs,
    )
