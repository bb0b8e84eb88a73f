"""
Typed bindings, one module per contract.

Each module exposes the instance class and a ``factory()`` that builds a new
ContractFactory from the embedded artifact.
"""

from . import comdao, sgb_manager
from .comdao import ComDAO, Member, Proposal
from .sgb_manager import SGB, Record, SGBManager

FACTORIES = {
    "ComDAO": comdao.factory,
    "SGBManager": sgb_manager.factory,
}


def build_factory(contract_name, settings=None, transport=None):
    """
    Factory for ``contract_name`` configured from ``Settings``.

    Applies the timeout, poll interval, extended-results flag, default sender
    and explicit network id; attaches ``transport`` when given.
    """
    try:
        make = FACTORIES[contract_name]
    except KeyError:
        raise ValueError(
            f"Unknown contract {contract_name!r}. Available: {', '.join(sorted(FACTORIES))}"
        ) from None

    if settings is None:
        return make(transport=transport)

    contract = make(
        defaults=settings.default_options(),
        synchronization_timeout=settings.synchronization_timeout,
        poll_interval=settings.poll_interval,
        extended_results=settings.extended_results,
        transport=transport,
    )
    if settings.network_id:
        contract.set_network(settings.network_id)
    return contract
