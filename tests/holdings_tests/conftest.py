"""
Shared fixtures for holdings registry tests.

Layout built by the fixtures:
- avatars: basic ERC721 collection, avatars 1 and 2 owned by ``creator``
- token: holdings token, tokens 1 and 2 held by avatar 1
- message / receiver: recipient contracts for forwarded calls
"""

from __future__ import annotations

from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import ClassVar

import pytest

from holdings.core.contracts import (
    ERC721HoldingsBasicToken,
    ERC721HoldingsToken,
    ERC721Token,
)
from holdings.core.vm.abi import encode_call
from holdings.core.vm.contract import Contract, ContractEvent, external, payable
from holdings.core.vm.exceptions import VMExecutionError
from holdings.core.vm.state import WorldState


@dataclass(frozen=True)
class MessageShown(ContractEvent):
    EVENT_NAME: ClassVar[str] = "Show"

    message_id: str
    code: int
    text: str


@dataclass
class MessageHelper(Contract):
    """Recipient with payable, non-payable, failing, crashing and recursive methods."""

    messages: dict[str, str] = field(default_factory=dict)

    @external
    def show_message(self, caller: str, message_id: str, code: int, text: str) -> bool:
        self.messages[message_id] = text
        self.emit(MessageShown(message_id=message_id, code=code, text=text))
        return True

    @external
    @payable
    def buy_message(
        self, caller: str, message_id: str, code: int, text: str, value: int = 0
    ) -> bool:
        self.messages[message_id] = text
        self.emit(MessageShown(message_id=message_id, code=code, text=text))
        return True

    @external
    def fail(self, caller: str) -> bool:
        raise VMExecutionError("MessageHelper: fail")

    @external
    def reject(self, caller: str) -> bool:
        return False

    @external
    def divide(self, caller: str, numerator: int, denominator: int) -> int:
        self.messages["divide"] = str(numerator)
        return numerator // denominator

    @external
    def pick(self, caller: str, index: int) -> str:
        return sorted(self.messages)[index]

    @external
    def recurse(self, caller: str) -> object:
        # Calls itself until the world refuses to go deeper
        return self.world.call(self.address, self.address, encode_call("recurse"))

    @external
    def overflow_stack(self, caller: str) -> bool:
        raise RecursionError("maximum recursion depth exceeded")


@dataclass
class ReentrantReceiver(Contract):
    """Recipient that reads from or calls back into a token while being called."""

    token_address: str = ""
    observed: list = field(default_factory=list)

    @external
    def observe(self, caller: str, token_id: int) -> bool:
        token = self.world.get_contract(self.token_address)
        self.observed.append(
            (caller, token.holder_of(token_id), token.get_approved(token_id))
        )
        return True

    @external
    @payable
    def reenter(self, caller: str, data: bytes, value: int = 0) -> object:
        # Calls the token with this contract as the sender
        return self.world.call(self.address, self.token_address, data)

    @external
    def reenter_and_revert(self, caller: str, data: bytes) -> bool:
        self.world.call(self.address, self.token_address, data)
        raise VMExecutionError("ReentrantReceiver: revert after reentry")


@pytest.fixture
def accounts():
    return SimpleNamespace(
        creator="0x" + "11" * 20,
        approved="0x" + "22" * 20,
        operator="0x" + "33" * 20,
        stranger="0x" + "44" * 20,
        buyer="0x" + "55" * 20,
    )


@pytest.fixture
def world():
    return WorldState()


@pytest.fixture
def avatars(world, accounts):
    collection = ERC721Token(world=world, name="Avatars", symbol="AVT", owner=accounts.creator)
    collection.mint(accounts.creator, accounts.creator, 1)
    collection.mint(accounts.creator, accounts.creator, 2)
    return collection


@pytest.fixture(params=[ERC721HoldingsBasicToken, ERC721HoldingsToken], ids=["basic", "calls"])
def token(request, world, avatars, accounts):
    """Both holdings variants must behave identically for the basic operations."""
    holdings = request.param(world=world, name="Holdings", symbol="HLD", allow_remint=False)
    holdings.mint(accounts.creator, 1, avatars.address, 1)
    holdings.mint(accounts.creator, 1, avatars.address, 2)
    return holdings


@pytest.fixture
def calls_token(world, avatars, accounts):
    holdings = ERC721HoldingsToken(world=world, name="Holdings", symbol="HLDC", allow_remint=False)
    holdings.mint(accounts.creator, 1, avatars.address, 1)
    holdings.mint(accounts.creator, 1, avatars.address, 2)
    return holdings


@pytest.fixture
def message(world):
    return MessageHelper(world=world)


@pytest.fixture
def receiver(world, calls_token):
    return ReentrantReceiver(world=world, token_address=calls_token.address)
