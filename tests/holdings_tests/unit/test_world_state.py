"""
Tests for the world state: value transfers, snapshots and message dispatch.
"""

import pytest

from holdings.core import config
from holdings.core.contracts import ERC721Token
from holdings.core.vm.abi import encode_call
from holdings.core.vm.contract import NULL_ADDRESS
from holdings.core.vm.exceptions import (
    CallDepthExceededError,
    InsufficientFundsError,
    NotPayableError,
    VMExecutionError,
)
from holdings.core.vm.state import WorldState


ALICE = "0x" + "aa" * 20
BOB = "0x" + "bb" * 20


class TestValueTransfers:
    def test_fund_and_transfer(self):
        world = WorldState()
        world.fund(ALICE, 50)
        world.transfer_value(ALICE, BOB, 20)
        assert world.balance_of(ALICE) == 30
        assert world.balance_of(BOB) == 20

    def test_addresses_are_case_insensitive(self):
        world = WorldState()
        world.fund(ALICE.upper().replace("0X", "0x"), 5)
        assert world.balance_of(ALICE) == 5

    def test_insufficient_funds(self):
        world = WorldState()
        world.fund(ALICE, 1)
        with pytest.raises(InsufficientFundsError):
            world.transfer_value(ALICE, BOB, 2)
        assert world.balance_of(ALICE) == 1

    def test_invalid_amounts_and_targets(self):
        world = WorldState()
        world.fund(ALICE, 10)
        with pytest.raises(VMExecutionError):
            world.fund(ALICE, -1)
        with pytest.raises(VMExecutionError):
            world.transfer_value(ALICE, BOB, -1)
        with pytest.raises(VMExecutionError):
            world.transfer_value(ALICE, NULL_ADDRESS, 1)

    def test_zero_transfer_is_a_noop(self):
        world = WorldState()
        world.transfer_value(ALICE, NULL_ADDRESS, 0)
        assert world.balances == {}


class TestDeploy:
    def test_deploy_registers_contract(self, message):
        world = message.world
        assert world.get_contract(message.address) is message
        assert world.is_contract(message.address)
        assert message.address.startswith("0x") and len(message.address) == 42

    def test_duplicate_address_rejected(self, world, message):
        with pytest.raises(VMExecutionError):
            ERC721Token(world=world, address=message.address)

    def test_null_address_rejected(self, world):
        with pytest.raises(VMExecutionError):
            ERC721Token(world=world, address=NULL_ADDRESS)


class TestSnapshots:
    def test_restore_balances_storage_and_logs(self, world, avatars, accounts):
        world.fund(ALICE, 10)
        snapshot = world.snapshot()

        world.transfer_value(ALICE, BOB, 4)
        avatars.mint(accounts.creator, BOB, 7)
        world.restore(snapshot)

        assert world.balance_of(ALICE) == 10
        assert world.balance_of(BOB) == 0
        assert not avatars.exists(7)
        assert len(world.logs) == snapshot["log_length"]

    def test_event_history_is_truncated_not_copied(self, world, avatars, accounts):
        events = avatars.events
        kept = list(events)
        snapshot = avatars.snapshot()

        assert "events" not in snapshot["storage"]
        assert snapshot["event_count"] == len(kept)

        avatars.mint(accounts.creator, BOB, 7)
        avatars.restore(snapshot)

        assert avatars.events is events
        assert avatars.events == kept

    def test_restore_drops_contracts_deployed_later(self, world):
        snapshot = world.snapshot()
        late = ERC721Token(world=world, symbol="LATE")
        world.restore(snapshot)
        assert not world.is_contract(late.address)

    def test_atomic_reraises_and_restores(self, world):
        world.fund(ALICE, 10)
        with pytest.raises(RuntimeError):
            with world.atomic():
                world.transfer_value(ALICE, BOB, 10)
                raise RuntimeError("boom")
        assert world.balance_of(ALICE) == 10


class TestMessageCalls:
    def test_call_to_account_moves_value(self, world):
        world.fund(ALICE, 10)
        result = world.execute(ALICE, BOB, value=3)
        assert result.success
        assert result.return_value is None
        assert world.balance_of(BOB) == 3

    def test_unknown_method(self, world, message):
        result = world.execute(ALICE, message.address, encode_call("nope"))
        assert not result.success
        assert result.error_type == "UnknownMethodError"

    def test_private_methods_are_not_reachable(self, world, token):
        result = world.execute(ALICE, token.address, encode_call("_decrement_balance", 1))
        assert result.error_type == "UnknownMethodError"

    def test_undecorated_methods_are_not_reachable(self, world, token):
        result = world.execute(ALICE, token.address, encode_call("verify_invariants"))
        assert result.error_type == "UnknownMethodError"

    def test_value_to_non_payable_method(self, world, message):
        world.fund(ALICE, 10)
        result = world.execute(ALICE, message.address, encode_call("show_message", "a", 1, "x"), value=1)
        assert result.error_type == "NotPayableError"
        assert world.balance_of(ALICE) == 10

    def test_value_with_empty_calldata_needs_receive(self, world, message):
        world.fund(ALICE, 10)
        with pytest.raises(NotPayableError):
            world.call(ALICE, message.address, b"", 1)
        assert world.balance_of(ALICE) == 10

    def test_bad_arguments_are_trapped(self, world, message):
        result = world.execute(ALICE, message.address, encode_call("show_message", "only-one-arg"))
        assert not result.success
        assert result.error_type == "VMExecutionError"
        assert "trapped" in result.error

    def test_depth_is_released(self, world, message):
        world.execute(ALICE, message.address, encode_call("fail"))
        assert world.depth == 0

    @pytest.mark.parametrize(
        "data, error_type",
        [
            (encode_call("divide", 1, 0), "ZeroDivisionError"),
            (encode_call("pick", 5), "IndexError"),
        ],
        ids=["zero-division", "index"],
    )
    def test_contract_crashes_are_trapped(self, world, message, data, error_type):
        snapshot = world.snapshot()

        with pytest.raises(VMExecutionError) as excinfo:
            world.call(ALICE, message.address, data)

        assert excinfo.value.details["error_type"] == error_type
        assert type(excinfo.value.__cause__).__name__ == error_type
        assert message.messages == {}
        assert world.snapshot() == snapshot
        assert world.depth == 0

    def test_contract_crash_reverts_transaction(self, world, message):
        world.fund(ALICE, 10)
        result = world.execute(ALICE, message.address, encode_call("divide", 3, 0))

        assert not result.success
        assert result.error_type == "VMExecutionError"
        assert "trapped" in result.error
        assert world.balance_of(ALICE) == 10
        assert message.messages == {}


class TestCallDepth:
    def test_default_limit_is_reached_before_the_interpreter_limit(self, world, message):
        assert world.max_call_depth == config.MAX_CALL_DEPTH == 64

        result = world.execute(ALICE, message.address, encode_call("recurse"))

        assert not result.success
        assert result.error_type == "CallDepthExceededError"
        assert "64" in result.error
        assert world.depth == 0

    def test_small_limit(self, message):
        world = WorldState(max_call_depth=3)
        world.deploy(message)
        with pytest.raises(CallDepthExceededError) as excinfo:
            world.call(ALICE, message.address, encode_call("recurse"))
        assert excinfo.value.details == {"depth": 3}

    def test_interpreter_stack_exhaustion_is_a_depth_error(self, world, message):
        result = world.execute(ALICE, message.address, encode_call("overflow_stack"))

        assert not result.success
        assert result.error_type == "CallDepthExceededError"
        assert world.depth == 0
