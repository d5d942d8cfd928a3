"""
Tests for holdings Prometheus counters.
"""

from prometheus_client import REGISTRY

from holdings.core.vm.abi import encode_call


def _sample(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLedgerCounters:
    def test_mint_and_burn(self, calls_token, avatars, accounts):
        minted = _sample("holdings_tokens_minted_total", collection="HLDC")
        burned = _sample("holdings_tokens_burned_total", collection="HLDC")

        calls_token.mint(accounts.creator, 2, avatars.address, 3)
        calls_token.burn(accounts.creator, 3)

        assert _sample("holdings_tokens_minted_total", collection="HLDC") == minted + 1
        assert _sample("holdings_tokens_burned_total", collection="HLDC") == burned + 1

    def test_transfer_kinds(self, calls_token, avatars, accounts):
        moved = _sample("holdings_token_transfers_total", collection="HLDC", kind="holder_change")
        stayed = _sample("holdings_token_transfers_total", collection="HLDC", kind="self")

        calls_token.transfer_from(accounts.creator, 1, avatars.address, 2, avatars.address, 1)
        calls_token.transfer_from(accounts.creator, 1, avatars.address, 1, avatars.address, 2)

        assert _sample(
            "holdings_token_transfers_total", collection="HLDC", kind="holder_change"
        ) == moved + 1
        assert _sample("holdings_token_transfers_total", collection="HLDC", kind="self") == stayed + 1

    def test_approvals_count_only_changes(self, calls_token, accounts):
        before = _sample("holdings_approvals_total", collection="HLDC", scope="token")

        calls_token.approve(accounts.creator, accounts.approved, 1)
        calls_token.approve(accounts.creator, accounts.approved, 1)

        assert _sample("holdings_approvals_total", collection="HLDC", scope="token") == before + 1


class TestForwardedCallCounters:
    def test_outcomes(self, world, calls_token, message, accounts):
        labels = {"collection": "HLDC", "operation": "approve_and_call"}
        ok = _sample("holdings_forwarded_calls_total", outcome="success", **labels)
        failed = _sample("holdings_forwarded_calls_total", outcome="failure", **labels)

        world.execute(
            accounts.creator,
            calls_token.address,
            encode_call("approve_and_call", message.address, 1, encode_call("show_message", "a", 1, "x")),
        )
        world.execute(
            accounts.creator,
            calls_token.address,
            encode_call("approve_and_call", message.address, 2, encode_call("fail")),
        )

        assert _sample("holdings_forwarded_calls_total", outcome="success", **labels) == ok + 1
        assert _sample("holdings_forwarded_calls_total", outcome="failure", **labels) == failed + 1
