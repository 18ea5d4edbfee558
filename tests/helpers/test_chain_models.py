"""Tests for JSON-RPC request and chain data models."""

import pytest

from pydantic import ValidationError

from activity_monitor.helpers.models import BlockHeader, RpcBlock, RpcTransaction
from activity_monitor.helpers.rpc_models import (
    EthBlockNumberRequest,
    EthGetBlockByNumberRequest,
    EthSubscribeRequest,
    JsonRpcResponse,
    SubscriptionNotification,
)


WATCHED = "0xabcdefabcdefabcdefabcdefabcdefabcdefabcd"
OTHER = "0x1111111111111111111111111111111111111111"


class TestRequests:
    """Tests for JSON-RPC request models."""

    def test_block_number_request(self) -> None:
        assert EthBlockNumberRequest(id=3).model_dump() == {
            "jsonrpc": "2.0",
            "method": "eth_blockNumber",
            "params": [],
            "id": 3,
        }

    def test_get_block_by_number_request(self) -> None:
        request = EthGetBlockByNumberRequest.for_block(4096, full_transactions=False)

        assert request.method == "eth_getBlockByNumber"
        assert request.params == ["0x1000", False]

    def test_subscribe_request_defaults_to_new_heads(self) -> None:
        assert EthSubscribeRequest(id=1).params == ["newHeads"]


class TestResponses:
    """Tests for JSON-RPC response models."""

    def test_error_response(self) -> None:
        body = JsonRpcResponse.model_validate({
            "jsonrpc": "2.0",
            "id": 1,
            "error": {"code": -32601, "message": "method not found"},
        })

        assert body.result is None
        assert body.error == {"code": -32601, "message": "method not found"}

    def test_subscription_notification(self) -> None:
        notification = SubscriptionNotification.model_validate({
            "jsonrpc": "2.0",
            "method": "eth_subscription",
            "params": {"subscription": "0x9", "result": {"number": "0x1", "hash": "0x2"}},
        })

        header = BlockHeader.model_validate(notification.params.result)
        assert header.block_number == 1

    def test_notification_requires_result(self) -> None:
        with pytest.raises(ValidationError):
            SubscriptionNotification.model_validate({"params": {"subscription": "0x9"}})


class TestRpcTransaction:
    """Tests for RpcTransaction."""

    def test_touches_is_case_insensitive(self) -> None:
        tx = RpcTransaction.model_validate(
            {"hash": "0x1", "from": OTHER, "to": WATCHED.upper().replace("0X", "0x")}
        )

        assert tx.touches(WATCHED)
        assert tx.touches(OTHER.upper().replace("0X", "0x"))
        assert not tx.touches("0x" + "2" * 40)

    def test_contract_creation_matches_sender_only(self) -> None:
        tx = RpcTransaction.model_validate({"hash": "0x1", "from": WATCHED, "to": None})

        assert tx.touches(WATCHED)
        assert not tx.touches(OTHER)

    def test_to_event(self) -> None:
        tx = RpcTransaction.model_validate({
            "hash": "0x1",
            "from": WATCHED.upper().replace("0X", "0x"),
            "to": OTHER,
            "value": "0xde0b6b3a7640000",
            "input": "0x",
        })

        event = tx.to_event(block_number=12, timestamp=1_700_000_000)

        assert event.block_number == 12
        assert event.from_address == WATCHED
        assert event.value_wei == 10**18
        assert event.input_prefix is None


class TestRpcBlock:
    """Tests for RpcBlock."""

    def test_transactions_touching(self) -> None:
        block = RpcBlock.model_validate({
            "number": "0x64",
            "timestamp": "0x10",
            "transactions": [
                {"hash": "0x1", "from": OTHER, "to": WATCHED, "value": "0x1"},
                {"hash": "0x2", "from": OTHER, "to": OTHER, "value": "0x1"},
                {"hash": "0x3", "from": WATCHED, "to": None, "input": "0x6080604052"},
            ],
        })

        events = block.transactions_touching(WATCHED)

        assert [e.hash for e in events] == ["0x1", "0x3"]
        assert all(e.block_number == 100 and e.timestamp == 16 for e in events)
        assert events[1].to_address is None
        assert events[1].input_prefix == "0x6080604052"

    def test_missing_timestamp_defaults_to_zero(self) -> None:
        assert RpcBlock.model_validate({"number": 5}).unix_timestamp == 0
