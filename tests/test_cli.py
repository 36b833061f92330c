"""
tests/test_cli.py

fusionswap CLI: hash, quote, premium, verify.
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from fusionswap.cli import cli
from fusionswap.core.crypto import Ed25519KeyManager
from fusionswap.core.journal import EventType, SettlementJournal
from fusionswap.core.models import AuctionData, FeeConfig

from conftest import MAKER, NOW, TAKER


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def order(make_order):
    return make_order(
        fee=FeeConfig(max_cancellation_premium=1_000),
        cancellation_auction_duration=100,
        dutch_auction_data=AuctionData(start_time=NOW, duration=600, initial_rate_bump=50_000),
    )


@pytest.fixture
def order_json(order, tmp_path):
    path = tmp_path / "order.json"
    path.write_text(json.dumps(order.to_dict()), encoding="utf-8")
    return str(path)


@pytest.fixture
def order_yaml(order, tmp_path):
    path = tmp_path / "order.yaml"
    path.write_text(yaml.safe_dump(order.to_dict()), encoding="utf-8")
    return str(path)


class TestHash:

    def test_json_and_yaml_agree(self, runner, order, order_json, order_yaml):
        for path in (order_json, order_yaml):
            result = runner.invoke(cli, ["hash", path, "--format", "json"])
            assert result.exit_code == 0, result.output
            assert json.loads(result.output)["order_hash"] == order.hash_hex()

    def test_escrow_address_for_maker(self, runner, engine, order, order_json):
        result = runner.invoke(cli, ["hash", order_json, "--maker", MAKER, "--format", "json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["escrow_address"] == engine.escrow_address(MAKER, order)

    def test_invalid_order(self, runner, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"id": 1}), encoding="utf-8")
        result = runner.invoke(cli, ["hash", str(path), "--format", "json"])
        assert result.exit_code == 2
        assert "src_amount" in json.loads(result.output)["error"]


class TestQuote:

    def test_quote_at_start(self, runner, order_json):
        result = runner.invoke(cli, ["quote", order_json, "--at", str(NOW), "--format", "json"])
        assert result.exit_code == 0, result.output
        quote = json.loads(result.output)
        assert quote["rate_bump"] == 50_000
        assert quote["dst_amount"] == 3_000_000

    def test_partial_after_auction(self, runner, order_json):
        result = runner.invoke(cli, [
            "quote", order_json, "--amount", "500000", "--at", str(NOW + 600), "--format", "json",
        ])
        assert json.loads(result.output)["dst_amount"] == 1_000_000

    def test_baseline_override(self, runner, tmp_path, make_order):
        path = tmp_path / "order.json"
        path.write_text(json.dumps(
            make_order(min_dst_amount=1_000_000, estimated_dst_amount=2_000_000).to_dict()
        ), encoding="utf-8")
        result = runner.invoke(cli, [
            "quote", str(path), "--at", str(NOW + 600), "--baseline", "estimated_dst", "--format", "json",
        ])
        assert json.loads(result.output)["dst_amount"] == 2_000_000

    def test_human_output(self, runner, order_json):
        result = runner.invoke(cli, ["quote", order_json, "--at", str(NOW)])
        assert result.exit_code == 0
        assert "maker_amount" in result.output


class TestPremium:

    def test_premium_after_expiry(self, runner, order, order_json):
        at = order.expiration_time + 50
        result = runner.invoke(cli, ["premium", order_json, "--at", str(at), "--format", "json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["premium"] == 500

    def test_premium_before_expiry(self, runner, order, order_json):
        result = runner.invoke(cli, [
            "premium", order_json, "--at", str(order.expiration_time), "--format", "json",
        ])
        assert result.exit_code == 2


class TestVerify:

    def _journal(self, tmp_path):
        journal = SettlementJournal(Ed25519KeyManager.generate(), journal_path=str(tmp_path))
        journal.emit(EventType.REGISTRY_INITIALIZED, {"authority": MAKER})
        journal.emit(EventType.RESOLVER_REGISTERED, {"user": TAKER, "bump": 255})
        return journal.path

    def test_valid(self, runner, tmp_path):
        result = runner.invoke(cli, ["verify", str(self._journal(tmp_path)), "--format", "json"])
        assert result.exit_code == 0, result.output
        report = json.loads(result.output)
        assert report["is_valid"]
        assert report["total_entries"] == 2
        assert len(report["head_hash"]) == 64

    def test_tampered(self, runner, tmp_path):
        path  = self._journal(tmp_path)
        lines = path.read_text(encoding="utf-8").splitlines()
        row   = json.loads(lines[0])
        row["payload"]["authority"] = TAKER
        lines[0] = json.dumps(row)
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")

        result = runner.invoke(cli, ["verify", str(path), "--quiet"])
        assert result.exit_code == 1

    def test_missing_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["verify", str(tmp_path / "nope.jsonl")])
        assert result.exit_code == 2

    def test_human_output(self, runner, tmp_path):
        result = runner.invoke(cli, ["verify", str(self._journal(tmp_path))])
        assert result.exit_code == 0
        assert "VALID" in result.output
