"""Tests for the node-wallet-ai command line."""

import re
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from solders.keypair import Keypair
from typer.testing import CliRunner

from conftest import SOL
from node_wallet_ai.cli.app import app
from node_wallet_ai.config import load_config

runner = CliRunner()


@pytest.fixture
def workdir(tmp_path):
    result = runner.invoke(app, ["--dir", str(tmp_path), "init", "--name", "CLI Test"])
    assert result.exit_code == 0, result.output
    return tmp_path


def invoke(workdir: Path, *args: str, **kwargs):
    return runner.invoke(app, ["--dir", str(workdir), *args], **kwargs)


class TestInit:
    """Tests for the init command."""

    def test_init_with_provider(self, tmp_path):
        """Test that a provider preset writes an env placeholder key."""
        result = invoke(tmp_path, "init", "--provider", "anthropic", "--cluster", "testnet")

        assert result.exit_code == 0, result.output
        config = load_config(tmp_path / ".node-wallet-ai" / "config.yaml")
        assert config.wallet.cluster == "testnet"
        assert config.llm.anthropic.model == "claude-sonnet-4-5"

    def test_init_unknown_cluster(self, tmp_path):
        """Test that an unknown cluster is rejected."""
        result = invoke(tmp_path, "init", "--cluster", "localnet")
        assert result.exit_code == 1


class TestNodes:
    """Tests for the nodes sub-commands."""

    def test_add_list_grant_delete(self, workdir):
        """Test the node lifecycle from the command line."""
        result = invoke(workdir, "nodes", "add-person", "Alice", "--tag", "friend")
        assert result.exit_code == 0, result.output
        assert "private" in result.output
        node_id = re.search(r"\(([0-9a-f]{12})\)", result.output).group(1)

        result = invoke(workdir, "nodes", "list", "--type", "person")
        assert "Alice" in result.output

        result = invoke(workdir, "nodes", "grant", node_id)
        assert result.exit_code == 0, result.output
        assert "now visible to" in result.output

        result = invoke(workdir, "nodes", "list", "--shared")
        assert "Alice" in result.output

        result = invoke(workdir, "nodes", "delete", node_id, "--yes")
        assert result.exit_code == 0, result.output

        result = invoke(workdir, "nodes", "list")
        assert "No nodes found" in result.output

    def test_grant_unknown(self, workdir):
        """Test that granting a missing node fails."""
        result = invoke(workdir, "nodes", "grant", "does-not-exist")
        assert result.exit_code == 1

    def test_add_event_bad_date(self, workdir):
        """Test that validation errors are reported."""
        result = invoke(workdir, "nodes", "add-event", "Party", "--date", "someday")
        assert result.exit_code == 1
        assert "Could not create event" in result.output


class TestMisc:
    """Tests for tools, ask and wallet validate."""

    def test_tools_table(self, workdir):
        """Test that the catalogue is listed."""
        result = invoke(workdir, "tools")
        assert result.exit_code == 0, result.output
        assert "create_sol_transfer" in result.output

    def test_ask_shows_interpretation(self, workdir):
        """Test that ask prints the parsed intent."""
        result = invoke(workdir, "ask", "check my balance")
        assert result.exit_code == 0, result.output
        assert "get_balance" in result.output
        assert "0.90" in result.output

    def test_wallet_validate(self, workdir):
        """Test address validation from the command line."""
        good = invoke(workdir, "wallet", "validate", str(Keypair().pubkey()))
        bad = invoke(workdir, "wallet", "validate", "nope")

        assert good.exit_code == 0
        assert bad.exit_code == 1

    def test_wallet_new(self, workdir):
        """Test keypair generation and the overwrite guard."""
        first = invoke(workdir, "wallet", "new")
        second = invoke(workdir, "wallet", "new")

        assert first.exit_code == 0, first.output
        assert (workdir / ".node-wallet-ai" / "wallet.json").exists()
        assert second.exit_code == 1


class TestWalletSend:
    """Tests for the human-initiated send command."""

    @pytest.mark.parametrize("amount", ["nan", "inf", "abc"])
    def test_rejects_non_finite_amounts(self, workdir, amount):
        """Test that unusable amounts exit cleanly before touching the wallet."""
        with patch("node_wallet_ai.cli.app._wallet_call") as wallet_call:
            result = invoke(workdir, "wallet", "send", amount, "--to", str(Keypair().pubkey()))

        assert result.exit_code == 1
        assert "Invalid amount" in result.output
        wallet_call.assert_not_called()

    def test_declined_confirmation_never_sends(self, workdir):
        """Test that confirmation happens between the quote and the transfer."""
        recipient = Keypair().pubkey()
        quote = MagicMock(fee_lamports=5000, balance=2 * SOL, sufficient=True)
        with patch("node_wallet_ai.cli.app._wallet_call", return_value=(recipient, None, quote)) as wallet_call:
            result = invoke(workdir, "wallet", "send", "0.5", "--to", str(recipient), input="n\n")

        assert result.exit_code == 1
        assert "Confirm this transaction?" in result.output
        assert wallet_call.call_count == 1

    def test_confirmed_send(self, workdir):
        """Test that a confirmed send runs the transfer step and shows the signature."""
        recipient = Keypair().pubkey()
        quote = MagicMock(fee_lamports=5000, balance=2 * SOL, sufficient=True)
        with patch(
            "node_wallet_ai.cli.app._wallet_call",
            side_effect=[(recipient, None, quote), ("sig123", "https://explorer/tx/sig123")],
        ) as wallet_call:
            result = invoke(workdir, "wallet", "send", "0.5", "--to", str(recipient), "--yes")

        assert result.exit_code == 0, result.output
        assert "sig123" in result.output
        assert wallet_call.call_count == 2
