"""
Metadata Storage CLI Tests.

============================================================
PURPOSE
============================================================
Tests for argument parsing, validation, configuration and the
commands, run in dry-run mode against the in-memory ledger.

TEST CATEGORIES:
- Parser
- Argument validation
- Configuration building
- Commands (exit codes and output)
- Approval prompts

============================================================
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from solders.keypair import Keypair

from chain_client import LAMPORTS_PER_SOL, Cluster
from metadata_storage import cli
from metadata_storage.cli import (
    EXIT_FAILED,
    EXIT_OK,
    EXIT_USAGE,
    approval_callback,
    build_config,
    create_parser,
    main,
    prompt_approval,
    validate_args,
)
from wallet import save_keypair


ENV_VARS = [
    "SOLANA_CLUSTER",
    "SOLANA_RPC_URL",
    "SOLANA_COMMITMENT",
    "SOLANA_KEYPAIR_PATH",
    "METADATA_HISTORY_LIMIT",
    "METADATA_HISTORY_MAX_PAGES",
    "METADATA_RECORD_FORMAT",
    "MEMO_PROGRAM_ID",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    """Clean environment, empty home and working directory, no log setup."""
    for name in ENV_VARS:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(cli, "setup_logging", MagicMock())
    return tmp_path


@pytest.fixture
def keypair_file(tmp_path):
    keypair = Keypair()
    path = save_keypair(keypair, tmp_path / "id.json")
    return keypair, path


# ============================================================
# PARSER TESTS
# ============================================================

class TestParser:
    """Tests for create_parser."""

    def test_store_defaults(self):
        args = create_parser().parse_args(["store", "--content", "hello"])

        assert args.command == "store"
        assert args.content == "hello"
        assert args.type == "text"
        assert args.repair_attempts == 1
        assert args.output == "text"
        assert args.dry_run is False

    def test_global_options(self):
        args = create_parser().parse_args([
            "--cluster", "testnet",
            "--dry-run",
            "--output", "json",
            "retrieve", "addr",
            "--history-limit", "5",
        ])

        assert args.cluster == "testnet"
        assert args.dry_run is True
        assert args.output == "json"
        assert args.address == "addr"
        assert args.history_limit == 5

    def test_store_source_required(self):
        """Test store needs exactly one of --content and --file."""
        parser = create_parser()

        with pytest.raises(SystemExit):
            parser.parse_args(["store"])
        with pytest.raises(SystemExit):
            parser.parse_args(["store", "--content", "a", "--file", "b"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])

    def test_unknown_cluster(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args(["--cluster", "moonnet", "wallet"])


# ============================================================
# VALIDATION TESTS
# ============================================================

class TestValidateArgs:
    """Tests for validate_args."""

    @pytest.mark.parametrize("argv,message", [
        (["store", "--content", "x", "--repair-attempts", "-1"], "--repair-attempts"),
        (["retrieve", "addr", "--history-limit", "0"], "--history-limit"),
        (["retrieve", "addr", "--history-limit", "1001"], "--history-limit"),
        (["retrieve", "addr", "--max-pages", "0"], "--max-pages"),
        (["airdrop", "--sol", "0"], "--sol"),
        (["serve", "--port", "70000"], "--port"),
    ])
    def test_invalid(self, argv, message):
        errors = validate_args(create_parser().parse_args(argv))

        assert len(errors) == 1
        assert message in errors[0]

    def test_valid(self):
        assert validate_args(create_parser().parse_args(["retrieve", "addr", "--max-pages", "3"])) == []


# ============================================================
# CONFIGURATION TESTS
# ============================================================

class TestBuildConfig:
    """Tests for build_config."""

    def test_flags_override_environment(self, monkeypatch):
        monkeypatch.setenv("SOLANA_CLUSTER", "devnet")
        args = create_parser().parse_args([
            "--cluster", "testnet",
            "--rpc-url", "https://rpc.example.org",
            "--keypair", "/keys/id.json",
            "--log-level", "DEBUG",
            "retrieve", "addr",
            "--history-limit", "5",
            "--max-pages", "2",
        ])

        config = build_config(args)

        assert config.network.cluster == Cluster.TESTNET
        assert config.network.rpc_url == "https://rpc.example.org"
        assert config.wallet.keypair_path == "/keys/id.json"
        assert config.log_level == "DEBUG"
        assert config.retrieval.history_limit == 5
        assert config.retrieval.history_max_pages == 2

    def test_environment_used_without_flags(self, monkeypatch):
        monkeypatch.setenv("SOLANA_CLUSTER", "testnet")

        config = build_config(create_parser().parse_args(["wallet"]))

        assert config.network.cluster == Cluster.TESTNET
        assert config.dry_run is False


# ============================================================
# COMMAND TESTS
# ============================================================

class TestCommands:
    """Tests for main() in dry-run mode."""

    def test_usage_error_exit_code(self, capsys):
        assert main(["retrieve", "addr", "--max-pages", "0"]) == EXIT_USAGE
        assert "--max-pages" in capsys.readouterr().err

    def test_configuration_error_exit_code(self, monkeypatch, capsys):
        monkeypatch.setenv("METADATA_RECORD_FORMAT", "xml")

        assert main(["--dry-run", "wallet"]) == EXIT_USAGE
        assert "record_format" in capsys.readouterr().err

    def test_missing_file_exit_code(self, capsys):
        assert main(["--dry-run", "store", "--file", "absent.json"]) == EXIT_USAGE
        assert "file not found" in capsys.readouterr().err

    def test_store_file_not_utf8(self, capsys, tmp_path):
        """Test a payload file that is not UTF-8 fails with a message."""
        path = tmp_path / "payload.bin"
        path.write_bytes(b"\xff\xfe\xfa")

        code = main(["--dry-run", "store", "--file", str(path)])

        assert code == EXIT_FAILED
        assert "as UTF-8 text" in capsys.readouterr().err

    def test_store(self, capsys):
        assert main(["--dry-run", "store", "--content", "hello"]) == EXIT_OK

        out = capsys.readouterr().out
        assert "Metadata stored successfully!" in out
        assert "Account:" in out

    def test_store_json_output(self, capsys, tmp_path):
        path = tmp_path / "meta.json"
        path.write_text('{"name": "test"}', encoding="utf-8")

        code = main(["--dry-run", "--output", "json", "store", "--file", str(path), "--type", "json"])

        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["content"] == '{"name": "test"}'
        assert data["transaction_signature"] != data["memo_signature"]

    def test_store_invalid_json(self, capsys):
        code = main(["--dry-run", "store", "--content", "{", "--type", "json"])

        assert code == EXIT_FAILED
        assert "Invalid JSON format" in capsys.readouterr().err

    def test_store_without_wallet(self, capsys):
        """Test a live store with no keypair fails before any request."""
        with patch("chain_client.providers.solana_rpc.SolanaRpcClient._make_request") as request:
            code = main(["store", "--content", "hello"])

        assert code == EXIT_FAILED
        assert "Wallet not found" in capsys.readouterr().err
        request.assert_not_called()

    def test_retrieve_missing_account(self, capsys):
        code = main(["--dry-run", "retrieve", str(Keypair().pubkey())])

        assert code == EXIT_FAILED
        assert "Account not found" in capsys.readouterr().err

    def test_retrieve_invalid_address(self, capsys):
        code = main(["--dry-run", "retrieve", "not-an-address"])

        assert code == EXIT_FAILED
        assert "Invalid account address" in capsys.readouterr().err

    def test_wallet(self, capsys, keypair_file):
        keypair, path = keypair_file

        code = main(["--dry-run", "--keypair", str(path), "--output", "json", "wallet"])

        assert code == EXIT_OK
        data = json.loads(capsys.readouterr().out)
        assert data["address"] == str(keypair.pubkey())
        assert data["lamports"] == 10 * LAMPORTS_PER_SOL

    def test_airdrop(self, capsys, keypair_file):
        _, path = keypair_file

        code = main(["--dry-run", "--keypair", str(path), "--output", "json", "airdrop", "--sol", "1"])

        assert code == EXIT_OK
        assert json.loads(capsys.readouterr().out)["lamports"] == 11 * LAMPORTS_PER_SOL

    def test_serve(self):
        """Test serve hands an application factory to aiohttp."""
        run_app = MagicMock(side_effect=lambda app, **kwargs: app.close())

        with patch.object(cli.web, "run_app", run_app):
            code = main(["--dry-run", "serve", "--port", "9000"])

        assert code == EXIT_OK
        assert run_app.call_args.kwargs["port"] == 9000


# ============================================================
# APPROVAL TESTS
# ============================================================

class TestApproval:
    """Tests for terminal approval prompts."""

    @pytest.mark.parametrize("answer,expected", [("y", True), ("YES", True), ("", False), ("n", False)])
    def test_prompt_approval(self, answer, expected):
        with patch("builtins.input", return_value=answer):
            assert prompt_approval("sign", "1 instruction(s)") is expected

    def test_callback_only_when_required(self):
        parser = create_parser()

        args = parser.parse_args(["store", "--content", "x"])
        assert approval_callback(args, build_config(args)) is None

        args = parser.parse_args(["--require-approval", "store", "--content", "x"])
        assert approval_callback(args, build_config(args)) is not None

        args = parser.parse_args(["--require-approval", "store", "--content", "x", "--yes"])
        assert approval_callback(args, build_config(args)) is None
