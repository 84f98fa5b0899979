"""Tests for the command-line interface."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

from dropship_ops.cli import create_example_candidate, main
from dropship_ops.config import Settings
from dropship_ops.services.price_sync import PriceSyncResult


class TestCli:
    """Tests for dropship-ops commands."""

    def test_example_outputs_candidate_json(self, capsys):
        """example prints a listing that parses back."""
        assert main(["example"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["identifier"] == create_example_candidate().identifier
        assert data["is_prime_eligible"] is True

    def test_evaluate_example(self, capsys):
        """evaluate without --json uses the example listing."""
        assert main(["evaluate", "--seed", "1"]) == 0

        out = capsys.readouterr().out
        assert "Decision: IMPORT" in out
        assert "$25.50" in out

    def test_evaluate_json_rejected(self, capsys):
        """A rejected listing reports the reason."""
        listing = create_example_candidate().model_dump(mode="json")
        listing["review_count"] = 10

        assert main(["evaluate", "--json", json.dumps(listing), "--ranks", "4000,4100"]) == 0

        assert "REJECT (reviews)" in capsys.readouterr().out

    def test_quote(self, capsys):
        """quote prints list price and margin."""
        assert main(["quote", "15", "--seed", "3"]) == 0

        out = capsys.readouterr().out
        assert "List Price:   $25.50" in out
        assert "(41.2%)" in out

    def test_quote_invalid_cost(self, capsys):
        """Bad input exits with an error code."""
        assert main(["quote", "-5"]) == 2

        assert "Error" in capsys.readouterr().err

    def test_no_command(self, capsys):
        """No command prints help."""
        assert main([]) == 1


class TestSyncCommand:
    """Tests for the sync command."""

    @patch("dropship_ops.cli.async_session_maker")
    @patch("dropship_ops.cli.RainforestClient")
    @patch("dropship_ops.cli.PriceSyncService")
    @patch("dropship_ops.cli.get_settings")
    def test_sync_uses_batch_size(
        self, mock_settings, mock_service_cls, mock_client_cls, mock_session_maker, capsys
    ):
        """Without --limit the configured batch size is used."""
        mock_settings.return_value = Settings(
            _env_file=None, rainforest_api_key="test-key", sync_batch_size=25
        )
        service = mock_service_cls.return_value
        service.run_price_sync = AsyncMock(
            return_value=PriceSyncResult(processed=2, updated=2)
        )
        mock_session_maker.return_value = MagicMock()

        assert main(["sync"]) == 0

        service.run_price_sync.assert_awaited_once_with(limit=25, force=False)
        mock_client_cls.return_value.close.assert_called_once()
        assert "updated: 2" in capsys.readouterr().out

    @patch("dropship_ops.cli.async_session_maker")
    @patch("dropship_ops.cli.RainforestClient")
    @patch("dropship_ops.cli.PriceSyncService")
    @patch("dropship_ops.cli.get_settings")
    def test_sync_limit_and_force(
        self, mock_settings, mock_service_cls, mock_client_cls, mock_session_maker
    ):
        mock_settings.return_value = Settings(_env_file=None, rainforest_api_key="test-key")
        service = mock_service_cls.return_value
        service.run_price_sync = AsyncMock(return_value=PriceSyncResult())
        mock_session_maker.return_value = MagicMock()

        assert main(["sync", "--limit", "5", "--force"]) == 0

        service.run_price_sync.assert_awaited_once_with(limit=5, force=True)

    @patch("dropship_ops.cli.get_settings")
    def test_sync_requires_api_key(self, mock_settings, capsys):
        """No Rainforest key exits with an error code."""
        mock_settings.return_value = Settings(_env_file=None, rainforest_api_key="")

        assert main(["sync"]) == 2

        assert "RAINFOREST_API_KEY" in capsys.readouterr().err
