"""Tests for application wiring without external services."""

import asyncio
from decimal import Decimal

from pocket_ledger.orchestrator import create_app_components


class TestCreateAppComponents:
    """Tests for the in-memory component factory."""

    def test_services_share_stores(self):
        """Test that a wallet created by one service is visible to the others."""
        app = create_app_components(use_storage=False)
        assert app.sheets_client is None

        wallet = asyncio.run(app.wallets.create_or_update_wallet({"uid": "u", "name": "Cash"})).data
        response = asyncio.run(
            app.engine.create_or_update_transaction(
                {"uid": "u", "wallet_id": wallet.id, "type": "income", "amount": 25}
            )
        )
        assert response.success

        summary = asyncio.run(app.stats.summarize_wallets("u")).data
        assert summary.balance == Decimal("25.00")

        deleted = asyncio.run(app.wallets.delete_wallet(wallet.id))
        assert deleted.data == 1
        assert asyncio.run(app.stats.recent_transactions("u")).data == []
