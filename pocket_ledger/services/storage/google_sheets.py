"""
Google Sheets Storage Implementation

Google Sheets serves as the document store because:
1. Users can view their wallets and transactions directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

TRADEOFFS:
- Not suitable for high-volume data (fine for personal finances)
- No multi-row transactions (the ledger orders its writes and checks
  wallet versions instead)
- Limited query capabilities (we filter in Python)

Every collection lives in its own worksheet, one document per row, with
the id in the first column.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from pocket_ledger.config import GoogleSheetsSettings, get_settings
from pocket_ledger.logs import get_logger
from pocket_ledger.models.ledger import (
    ExpenseCategory,
    Transaction,
    TransactionType,
    UserProfile,
    Wallet,
)
from pocket_ledger.services.storage.interface import (
    ConflictError,
    ConnectionError,
    NotFoundError,
    StorageError,
    TransactionStorageInterface,
    UserStorageInterface,
    WalletStorageInterface,
)

logger = get_logger(__name__)


WALLET_COLUMNS = [
    "id",
    "uid",
    "name",
    "amount",
    "total_income",
    "total_expenses",
    "created",
    "image",
    "version",
]

TRANSACTION_COLUMNS = [
    "id",
    "uid",
    "wallet_id",
    "type",
    "amount",
    "category",
    "description",
    "date",
    "image",
    "created_at",
]

USER_COLUMNS = [
    "uid",
    "name",
    "email",
    "image",
]


def _cell(row: list, index: int) -> str:
    """Read a cell, treating short rows as empty trailing cells."""
    try:
        return row[index] or ""
    except IndexError:
        return ""


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and worksheet creation. Only the connection
    handshake is retried; reads and writes fail straight through.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            logger.info("worksheet_created", title=title)
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


class _SheetCollection:
    """Row lookup helpers shared by the sheet-backed stores."""

    def __init__(self, client: GoogleSheetsClient, title: str, columns: list[str]):
        self._client = client
        self._title = title
        self._columns = columns

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, self._columns)

    def _rows(self, sheet: gspread.Worksheet) -> list[tuple[int, list]]:
        """Non-empty data rows with their 1-based sheet row number."""
        return [
            (idx, row)
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2)
            if row and row[0]
        ]

    def _find(self, sheet: gspread.Worksheet, doc_id: str) -> Optional[tuple[int, list]]:
        for idx, row in self._rows(sheet):
            if row[0] == doc_id:
                return idx, row
        return None

    def _write(self, sheet: gspread.Worksheet, doc_id: str, row: list) -> None:
        found = self._find(sheet, doc_id)
        if found is None:
            sheet.append_row(row, value_input_option="RAW")
        else:
            sheet.update(
                range_name=f"A{found[0]}",
                values=[row],
                value_input_option="RAW",
            )

    def _delete(self, sheet: gspread.Worksheet, doc_ids: set[str]) -> int:
        indexes = [idx for idx, row in self._rows(sheet) if row[0] in doc_ids]
        # Bottom-up so earlier deletions don't shift later row numbers
        for idx in sorted(indexes, reverse=True):
            sheet.delete_rows(idx)
        return len(indexes)


class GoogleSheetsWalletStorage(_SheetCollection, WalletStorageInterface):
    """Google Sheets implementation of wallet storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        client = client or GoogleSheetsClient()
        super().__init__(client, client.settings.wallets_sheet_name, WALLET_COLUMNS)

    def _wallet_to_row(self, wallet: Wallet) -> list:
        return [
            wallet.id,
            wallet.uid,
            wallet.name,
            str(wallet.amount),
            str(wallet.total_income),
            str(wallet.total_expenses),
            wallet.created.isoformat(),
            wallet.image or "",
            str(wallet.version),
        ]

    def _row_to_wallet(self, row: list) -> Wallet:
        return Wallet(
            id=_cell(row, 0),
            uid=_cell(row, 1),
            name=_cell(row, 2),
            amount=Decimal(_cell(row, 3) or "0"),
            total_income=Decimal(_cell(row, 4) or "0"),
            total_expenses=Decimal(_cell(row, 5) or "0"),
            created=datetime.fromisoformat(_cell(row, 6)),
            image=_cell(row, 7) or None,
            version=int(_cell(row, 8) or 0),
        )

    async def get_wallet(self, wallet_id: str) -> Optional[Wallet]:
        try:
            found = self._find(self._sheet(), wallet_id)
            return self._row_to_wallet(found[1]) if found else None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get wallet: {e}")

    async def save_wallet(
        self,
        wallet: Wallet,
        expected_version: Optional[int] = None,
    ) -> Wallet:
        try:
            sheet = self._sheet()
            found = self._find(sheet, wallet.id)
            stored_version = int(_cell(found[1], 8) or 0) if found else 0

            if expected_version is not None:
                if found is None:
                    raise NotFoundError(f"Wallet not found: {wallet.id}")
                if stored_version != expected_version:
                    raise ConflictError(
                        "This wallet was changed by another update. Please try again."
                    )

            saved = wallet.model_copy(update={"version": stored_version + 1})
            self._write(sheet, saved.id, self._wallet_to_row(saved))
            return saved
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save wallet: {e}")

    async def delete_wallet(self, wallet_id: str) -> bool:
        try:
            return self._delete(self._sheet(), {wallet_id}) > 0
        except Exception as e:
            raise StorageError(f"Failed to delete wallet: {e}")

    async def list_wallets(self, uid: str) -> list[Wallet]:
        try:
            wallets = []
            for _, row in self._rows(self._sheet()):
                if _cell(row, 1) != uid:
                    continue
                try:
                    wallets.append(self._row_to_wallet(row))
                except ValueError:
                    logger.warning("malformed_wallet_row", wallet_id=row[0])
            wallets.sort(key=lambda w: w.created, reverse=True)
            return wallets
        except Exception as e:
            raise StorageError(f"Failed to list wallets: {e}")


class GoogleSheetsTransactionStorage(_SheetCollection, TransactionStorageInterface):
    """Google Sheets implementation of transaction storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        client = client or GoogleSheetsClient()
        super().__init__(
            client, client.settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )

    def _transaction_to_row(self, transaction: Transaction) -> list:
        return [
            transaction.id,
            transaction.uid,
            transaction.wallet_id,
            transaction.type.value,
            str(transaction.amount),
            transaction.category.value if transaction.category else "",
            transaction.description or "",
            transaction.date.isoformat(),
            transaction.image or "",
            transaction.created_at.isoformat(),
        ]

    def _row_to_transaction(self, row: list) -> Transaction:
        category = _cell(row, 5)
        return Transaction(
            id=_cell(row, 0),
            uid=_cell(row, 1),
            wallet_id=_cell(row, 2),
            type=TransactionType(_cell(row, 3)),
            amount=Decimal(_cell(row, 4)),
            category=ExpenseCategory(category) if category else None,
            description=_cell(row, 6) or None,
            date=datetime.fromisoformat(_cell(row, 7)),
            image=_cell(row, 8) or None,
            created_at=datetime.fromisoformat(_cell(row, 9)),
        )

    async def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        try:
            found = self._find(self._sheet(), transaction_id)
            return self._row_to_transaction(found[1]) if found else None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        try:
            sheet = self._sheet()
            self._write(sheet, transaction.id, self._transaction_to_row(transaction))
            return transaction
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def delete_transaction(self, transaction_id: str) -> bool:
        try:
            return self._delete(self._sheet(), {transaction_id}) > 0
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    async def delete_transactions(self, transaction_ids: Iterable[str]) -> int:
        try:
            return self._delete(self._sheet(), set(transaction_ids))
        except Exception as e:
            raise StorageError(f"Failed to delete transactions: {e}")

    async def list_transactions(
        self,
        uid: Optional[str] = None,
        wallet_id: Optional[str] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        try:
            transactions = []
            for _, row in self._rows(self._sheet()):
                if uid is not None and _cell(row, 1) != uid:
                    continue
                if wallet_id is not None and _cell(row, 2) != wallet_id:
                    continue
                try:
                    transaction = self._row_to_transaction(row)
                except ValueError:
                    logger.warning("malformed_transaction_row", transaction_id=row[0])
                    continue

                if date_from and transaction.date < date_from:
                    continue
                if date_to and transaction.date > date_to:
                    continue
                transactions.append(transaction)

            # Sort by date descending (newest first)
            transactions.sort(key=lambda t: t.date, reverse=True)
            if limit is not None:
                transactions = transactions[:limit]
            return transactions
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")


class GoogleSheetsUserStorage(_SheetCollection, UserStorageInterface):
    """Google Sheets implementation of user profile storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        client = client or GoogleSheetsClient()
        super().__init__(client, client.settings.users_sheet_name, USER_COLUMNS)

    async def get_user(self, uid: str) -> Optional[UserProfile]:
        try:
            found = self._find(self._sheet(), uid)
            if found is None:
                return None
            row = found[1]
            return UserProfile(
                uid=_cell(row, 0),
                name=_cell(row, 1) or None,
                email=_cell(row, 2) or None,
                image=_cell(row, 3) or None,
            )
        except Exception as e:
            raise StorageError(f"Failed to get user: {e}")

    async def save_user(self, profile: UserProfile) -> UserProfile:
        try:
            row = [
                profile.uid,
                profile.name or "",
                profile.email or "",
                profile.image or "",
            ]
            self._write(self._sheet(), profile.uid, row)
            return profile
        except Exception as e:
            raise StorageError(f"Failed to save user: {e}")
