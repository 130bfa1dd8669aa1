"""Per-account JSON storage for transactions, planned items and budgets.

Each account is one JSON file under the storage root.  The forecasting
core never touches this module; it is the external collaborator the
service layer injects, and every operation is keyed by an opaque
account id.
"""

from __future__ import annotations

import hashlib
import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .config import ACCOUNTS_DIR, HORIZONS, RECURRENCE_MONTHLY, RECURRENCE_ONE_OFF, ensure_data_directories
from .models import BudgetDocument, Transaction, parse_date

logger = logging.getLogger(__name__)

PLANNED_KINDS = ('income', 'expenses')
MIN_PLANNED_AMOUNT = 0.01


def _empty_account() -> Dict[str, Any]:
    return {
        'transactions': [],
        'planned_income': [],
        'planned_expenses': [],
        'budget': None,
    }


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def account_filename(account_id: str) -> str:
    """Filesystem-safe name for an account id.

    Keeps alphanumerics, underscores and hyphens, and appends a short digest
    of the raw id so distinct ids never share a file.
    """
    cleaned = ''.join(c for c in account_id if c.isalnum() or c in {' ', '_', '-'})
    cleaned = cleaned.strip().replace(' ', '_')
    while '__' in cleaned:
        cleaned = cleaned.replace('__', '_')
    cleaned = cleaned[:64].rstrip('_') or 'account'
    digest = hashlib.sha1(account_id.encode('utf-8')).hexdigest()[:10]
    return f"{cleaned}-{digest}.json"


class AccountStore:
    """Handles per-account file storage operations."""

    def __init__(self, root: Optional[Union[str, Path]] = None):
        """Initialize account storage.

        Args:
            root: Optional directory for account files.
                  Defaults to ACCOUNTS_DIR from config.
        """
        if root is None:
            ensure_data_directories()
            self.root = ACCOUNTS_DIR
        else:
            self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def get_path(self, account_id: str) -> Path:
        if not account_id or not str(account_id).strip():
            raise ValueError("Account id cannot be empty")
        return self.root / account_filename(str(account_id))

    def _load(self, account_id: str) -> Dict[str, Any]:
        target = self.get_path(account_id)
        if not target.exists():
            return _empty_account()
        try:
            with target.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not read account file %s: %s", target, e)
            return _empty_account()
        if not isinstance(data, dict):
            return _empty_account()
        merged = _empty_account()
        for key, default in merged.items():
            value = data.get(key, default)
            if isinstance(default, list) and not isinstance(value, list):
                value = []
            if key == 'budget' and not isinstance(value, dict):
                value = None
            merged[key] = value
        return merged

    def _save(self, account_id: str, data: Dict[str, Any]) -> None:
        target = self.get_path(account_id)
        target.parent.mkdir(parents=True, exist_ok=True)
        try:
            with target.open('w', encoding='utf-8') as handle:
                json.dump(data, handle, indent=2, sort_keys=True)
        except OSError as e:
            raise OSError(f"Failed to save account data to {target}: {e}") from e

    # Transactions

    def transactions(self, account_id: str) -> List[Dict[str, Any]]:
        return self._load(account_id)['transactions']

    def add_transactions(self, account_id: str, records: Iterable[Any]) -> int:
        """Append already-categorised transactions; returns how many were added."""
        data = self._load(account_id)
        added = []
        for record in records:
            txn = record if isinstance(record, Transaction) else Transaction.from_record(record)
            added.append(txn.to_dict())
        data['transactions'].extend(added)
        self._save(account_id, data)
        logger.info("Stored %d transaction(s) for account %s", len(added), account_id)
        return len(added)

    # Planned items

    @staticmethod
    def _planned_key(kind: str) -> str:
        if kind not in PLANNED_KINDS:
            raise ValueError(f"Planned item kind must be one of {PLANNED_KINDS}, got {kind!r}")
        return f'planned_{kind}'

    def planned_items(self, account_id: str, kind: str) -> List[Dict[str, Any]]:
        key = self._planned_key(kind)
        items = self._load(account_id)[key]
        return sorted(items, key=lambda item: str(item.get('expected_date') or ''))

    def add_planned_item(
        self,
        account_id: str,
        kind: str,
        description: str,
        amount: Any,
        expected_date: Any,
        recurrence: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Validate and store a planned income or expense item.

        Raises:
            ValueError: on an empty description, an amount below 0.01 or an
                unparseable date.
        """
        key = self._planned_key(kind)
        description = str(description or '').strip()
        if not description:
            raise ValueError("description is required")
        try:
            value = float(amount)
        except (TypeError, ValueError):
            raise ValueError(f"Amount must be a number, got {amount!r}") from None
        if not value >= MIN_PLANNED_AMOUNT:
            raise ValueError(f"Amount must be at least {MIN_PLANNED_AMOUNT}")
        parsed = parse_date(expected_date)
        if parsed is None:
            raise ValueError(f"Expected date is not a valid date: {expected_date!r}")

        item = {
            'id': uuid.uuid4().hex,
            'description': description,
            'amount': value,
            'expected_date': parsed.isoformat(),
            'recurrence': RECURRENCE_MONTHLY if recurrence == RECURRENCE_MONTHLY else RECURRENCE_ONE_OFF,
            'created_at': _now_iso(),
        }
        data = self._load(account_id)
        data[key].append(item)
        self._save(account_id, data)
        return item

    def delete_planned_item(self, account_id: str, kind: str, item_id: str) -> bool:
        key = self._planned_key(kind)
        data = self._load(account_id)
        remaining = [item for item in data[key] if item.get('id') != item_id]
        if len(remaining) == len(data[key]):
            return False
        data[key] = remaining
        self._save(account_id, data)
        return True

    # Budget

    def load_budget(self, account_id: str) -> Optional[Dict[str, Any]]:
        return self._load(account_id)['budget']

    def save_budget(self, account_id: str, document: Union[BudgetDocument, Mapping[str, Any]]) -> Dict[str, Any]:
        """Insert or overwrite the account's budget.

        ``created_at`` survives overwrites; ``updated_at`` is stamped on
        every save.

        Raises:
            ValueError: if the horizon or forecast months are missing.
        """
        if not isinstance(document, BudgetDocument):
            document = BudgetDocument.from_record(document)
        if document.horizon not in HORIZONS:
            raise ValueError("horizon is required")
        if not isinstance(document.forecast_months, list):
            raise ValueError("forecast_months is required and must be a list")

        data = self._load(account_id)
        existing = data['budget']
        record = document.to_record()
        now = _now_iso()
        record['created_at'] = (existing or {}).get('created_at') or now
        record['updated_at'] = now
        data['budget'] = record
        self._save(account_id, data)
        logger.info("%s budget for account %s", "Updated" if existing else "Saved", account_id)
        return record

    def delete_budget(self, account_id: str) -> bool:
        data = self._load(account_id)
        if data['budget'] is None:
            return False
        data['budget'] = None
        self._save(account_id, data)
        logger.info("Deleted budget for account %s", account_id)
        return True

    def clear(self, account_id: str) -> None:
        """Remove every stored record for the account."""
        target = self.get_path(account_id)
        if not target.exists():
            return
        try:
            target.unlink()
        except OSError as e:
            raise OSError(f"Failed to delete account file {target}: {e}") from e
