from __future__ import annotations

from rest_framework.exceptions import NotFound, ValidationError


class InvalidReconciliationTarget(ValidationError):
    default_detail = "Specify exactly one of payment_id, sale_id or ignore."
    default_code = "invalid_reconciliation_target"


class InvalidImport(ValidationError):
    default_detail = "Import file contains no valid transactions."
    default_code = "invalid_import"


class BatchNotFound(NotFound):
    default_detail = "Import batch not found."
    default_code = "batch_not_found"


class TransactionNotFound(NotFound):
    default_detail = "Imported transaction not found."
    default_code = "transaction_not_found"


class SaleNotFound(NotFound):
    default_detail = "Sale not found."
    default_code = "sale_not_found"
