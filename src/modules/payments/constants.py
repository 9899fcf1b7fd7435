"""Payment constants: provider names, settled statuses, networks, headers."""

LEGACY = "legacy"
NOWPAYMENTS = "nowpayments"

# Provider statuses that mean the money has arrived (compared lower-case).
SETTLED_STATUSES = frozenset({"finished", "confirmed", "paid", "completed"})

NETWORK_PAY_CURRENCY: dict[str, str] = {
    "ERC20": "USDTERC20",
    "TRC20": "USDTTRC20",
}

LEGACY_SIGNATURE_HEADER = "X-Signature"
NOWPAYMENTS_SIGNATURE_HEADER = "X-Nowpayments-Sig"

INVOICE_CREATED_STATUS = "invoice_created"

# Provider statuses after which no payment can still arrive for an invoice.
CLOSED_PAYMENT_STATUSES = frozenset({"expired", "failed", "refunded"})
