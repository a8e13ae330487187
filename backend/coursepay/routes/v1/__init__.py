"""Versioned HTTP routers."""

from . import payments, webhooks_chapa, withdrawals

__all__ = ["payments", "webhooks_chapa", "withdrawals"]
