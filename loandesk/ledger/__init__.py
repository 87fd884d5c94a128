"""Payout and invoice ledgers."""
