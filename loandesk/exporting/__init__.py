"""Spreadsheet exports of the ledgers."""
