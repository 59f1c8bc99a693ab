"""Automation services for scheduled database backups.

This package provides:
- Key derivation and authenticated encryption of backup files
- Orchestration to dump, encrypt and clean up each configured server
- Webhook notifications summarizing a run
"""
