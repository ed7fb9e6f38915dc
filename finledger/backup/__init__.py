"""Whole-store backup, export, import and reset."""

from finledger.backup.manager import BackupManager

__all__ = ["BackupManager"]
