"""Backup package: zip archives of the novels tree and user database."""

from backup.archiver import BackupManager, backup_name

__all__ = ["BackupManager", "backup_name"]
