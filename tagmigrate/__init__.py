"""
tagmigrate - Tag key migration and rollback for cloud resources.

This package provides a CLI for discovering resources, renaming a tag key
across them with a pre-mutation backup ledger, and restoring the original
tags from that ledger.
"""

__version__ = "0.1.0"
__author__ = "tagmigrate maintainers"
