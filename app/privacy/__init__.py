"""
Privacy application.

Per-user privacy and security settings plus the block ledger.

Key components:
    - PrivacySettings: read receipts, last-seen visibility, who can message
    - SecuritySettings: account security flags (scaffold)
    - Block: directed blocker -> blocked edge, symmetric in effect

Usage:
    from privacy.services import BlockService, PrivacyService

    if BlockService.is_blocked_between(alice, bob):
        ...
"""
