"""
Project-wide constants with no framework imports.

Kept separate from core.exceptions so authentication code can use them
while DRF is still loading its authentication classes.
"""

from typing import Final

SIGN_IN_REQUIRED: Final = "Sign in required."
