"""CLI command implementations for nus_tools.

- titlekey: Decrypt a title key
- verify: Verify title and content integrity
"""

from nus_tools.commands.titlekey import titlekey
from nus_tools.commands.verify import verify

__all__ = ["titlekey", "verify"]
