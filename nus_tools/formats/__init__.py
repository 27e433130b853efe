"""Format parsers and builders for title package files.

- TMD: title metadata listing the contents of a title
- Ticket: encrypted title key for a title
"""

from nus_tools.formats.base import FormatParser, SignatureBlock
from nus_tools.formats.ticket import Ticket, TicketBuilder, TicketParser
from nus_tools.formats.tmd import TMDBuilder, TMDContent, TMDFile, TMDParser, is_tmd

__all__ = [
    "FormatParser",
    "SignatureBlock",
    "Ticket",
    "TicketBuilder",
    "TicketParser",
    "TMDBuilder",
    "TMDContent",
    "TMDFile",
    "TMDParser",
    "is_tmd",
]
