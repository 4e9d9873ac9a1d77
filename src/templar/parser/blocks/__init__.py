"""Statement parsing mixins for the templar parser."""

from templar.parser.blocks.control_flow import ControlFlowBlockParsingMixin
from templar.parser.blocks.special_blocks import SpecialBlockParsingMixin

__all__ = ["ControlFlowBlockParsingMixin", "SpecialBlockParsingMixin"]
