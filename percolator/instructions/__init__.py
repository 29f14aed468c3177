from . import oracle, router, system
from .common import AccountMeta, AccountSlots, Instruction, make_instruction, slot

__all__ = [
    "oracle",
    "router",
    "system",
    "AccountMeta",
    "AccountSlots",
    "Instruction",
    "make_instruction",
    "slot",
]
