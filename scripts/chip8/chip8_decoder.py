from collections import namedtuple
from enum import Enum

from chip8_errors import UnknownOpcode


# ******************** INSTRUCTION SET SECTION
class Op(Enum):
    CLS = 'CLS'
    RET = 'RET'
    JP = 'JP'
    CALL = 'CALL'
    SE_BYTE = 'SE Vx, byte'
    SNE_BYTE = 'SNE Vx, byte'
    SE_REG = 'SE Vx, Vy'
    LD_BYTE = 'LD Vx, byte'
    ADD_BYTE = 'ADD Vx, byte'
    LD_REG = 'LD Vx, Vy'
    OR = 'OR'
    AND = 'AND'
    XOR = 'XOR'
    ADD_REG = 'ADD Vx, Vy'
    SUB = 'SUB'
    SHR = 'SHR'
    SUBN = 'SUBN'
    SHL = 'SHL'
    SNE_REG = 'SNE Vx, Vy'
    LD_I = 'LD I, addr'
    JP_V0 = 'JP V0, addr'
    RND = 'RND'
    DRW = 'DRW'
    SKP = 'SKP'
    SKNP = 'SKNP'
    LD_VX_DT = 'LD Vx, DT'
    LD_VX_K = 'LD Vx, K'
    LD_DT_VX = 'LD DT, Vx'
    LD_ST_VX = 'LD ST, Vx'
    ADD_I = 'ADD I, Vx'
    LD_F = 'LD F, Vx'
    LD_B = 'LD B, Vx'
    LD_MEM_VX = 'LD [I], Vx'
    LD_VX_MEM = 'LD Vx, [I]'


# WATCH OUT: order is important!!!
# decode stops at the first (mask, pattern) pair matching the opcode
OPCODE_TABLE = [
    (0xFFFF, 0x00E0, Op.CLS),
    (0xFFFF, 0x00EE, Op.RET),
    (0xF000, 0x1000, Op.JP),
    (0xF000, 0x2000, Op.CALL),
    (0xF000, 0x3000, Op.SE_BYTE),
    (0xF000, 0x4000, Op.SNE_BYTE),
    (0xF00F, 0x5000, Op.SE_REG),
    (0xF000, 0x6000, Op.LD_BYTE),
    (0xF000, 0x7000, Op.ADD_BYTE),
    (0xF00F, 0x8000, Op.LD_REG),
    (0xF00F, 0x8001, Op.OR),
    (0xF00F, 0x8002, Op.AND),
    (0xF00F, 0x8003, Op.XOR),
    (0xF00F, 0x8004, Op.ADD_REG),
    (0xF00F, 0x8005, Op.SUB),
    (0xF00F, 0x8006, Op.SHR),
    (0xF00F, 0x8007, Op.SUBN),
    (0xF00F, 0x800E, Op.SHL),
    (0xF00F, 0x9000, Op.SNE_REG),
    (0xF000, 0xA000, Op.LD_I),
    (0xF000, 0xB000, Op.JP_V0),
    (0xF000, 0xC000, Op.RND),
    (0xF000, 0xD000, Op.DRW),
    (0xF0FF, 0xE09E, Op.SKP),
    (0xF0FF, 0xE0A1, Op.SKNP),
    (0xF0FF, 0xF007, Op.LD_VX_DT),
    (0xF0FF, 0xF00A, Op.LD_VX_K),
    (0xF0FF, 0xF015, Op.LD_DT_VX),
    (0xF0FF, 0xF018, Op.LD_ST_VX),
    (0xF0FF, 0xF01E, Op.ADD_I),
    (0xF0FF, 0xF029, Op.LD_F),
    (0xF0FF, 0xF033, Op.LD_B),
    (0xF0FF, 0xF055, Op.LD_MEM_VX),
    (0xF0FF, 0xF065, Op.LD_VX_MEM),
]

# assembly text printed by the DEBUG trace, formatted with the Instruction fields
ASM = {
    Op.CLS: "CLS",
    Op.RET: "RET",
    Op.JP: "JP 0x{nnn:03x}",
    Op.CALL: "CALL 0x{nnn:03x}",
    Op.SE_BYTE: "SE V{x:X}, 0x{kk:02x}",
    Op.SNE_BYTE: "SNE V{x:X}, 0x{kk:02x}",
    Op.SE_REG: "SE V{x:X}, V{y:X}",
    Op.LD_BYTE: "LD V{x:X}, 0x{kk:02x}",
    Op.ADD_BYTE: "ADD V{x:X}, 0x{kk:02x}",
    Op.LD_REG: "LD V{x:X}, V{y:X}",
    Op.OR: "OR V{x:X}, V{y:X}",
    Op.AND: "AND V{x:X}, V{y:X}",
    Op.XOR: "XOR V{x:X}, V{y:X}",
    Op.ADD_REG: "ADD V{x:X}, V{y:X}",
    Op.SUB: "SUB V{x:X}, V{y:X}",
    Op.SHR: "SHR V{x:X}",
    Op.SUBN: "SUBN V{x:X}, V{y:X}",
    Op.SHL: "SHL V{x:X}",
    Op.SNE_REG: "SNE V{x:X}, V{y:X}",
    Op.LD_I: "LD I, 0x{nnn:03x}",
    Op.JP_V0: "JP V0, 0x{nnn:03x}",
    Op.RND: "RND V{x:X}, 0x{kk:02x}",
    Op.DRW: "DRW V{x:X}, V{y:X}, {n}",
    Op.SKP: "SKP V{x:X}",
    Op.SKNP: "SKNP V{x:X}",
    Op.LD_VX_DT: "LD V{x:X}, DT",
    Op.LD_VX_K: "LD V{x:X}, K",
    Op.LD_DT_VX: "LD DT, V{x:X}",
    Op.LD_ST_VX: "LD ST, V{x:X}",
    Op.ADD_I: "ADD I, V{x:X}",
    Op.LD_F: "LD F, V{x:X}",
    Op.LD_B: "LD B, V{x:X}",
    Op.LD_MEM_VX: "LD [I], V{x:X}",
    Op.LD_VX_MEM: "LD V{x:X}, [I]",
}


class Instruction(namedtuple('Instruction', 'op opcode x y n kk nnn')):
    """a decoded opcode: the operation plus every nibble field it may need"""
    __slots__ = ()

    def __str__(self):
        return ASM[self.op].format(**self._asdict())


# ******************** DECODING SECTION
def decode(opcode: int) -> Instruction:
    """split a 16-bit opcode into its fields, raise UnknownOpcode if it isn't in the table"""
    for mask, pattern, op in OPCODE_TABLE:
        if opcode & mask == pattern:
            return Instruction(
                op=op,
                opcode=opcode,
                x=(opcode & 0x0F00) >> 8,
                y=(opcode & 0x00F0) >> 4,
                n=opcode & 0x000F,
                kk=opcode & 0x00FF,
                nnn=opcode & 0x0FFF,
            )
    raise UnknownOpcode(opcode)
