# ******************** ERRORS SECTION
# every error raised by the VM derives from Chip8Error so a host can stop on any of them
# the second base class keeps them catchable the way the builtin counterpart would be


class Chip8Error(Exception):
    pass


class UnknownOpcode(Chip8Error, NotImplementedError):
    def __init__(self, opcode):
        self.opcode = opcode
        super().__init__(f"Unknown opcode 0x{opcode:04x}")


class StackOverflow(Chip8Error, IndexError):
    def __init__(self, depth):
        self.depth = depth
        super().__init__(f"The CHIP-8 stack can contain at most {depth} addresses. Limit exceeded")


class StackUnderflow(Chip8Error, IndexError):
    def __init__(self):
        super().__init__("Tried to return from a subroutine with an empty stack")


class ProgramTooLarge(Chip8Error, ValueError):
    def __init__(self, size, limit):
        self.size = size
        self.limit = limit
        super().__init__(f"ROM too large: {size} bytes, max {limit}")
