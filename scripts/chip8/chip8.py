# CHIP-8 INFO
# http://devernay.free.fr/hacks/chip8/C8TECH10.HTM
# https://chip-8.github.io/links/
#
# MASTERING CHIP-8
# https://github.com/mattmikolay/chip-8/wiki/Mastering-CHIP%E2%80%908
#
# TEST SUITE
# https://github.com/Timendus/chip8-test-suite


import os
import random
import time
from functools import wraps

from chip8_decoder import Op, decode
from chip8_errors import ProgramTooLarge, StackOverflow, StackUnderflow


# ******************** STATIC SECTION
C8_FONTS = [0xF0, 0x90, 0x90, 0x90, 0xF0,  # 0
            0x20, 0x60, 0x20, 0x20, 0x70,  # 1
            0xF0, 0x10, 0xF0, 0x80, 0xF0,  # 2
            0xF0, 0x10, 0xF0, 0x10, 0xF0,  # 3
            0x90, 0x90, 0xF0, 0x10, 0x10,  # 4
            0xF0, 0x80, 0xF0, 0x10, 0xF0,  # 5
            0xF0, 0x80, 0xF0, 0x90, 0xF0,  # 6
            0xF0, 0x10, 0x20, 0x40, 0x40,  # 7
            0xF0, 0x90, 0xF0, 0x90, 0xF0,  # 8
            0xF0, 0x90, 0xF0, 0x10, 0xF0,  # 9
            0xF0, 0x90, 0xF0, 0x90, 0x90,  # A
            0xE0, 0x90, 0xE0, 0x90, 0xE0,  # B
            0xF0, 0x80, 0x80, 0x80, 0xF0,  # C
            0xE0, 0x90, 0x90, 0x90, 0xE0,  # D
            0xF0, 0x80, 0xF0, 0x80, 0xF0,  # E
            0xF0, 0x80, 0xF0, 0x80, 0x80]  # F

FONT_START_ADDRESS = 0x000
FONT_CHAR_SIZE = 5
MEMORY_SIZE = 4096
ROM_START_ADDRESS = 0x200
MAX_ROM_SIZE = MEMORY_SIZE - ROM_START_ADDRESS
REGISTERS_COUNT = 16
STACK_DEPTH = 16
SPRITE_WIDTH = 8
SCREEN_HEIGHT = 32
SCREEN_WIDTH = 64
TIMER_HZ = 60
DEBUG = True if int(os.getenv('DEBUG', 0)) >= 1 else False


# ******************** UTILITIES SECTION
def asm(fn):
    """decorator to print out the ASM of the instruction being executed"""
    @wraps(fn)
    def wrapper_fn(self, instruction):
        mem_addr = self.pc - 0x2    # pc has already moved past the instruction
        if DEBUG: print(f"mem_addr: 0x{mem_addr:04x}    instruction: {instruction}")
        return fn(self, instruction)
    return wrapper_fn


# ******************** I/O SECTION
class NullKeypad:
    """
    keypad with no key ever pressed, used when the host doesn't wire one in
    any object exposing is_pressed(key) and first_pressed() can take its place
    """
    def is_pressed(self, key):
        return False

    def first_pressed(self):
        return None

class Framebuffer:
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT):
        self.w, self.h = w, h
        self.clear()

    def clear(self):
        self.buffer = [[False] * self.w for _ in range(self.h)]

    def read_pixel(self, x, y):
        return self.buffer[y % self.h][x % self.w]

    def xor_pixel(self, x, y):
        """flip the pixel at (x, y) wrapping around the edges, return True if a lit pixel got erased"""
        x, y = x % self.w, y % self.h
        erased = self.buffer[y][x]
        self.buffer[y][x] = not erased
        return erased

    def rows(self):
        return tuple(tuple(row) for row in self.buffer)


# ******************** MEMORY SECTION
# ********** WRAPS A LIST TO REPRESENT THE MAIN MEMORY WITH A LIMITED SIZE OF 4KB
# addresses are 12 bits wide, anything above 0xFFF wraps around
class Memory:
    def __init__(self):
        self.inner = [0] * MEMORY_SIZE
        self.inner[FONT_START_ADDRESS:FONT_START_ADDRESS+len(C8_FONTS)] = C8_FONTS

    def __setitem__(self, address, value):
        self.inner[address % MEMORY_SIZE] = value & 0xFF

    def __getitem__(self, address):
        return self.inner[address % MEMORY_SIZE]

    def __len__(self):
        return len(self.inner)

    def load(self, data, address=ROM_START_ADDRESS):
        """copy data into memory starting at address, nothing is written if it doesn't fit"""
        data = bytes(data)
        limit = MEMORY_SIZE - address
        if len(data) > limit:
            raise ProgramTooLarge(len(data), limit)
        self.inner[address:address+len(data)] = data

# ********** WRAPS A LIST TO REPRESENT A STACK WITH A LIMITED SIZE OF 16 ADDRESSES
# sp counts the addresses currently pushed, so it goes from 0 (empty) to 16 (full)
class Stack:
    def __init__(self, depth=STACK_DEPTH):
        self.addr_list = [0] * depth
        self.sp = 0

    def __len__(self):
        return self.sp

    def __repr__(self):
        return f"Stack(sp={self.sp}, addresses={[hex(a) for a in self.addr_list[:self.sp]]})"

    def push(self, address):
        if self.sp >= len(self.addr_list):
            raise StackOverflow(len(self.addr_list))
        self.addr_list[self.sp] = address
        self.sp += 1

    def pop(self):
        if self.sp == 0:
            raise StackUnderflow()
        self.sp -= 1
        return self.addr_list[self.sp]

# ********** V0 TO VE ARE GENERAL PURPOSE, VF IS THE FLAG REGISTER
# VF is stored apart but still reachable as register 0xF by the instructions addressing it
class Registers:
    def __init__(self):
        self.general = [0] * (REGISTERS_COUNT - 1)
        self.flag = 0

    def __repr__(self):
        return f"Registers({[hex(v) for v in self]})"

    def __len__(self):
        return REGISTERS_COUNT

    def __iter__(self):
        yield from self.general
        yield self.flag

    def __getitem__(self, index):
        self._check(index)
        return self.flag if index == 0xF else self.general[index]

    def __setitem__(self, index, value):
        self._check(index)
        if index == 0xF:
            self.flag = value & 0xFF
        else:
            self.general[index] = value & 0xFF

    @staticmethod
    def _check(index):
        if not 0 <= index < REGISTERS_COUNT:
            raise IndexError(f"V{index} is not a CHIP-8 register")


# ******************** TIMERS SECTION
class Timers:
    """
    delay and sound timers, both counting down to zero at TIMER_HZ

    the countdown follows the real time read from clock, not the number of executed
    instructions: update() accumulates the elapsed time and only decrements once per
    elapsed timer period, so the cpu can run at any speed without changing the timing
    """
    def __init__(self, clock=time.monotonic, hz=TIMER_HZ):
        self.clock = clock
        self.hz = hz
        self.dt = 0     # delay timer, active when non-zero
        self.st = 0     # sound timer, active when non-zero
        self._last = clock()
        self._elapsed = 0.0

    def update(self):
        """account for the time elapsed since the last update, return the number of timer ticks applied"""
        now = self.clock()
        self._elapsed += now - self._last
        self._last = now
        ticks = int(self._elapsed * self.hz)
        if ticks > 0:
            self._elapsed -= ticks / self.hz
            self.tick(ticks)
        return ticks

    def tick(self, n=1):
        self.dt = max(0, self.dt - n)
        self.st = max(0, self.st - n)


# ******************** CPU SECTION
class Chip8:
    """
    the CHIP-8 virtual machine

    the host drives it by calling cycle() once per tick and reads back framebuffer,
    the timers and buzzer_active, the keypad is queried through is_pressed(key)
    and first_pressed()
    """
    def __init__(self, keypad=None, rng=None, clock=time.monotonic):
        self.keypad = keypad if keypad is not None else NullKeypad()
        self.rng = rng if rng is not None else random.Random()
        self.clock = clock
        self.program = None
        self.instructions = {
            Op.CLS: self._clear_screen,
            Op.RET: self._return,
            Op.JP: self._jump,
            Op.CALL: self._call_addr,
            Op.SE_BYTE: self._skip_if_eq,
            Op.SNE_BYTE: self._skip_if_not_eq,
            Op.SE_REG: self._skip_if_eq_regs,
            Op.LD_BYTE: self._set_vk,
            Op.ADD_BYTE: self._add_to_vk,
            Op.LD_REG: self._set_vx_to_vy,
            Op.OR: self._set_vx_or_vy,
            Op.AND: self._set_vx_and_vy,
            Op.XOR: self._set_vx_xor_vy,
            Op.ADD_REG: self._add_vx_vy,
            Op.SUB: self._sub_vx_vy,
            Op.SHR: self._shr,
            Op.SUBN: self._subn_vx_vy,
            Op.SHL: self._shl,
            Op.SNE_REG: self._skip_if_not_eq_regs,
            Op.LD_I: self._set_idx,
            Op.JP_V0: self._jump_plus,
            Op.RND: self._random_byte_and,
            Op.DRW: self._to_screen,
            Op.SKP: self._skip_if_pressed,
            Op.SKNP: self._skip_if_not_pressed,
            Op.LD_VX_DT: self._set_vx_dt,
            Op.LD_VX_K: self._wait_keypress,
            Op.LD_DT_VX: self._set_dt_vx,
            Op.LD_ST_VX: self._set_st,
            Op.ADD_I: self._add_to_idx,
            Op.LD_F: self._select_char,
            Op.LD_B: self._bcd_repr,
            Op.LD_MEM_VX: self._store_vregs,
            Op.LD_VX_MEM: self._load_vregs,
        }
        self.reset()

    def __str__(self):
        registers = f"PC_REGISTER:0x{self.pc:04x} | IDX_REGISTER:0x{self.idx:04x} | VARIABLE_REGISTERS:{self.v_regs}"
        stack = f"STACK:{self.stack}"
        timers = f"DELAY_TIMER:{self.timers.dt} | SOUND_TIMER:{self.timers.st}"
        flags = f"DRAW:{self.draw} | BLOCKED:{self.blocked} | BUZZER:{self.buzzer_active}"
        return f"{registers}\n{stack}\n{timers}\n{flags}"

    def reset(self):
        """zero the whole machine, then reload the last program if there is one"""
        self.mem = Memory()
        self.stack = Stack()
        self.v_regs = Registers()
        self.pc = ROM_START_ADDRESS
        self.idx = 0    # specify where the sprites reside in memory
        self.timers = Timers(self.clock)
        self.screen = Framebuffer()
        self.blocked = False        # waiting for a key press (Fx0A)
        self.key_register = 0       # register receiving the key once it arrives
        self.buzzer_active = False
        self.draw = False
        if self.program is not None:
            self.mem.load(self.program)

    def load_program(self, data):
        """copy the ROM bytes into memory starting at 0x200"""
        data = bytes(data)
        self.mem.load(data)
        self.program = data

    # ********** READ-ONLY ACCESSORS
    @property
    def framebuffer(self):
        return self.screen.rows()

    def pixel(self, x, y):
        return self.screen.read_pixel(x, y)

    @property
    def delay_timer(self):
        return self.timers.dt

    @property
    def sound_timer(self):
        return self.timers.st

    # ********** INSTRUCTIONS
    def _clear_screen(self, ins):
        self.screen.clear()
        self.draw = True

    def _return(self, ins):
        """return from a subroutine"""
        self.pc = self.stack.pop()

    def _jump(self, ins):
        self.pc = ins.nnn

    def _call_addr(self, ins):
        self.stack.push(self.pc)
        self.pc = ins.nnn

    def _skip_if_eq(self, ins):
        if self.v_regs[ins.x] == ins.kk:
            self._goto_next_instruction()

    def _skip_if_not_eq(self, ins):
        if self.v_regs[ins.x] != ins.kk:
            self._goto_next_instruction()

    def _skip_if_eq_regs(self, ins):
        if self.v_regs[ins.x] == self.v_regs[ins.y]:
            self._goto_next_instruction()

    def _skip_if_not_eq_regs(self, ins):
        if self.v_regs[ins.x] != self.v_regs[ins.y]:
            self._goto_next_instruction()

    def _set_vk(self, ins):
        """set the value of one of the 16 variable registers, Vx"""
        self.v_regs[ins.x] = ins.kk

    def _add_to_vk(self, ins):
        """add to the value already present in one of the variable registers, VF is left alone"""
        self.v_regs[ins.x] = (self.v_regs[ins.x] + ins.kk) & 0xFF

    def _set_vx_to_vy(self, ins):
        self.v_regs[ins.x] = self.v_regs[ins.y]

    def _set_vx_or_vy(self, ins):
        self.v_regs[ins.x] = self.v_regs[ins.x] | self.v_regs[ins.y]

    def _set_vx_and_vy(self, ins):
        self.v_regs[ins.x] = self.v_regs[ins.x] & self.v_regs[ins.y]

    def _set_vx_xor_vy(self, ins):
        self.v_regs[ins.x] = self.v_regs[ins.x] ^ self.v_regs[ins.y]

    # the flag setting instructions below compute both results from the operands first,
    # then write VF and finally Vx (so Vx wins when x is 0xF)
    def _add_vx_vy(self, ins):
        """set Vx = Vx + Vy, VF = carry"""
        sum = self.v_regs[ins.x] + self.v_regs[ins.y]
        self._set_with_flag(ins.x, sum & 0xFF, 1 if sum > 255 else 0)

    def _sub_vx_vy(self, ins):
        """set Vx = Vx - Vy, VF = NOT borrow"""
        vx, vy = self.v_regs[ins.x], self.v_regs[ins.y]
        self._set_with_flag(ins.x, (vx - vy) & 0xFF, 1 if vx > vy else 0)

    def _subn_vx_vy(self, ins):
        """set Vx = Vy - Vx, VF = NOT borrow"""
        vx, vy = self.v_regs[ins.x], self.v_regs[ins.y]
        self._set_with_flag(ins.x, (vy - vx) & 0xFF, 1 if vy > vx else 0)

    def _shr(self, ins):
        """set Vx = Vx SHR 1, VF = least significant bit before the shift"""
        vx = self.v_regs[ins.x]
        self._set_with_flag(ins.x, vx >> 1, vx & 0x1)

    def _shl(self, ins):
        """set Vx = Vx SHL 1, VF = most significant bit before the shift"""
        vx = self.v_regs[ins.x]
        self._set_with_flag(ins.x, (vx << 1) & 0xFF, (vx & 0x80) >> 7)

    def _set_idx(self, ins):
        self.idx = ins.nnn

    def _jump_plus(self, ins):
        self.pc = (ins.nnn + self.v_regs[0x0]) & 0xFFFF

    def _random_byte_and(self, ins):
        rnd = self.rng.randint(0, 255)
        self.v_regs[ins.x] = rnd & ins.kk

    def _to_screen(self, ins):
        """display n-byte sprite starting at memory location I at (Vx, Vy), set VF = collision"""
        x, y = self.v_regs[ins.x], self.v_regs[ins.y]
        collision = 0
        # step through each sprite byte, one screen row each
        for row in range(ins.n):
            sprite_byte = self.mem[self.idx + row]
            for col in range(SPRITE_WIDTH):     # most significant bit is the leftmost pixel
                if sprite_byte & (0x80 >> col):
                    # sprites are XORed onto the screen, erasing a lit pixel is a collision
                    if self.screen.xor_pixel(x + col, y + row):
                        collision = 1
        self.v_regs[0xF] = collision
        self.draw = True

    def _skip_if_pressed(self, ins):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is pressed"""
        if self.keypad.is_pressed(self.v_regs[ins.x] & 0xF):
            self._goto_next_instruction()

    def _skip_if_not_pressed(self, ins):
        """skip the following instruction if the key corresponding to the hex value stored in Vx is NOT pressed"""
        if not self.keypad.is_pressed(self.v_regs[ins.x] & 0xF):
            self._goto_next_instruction()

    def _set_vx_dt(self, ins):
        self.v_regs[ins.x] = self.timers.dt

    def _wait_keypress(self, ins):
        """stop executing until a key is pressed, the key will be stored in Vx by cycle()"""
        self.blocked = True
        self.key_register = ins.x

    def _set_dt_vx(self, ins):
        self.timers.dt = self.v_regs[ins.x]

    def _set_st(self, ins):
        self.timers.st = self.v_regs[ins.x]

    def _add_to_idx(self, ins):
        self.idx = (self.idx + self.v_regs[ins.x]) & 0xFFFF

    def _select_char(self, ins):
        """set I to location of sprite for digit Vx"""
        self.idx = FONT_START_ADDRESS + self.v_regs[ins.x] * FONT_CHAR_SIZE

    def _bcd_repr(self, ins):
        """store the hundreds digit of Vx in memory at I, the tens digit at I+1, the ones digit at I+2"""
        value = self.v_regs[ins.x]
        self.mem[self.idx] = value // 100
        self.mem[self.idx + 1] = (value // 10) % 10
        self.mem[self.idx + 2] = value % 10

    def _store_vregs(self, ins):
        """store registers V0 through Vx (included) in memory starting at location I"""
        for i in range(ins.x + 1):
            self.mem[self.idx + i] = self.v_regs[i]

    def _load_vregs(self, ins):
        """read registers V0 through Vx (included) from memory starting at location I"""
        for i in range(ins.x + 1):
            self.v_regs[i] = self.mem[self.idx + i]

    def _set_with_flag(self, x, value, flag):
        self.v_regs[0xF] = flag
        self.v_regs[x] = value

    def _goto_next_instruction(self):
        self.pc = (self.pc + 0x2) & 0xFFFF

    # ********** EXECUTION LOOP
    def fetch(self):
        """each instruction is two bytes long, stored big-endian"""
        return self.mem[self.pc] << 8 | self.mem[self.pc + 1]

    @asm
    def execute(self, instruction):
        self.instructions[instruction.op](instruction)

    def _resume(self, key):
        """the awaited key has arrived, store it and leave the blocked state"""
        self.v_regs[self.key_register] = key & 0xF
        self.blocked = False

    def cycle(self):
        """emulate one machine cycle (update timers, fetch opcode, decode opcode, execute opcode)"""
        self.draw = False
        self.timers.update()
        key = self.keypad.first_pressed() if self.blocked else None
        if not self.blocked or key is not None:
            opcode = self.fetch()
            instruction = decode(opcode)     # raises UnknownOpcode before anything changes
            if self.blocked:
                self._resume(key)
            self._goto_next_instruction()
            self.execute(instruction)
        self.buzzer_active = self.timers.st > 0