import argparse
import os
import sys

os.environ["PYGAME_HIDE_SUPPORT_PROMPT"] = "no welcome message"   # this env var disable pygame's welcome message when imported
import pygame
from pygame.locals import (
    K_0, K_1, K_2, K_3,
    K_4, K_5, K_6, K_7,
    K_8, K_9, K_a, K_b,
    K_c, K_d, K_e, K_f,
    K_KP0, K_KP1, K_KP2, K_KP3,
    K_KP4, K_KP5, K_KP6, K_KP7,
    K_KP8, K_KP9,
)

from chip8 import DEBUG, SCREEN_HEIGHT, SCREEN_WIDTH, Chip8
from chip8_errors import Chip8Error


# ******************** STATIC SECTION
KEY_MAPPINGS = {
    K_0: 0x0, K_KP0: 0x0,
    K_1: 0x1, K_KP1: 0x1,
    K_2: 0x2, K_KP2: 0x2,
    K_3: 0x3, K_KP3: 0x3,
    K_4: 0x4, K_KP4: 0x4,
    K_5: 0x5, K_KP5: 0x5,
    K_6: 0x6, K_KP6: 0x6,
    K_7: 0x7, K_KP7: 0x7,
    K_8: 0x8, K_KP8: 0x8,
    K_9: 0x9, K_KP9: 0x9,
    K_a: 0xA,
    K_b: 0xB,
    K_c: 0xC,
    K_d: 0xD,
    K_e: 0xE,
    K_f: 0xF,
}

CPU_HZ = 500
SCALE = 15
BLUE = pygame.Color(80,69,155,255)
LIGHT_BLUE = pygame.Color(136,126,203,255)


# ******************** UTILITIES SECTION
def get_args(argv=None):
    parser = argparse.ArgumentParser(description="CHIP-8 emulator")
    parser.add_argument("-f", "--file", required=True, help="input rom file")
    parser.add_argument("--hz", type=int, default=CPU_HZ, help="instructions executed per second")
    parser.add_argument("--scale", type=int, default=SCALE, help="size in pixels of a CHIP-8 pixel")
    parser.add_argument("--beep", help="sound file looped while the buzzer is active")
    return parser.parse_args(argv)

def load_rom(path):
    """read the ROM file at path and return its raw bytes"""
    with open(path, mode='rb') as f:
        rom = f.read()
    if DEBUG: print(f"The ROM at path {path} has been read successfully ({len(rom)} bytes)")
    return rom

def load_beep(path):
    pygame.mixer.init()
    return pygame.mixer.Sound(path)


# ******************** I/O SECTION
class Screen:
    """draws the 64x32 CHIP-8 framebuffer on a pygame surface, each CHIP-8 pixel being scale x scale pixels"""
    def __init__(self, w=SCREEN_WIDTH, h=SCREEN_HEIGHT, s=SCALE, bg_color=BLUE, fg_color=LIGHT_BLUE, surface=None):
        self.w, self.h, self.scale = w, h, s
        self.background = bg_color
        self.foreground = fg_color
        if surface is None:
            surface = pygame.display.set_mode((w * self.scale, h * self.scale))
        self.surface = surface
        self.surface.fill(self.background)

    def render(self, framebuffer):
        self.surface.fill(self.background)
        for y, row in enumerate(framebuffer):
            for x, lit in enumerate(row):
                if lit:
                    pygame.draw.rect(
                        self.surface,
                        self.foreground,
                        (x * self.scale, y * self.scale, self.scale, self.scale)
                    )

    @staticmethod
    def refresh():
        pygame.display.flip()

class Keypad:
    """
    keeps track of the CHIP-8 keys held down from the pygame key events
    is_pressed and first_pressed are what the VM queries
    """
    def __init__(self, mappings=KEY_MAPPINGS):
        self.mappings = mappings
        self.pressed_keys = []      # in the order they were pressed

    def handle(self, event):
        """update the keys state from a pygame event, return True if the event was a CHIP-8 key"""
        if event.type not in (pygame.KEYDOWN, pygame.KEYUP) or event.key not in self.mappings:
            return False
        key = self.mappings[event.key]
        if event.type == pygame.KEYDOWN and key not in self.pressed_keys:
            self.pressed_keys.append(key)
        elif event.type == pygame.KEYUP and key in self.pressed_keys:
            self.pressed_keys.remove(key)
        return True

    def is_pressed(self, key):
        return key in self.pressed_keys

    def first_pressed(self):
        return self.pressed_keys[0] if self.pressed_keys else None

class Buzzer:
    """starts and stops the beep on the edges of the VM buzzer signal, stays silent without a sound"""
    def __init__(self, sound=None):
        self.sound = sound
        self.active = False

    def update(self, active):
        if active == self.active:
            return
        self.active = active
        if self.sound is None:
            return
        if active:
            self.sound.play(loops=-1)
        else:
            self.sound.stop()


# ******************** ENTRY POINT SECTION
def main(argv=None):
    args = get_args(argv)
    # CPU, the ROM is loaded before pygame opens anything
    k = Keypad()
    chip = Chip8(k)
    try:
        chip.load_program(load_rom(args.file))
    except (OSError, Chip8Error) as err:
        sys.exit(f"********** THE ROM AT PATH {args.file} COULD NOT BE LOADED\n{err}")
    # pygame initialization
    pygame.init()
    clock = pygame.time.Clock()
    pygame.display.set_caption(os.path.basename(args.file))
    # IO
    s = Screen(s=args.scale)
    b = Buzzer(load_beep(args.beep) if args.beep else None)
    # emulation loop
    run = True
    while run:
        # one instruction per tick, the timers keep their own 60Hz pace
        clock.tick(args.hz)
        # process user input
        # loop throught the event queue
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                run = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_ESCAPE:
                run = False
            elif event.type == pygame.KEYDOWN and event.key == pygame.K_F5:
                chip.reset()
                s.render(chip.framebuffer)
                s.refresh()
            else:
                k.handle(event)
        try:
            chip.cycle()        # emulate one machine cycle (update timers, fetch opcode, decode opcode, execute opcode)
        except Chip8Error as err:
            b.update(False)
            pygame.quit()
            sys.exit(f"********** THE EMULATOR CRASHED WITH THE FOLLOWING STATE\n{err}\n{chip}")
        b.update(chip.buzzer_active)
        # refresh screen if needed
        if chip.draw:
            s.render(chip.framebuffer)
            s.refresh()
    b.update(False)
    pygame.quit()


if __name__ == "__main__":
    main()
