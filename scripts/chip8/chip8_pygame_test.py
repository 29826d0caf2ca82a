import os
import tempfile
import unittest
from unittest import mock

import pygame

from chip8 import Chip8
from chip8_pygame import BLUE, CPU_HZ, LIGHT_BLUE, Buzzer, Keypad, Screen, get_args, load_rom, main


def key_event(kind, key):
    return pygame.event.Event(kind, key=key)


class TestKeypad(unittest.TestCase):
    def test_press_and_release(self):
        keypad = Keypad()
        self.assertTrue(keypad.handle(key_event(pygame.KEYDOWN, pygame.K_a)))
        self.assertTrue(keypad.is_pressed(0xA))
        self.assertTrue(keypad.handle(key_event(pygame.KEYUP, pygame.K_a)))
        self.assertFalse(keypad.is_pressed(0xA))

    def test_numpad_maps_like_digits(self):
        keypad = Keypad()
        keypad.handle(key_event(pygame.KEYDOWN, pygame.K_KP7))
        self.assertTrue(keypad.is_pressed(0x7))

    def test_first_pressed_keeps_order(self):
        keypad = Keypad()
        self.assertIsNone(keypad.first_pressed())
        keypad.handle(key_event(pygame.KEYDOWN, pygame.K_3))
        keypad.handle(key_event(pygame.KEYDOWN, pygame.K_f))
        self.assertEqual(keypad.first_pressed(), 0x3)
        keypad.handle(key_event(pygame.KEYUP, pygame.K_3))
        self.assertEqual(keypad.first_pressed(), 0xF)

    def test_unmapped_keys_are_ignored(self):
        keypad = Keypad()
        self.assertFalse(keypad.handle(key_event(pygame.KEYDOWN, pygame.K_z)))
        self.assertFalse(keypad.handle(pygame.event.Event(pygame.QUIT)))
        self.assertIsNone(keypad.first_pressed())

    def test_drives_wait_for_key(self):
        keypad = Keypad()
        chip = Chip8(keypad)
        chip.load_program(b"\xF2\x0A\x60\x01")
        chip.cycle()
        keypad.handle(key_event(pygame.KEYDOWN, pygame.K_9))
        chip.cycle()
        self.assertEqual(chip.v_regs[2], 0x9)
        self.assertFalse(chip.blocked)


class TestScreen(unittest.TestCase):
    def test_render_scales_pixels(self):
        surface = pygame.Surface((64 * 2, 32 * 2), 0, 32)
        screen = Screen(s=2, surface=surface)
        framebuffer = [[False] * 64 for _ in range(32)]
        framebuffer[0][1] = True
        screen.render(framebuffer)
        self.assertEqual(surface.get_at((2, 0)), LIGHT_BLUE)
        self.assertEqual(surface.get_at((3, 1)), LIGHT_BLUE)
        self.assertEqual(surface.get_at((0, 0)), BLUE)
        self.assertEqual(surface.get_at((4, 0)), BLUE)


class TestBuzzer(unittest.TestCase):
    def test_plays_on_edges_only(self):
        sound = mock.Mock()
        buzzer = Buzzer(sound)
        buzzer.update(True)
        buzzer.update(True)
        sound.play.assert_called_once_with(loops=-1)
        buzzer.update(False)
        buzzer.update(False)
        sound.stop.assert_called_once_with()

    def test_silent_without_sound(self):
        buzzer = Buzzer()
        buzzer.update(True)
        self.assertTrue(buzzer.active)


class TestLoader(unittest.TestCase):
    def test_load_rom(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "test.ch8")
            with open(path, mode='wb') as f:
                f.write(b"\x00\xE0\x12\x00")
            self.assertEqual(load_rom(path), b"\x00\xE0\x12\x00")

    def test_args(self):
        args = get_args(["-f", "pong.ch8"])
        self.assertEqual((args.file, args.hz, args.beep), ("pong.ch8", CPU_HZ, None))
        args = get_args(["--file", "pong.ch8", "--hz", "1000", "--scale", "8"])
        self.assertEqual((args.hz, args.scale), (1000, 8))

    def test_missing_rom_exits_before_pygame_starts(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "missing.ch8")
            with mock.patch.object(pygame, "init") as init:
                with self.assertRaises(SystemExit) as ctx:
                    main(["-f", path])
        init.assert_not_called()
        self.assertIn("COULD NOT BE LOADED", str(ctx.exception.code))

    def test_oversized_rom_exits_before_pygame_starts(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "huge.ch8")
            with open(path, mode='wb') as f:
                f.write(bytes(4096))
            with mock.patch.object(pygame, "init") as init:
                with self.assertRaises(SystemExit) as ctx:
                    main(["-f", path])
        init.assert_not_called()
        self.assertIn("ROM too large", str(ctx.exception.code))


if __name__ == "__main__":
    unittest.main()
