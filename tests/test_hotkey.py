from voicetype.core.activation import KeySource
from voicetype.hotkey import HotkeyListener, normalize_hotkey


def test_normalize_hotkey():
    assert normalize_hotkey("CTRL") == "ctrl"
    assert normalize_hotkey("fn") == "alt_r"
    assert normalize_hotkey("hyper") == "alt_r"


def test_left_and_right_modifiers_count_as_one_key():
    samples = []
    listener = HotkeyListener("ctrl", lambda source, pressed: samples.append((source, pressed)))
    listener._targets = {"ctrl_l", "ctrl_r"}

    listener._on_press("ctrl_l")
    listener._on_press("ctrl_l")  # auto-repeat
    listener._on_press("ctrl_r")
    listener._on_press("a")
    listener._on_release("ctrl_l")
    listener._on_release("ctrl_r")
    listener._on_release("a")

    assert samples == [(KeySource.PRIVILEGED, True), (KeySource.PRIVILEGED, False)]
