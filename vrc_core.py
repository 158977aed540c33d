# vrc_core.py

import logging
import numbers
import re
from dataclasses import dataclass
from enum import Enum

import numpy as np

logger = logging.getLogger(__name__)

# =========================
# Konstanten
# =========================

DATA_BITS = 8
FRAME_BITS = DATA_BITS + 1     # 8 Datenbits + 1 Paritätsbit
PARITY_INDEX = DATA_BITS       # 9. Bit

DEFAULT_FRAME_COUNT = 3
DEFAULT_FRAMES = "010010000 011010011 011001010"   # "H", "i", "e"

FRAME_RE = re.compile(r"^[01]{%d}$" % FRAME_BITS)


class Parity(str, Enum):
    EVEN = "even"
    ODD = "odd"

    @property
    def label(self) -> str:
        return self.value.capitalize()


DEFAULT_PARITY = Parity.EVEN


def coerce_parity(value) -> Parity:
    """'even' / 'ODD' / Parity.EVEN -> Parity"""
    if isinstance(value, Parity):
        return value
    try:
        return Parity(str(value).strip().lower())
    except ValueError:
        raise ValueError(f"unknown parity convention: {value!r} (use 'even' or 'odd')") from None


# =========================
# Fehler
# =========================

class VRCError(Exception):
    pass


class ParseError(VRCError):
    pass


class EmptyInput(ParseError):
    def __init__(self):
        super().__init__("Input cannot be empty.")


class MalformedFrame(ParseError):
    def __init__(self, token: str):
        self.token = token
        super().__init__(
            f'Invalid {FRAME_BITS}-bit frame: "{token}". Please use {FRAME_BITS}-bit blocks '
            f"(e.g., 101010101) separated by spaces."
        )


class EmptyFrameSet(VRCError):
    def __init__(self):
        super().__init__("Cannot simulate error on an empty frame set.")


# =========================
# Ergebnistypen
# =========================

@dataclass(frozen=True)
class BitMutation:
    frame_index: int
    bit_index: int


@dataclass(frozen=True)
class CheckResult:
    index: int
    data_bits: tuple
    received_parity: int
    expected_parity: int
    ones: int
    mismatch: bool
    explanation: tuple


@dataclass(frozen=True)
class CheckReport:
    results: tuple
    convention: Parity

    @property
    def mismatch_count(self) -> int:
        return sum(1 for r in self.results if r.mismatch)

    @property
    def ok(self) -> bool:
        return self.mismatch_count == 0

    @property
    def mismatches(self) -> tuple:
        return tuple(r.index for r in self.results if r.mismatch)

    @property
    def summary(self) -> str:
        if not self.results:
            return "No frames to check."
        if self.ok:
            return "All clear! No errors were detected in the received frames."
        return f"Error! {self.mismatch_count} frame(s) failed the parity check."


# =========================
# Hilfsfunktionen Bits/Text
# =========================

def _as_frames(frames) -> np.ndarray:
    arr = np.asarray(frames, dtype=np.uint8)
    if arr.ndim == 1 and arr.size == FRAME_BITS:
        arr = arr.reshape(1, FRAME_BITS)
    if arr.size == 0:
        return np.empty((0, FRAME_BITS), dtype=np.uint8)
    if arr.ndim != 2 or arr.shape[1] != FRAME_BITS:
        raise ValueError(f"expected frames of {FRAME_BITS} bits, got shape {arr.shape}")
    return arr


def bits_to_str(bits) -> str:
    return "".join(str(int(b)) for b in bits)


def format_frames(frames) -> str:
    """Frames -> kanonischer Text, durch genau ein Leerzeichen getrennt."""
    return " ".join(bits_to_str(f) for f in _as_frames(frames))


def render_frame(frame, index: int, mutation: BitMutation = None, corrections=()) -> str:
    """
    Eine Tabellenzelle: Datenbits | Paritätsbit.
    Gekipptes Bit -> [b], korrigiertes Paritätsbit -> (b).
    """
    cells = []
    for j, bit in enumerate(frame):
        s = str(int(bit))
        if mutation is not None and mutation.frame_index == index and mutation.bit_index == j:
            s = f"[{s}]"
        elif j == PARITY_INDEX and index in corrections:
            s = f"({s})"
        else:
            s = f" {s} "
        cells.append(s)
    return "".join(cells[:PARITY_INDEX]) + " |" + cells[PARITY_INDEX]


# =========================
# Parität
# =========================

def compute_parity_bit(data_bits, convention) -> int:
    convention = coerce_parity(convention)
    data = np.asarray(data_bits, dtype=np.uint8)
    if data.shape != (DATA_BITS,):
        raise ValueError(f"expected {DATA_BITS} data bits, got {data.size}")
    ones = int(np.count_nonzero(data))
    if convention is Parity.EVEN:
        return ones % 2
    return 1 - ones % 2


# =========================
# Parser
# =========================

def parse(text: str) -> np.ndarray:
    """
    Whitespace-getrennte 9-Bit-Tokens -> FrameSet (n x 9, uint8).
    Alles oder nichts: ein fehlerhaftes Token verwirft die ganze Eingabe.
    """
    tokens = (text or "").split()
    if not tokens:
        raise EmptyInput()

    for tok in tokens:
        if not FRAME_RE.match(tok):
            raise MalformedFrame(tok)

    frames = np.array([[int(c) for c in tok] for tok in tokens], dtype=np.uint8)
    logger.debug("parsed %d frame(s)", len(frames))
    return frames


# =========================
# Empfänger: Prüfung
# =========================

def _explain(ones: int, expected: int, received: int, convention: Parity, mismatch: bool) -> tuple:
    return (
        f"Receiver Mode: {convention.label} Parity",
        f"Count 1s in Data: Found {ones} one(s).",
        f"Calculate Expected Parity: For '{convention.value}' parity, "
        f"{ones} ones requires a parity bit of {expected}.",
        f"Compare: Expected Parity ({expected}) vs Received Parity ({received}).",
        "Result: ERROR DETECTED" if mismatch else "Result: OK - Bits match.",
    )


def check(frames, convention) -> CheckReport:
    convention = coerce_parity(convention)
    arr = _as_frames(frames)

    results = []
    for i, frame in enumerate(arr):
        data = frame[:PARITY_INDEX]
        received = int(frame[PARITY_INDEX])
        expected = compute_parity_bit(data, convention)
        ones = int(np.count_nonzero(data))
        mismatch = expected != received
        results.append(CheckResult(
            index=i,
            data_bits=tuple(int(b) for b in data),
            received_parity=received,
            expected_parity=expected,
            ones=ones,
            mismatch=mismatch,
            explanation=_explain(ones, expected, received, convention, mismatch),
        ))

    report = CheckReport(results=tuple(results), convention=convention)
    logger.debug("check (%s): %d frame(s), %d mismatch(es)",
                 convention.value, len(results), report.mismatch_count)
    return report


# =========================
# Sender: Zufallsframes
# =========================

def generate(frame_count: int = DEFAULT_FRAME_COUNT, convention=DEFAULT_PARITY, rng=None) -> np.ndarray:
    """
    frame_count Frames mit je 8 gleichverteilten Zufallsbits + passender Parität.
    rng: np.random.Generator (oder alles mit integers(low, high, size)).
    """
    convention = coerce_parity(convention)
    if isinstance(frame_count, bool) or not isinstance(frame_count, numbers.Integral) or frame_count < 1:
        raise ValueError(f"frame_count must be a positive integer, got {frame_count!r}")
    if rng is None:
        rng = np.random.default_rng()

    frames = np.empty((int(frame_count), FRAME_BITS), dtype=np.uint8)
    for i in range(int(frame_count)):
        data = np.asarray(rng.integers(0, 2, size=DATA_BITS), dtype=np.uint8)
        frames[i, :PARITY_INDEX] = data
        frames[i, PARITY_INDEX] = compute_parity_bit(data, convention)

    logger.debug("generated %d frame(s) with %s parity", len(frames), convention.value)
    return frames


# =========================
# "Kanal": Einzelbitfehler
# =========================

def simulate_single_bit_error(frames, rng=None):
    """
    Kippt genau ein Bit: Frame gleichverteilt, Bitposition gleichverteilt
    über alle 9 Stellen (Paritätsbit eingeschlossen).
    Gibt (neues FrameSet, BitMutation) zurück.
    """
    arr = _as_frames(frames)
    if len(arr) == 0:
        raise EmptyFrameSet()
    if rng is None:
        rng = np.random.default_rng()

    frame_index = int(rng.integers(0, len(arr)))
    bit_index = int(rng.integers(0, FRAME_BITS))

    out = arr.copy()
    out[frame_index, bit_index] ^= 1

    logger.debug("flipped frame %d bit %d", frame_index, bit_index)
    return out, BitMutation(frame_index, bit_index)


# =========================
# Paritätsbits neu berechnen
# =========================

def correct(frames, convention):
    """
    Ersetzt das 9. Bit jedes Frames durch die berechnete Parität.
    Datenbits bleiben unverändert. Gibt (FrameSet, geänderte Indizes) zurück.
    """
    convention = coerce_parity(convention)
    arr = _as_frames(frames)

    out = arr.copy()
    changed = []
    for i, frame in enumerate(arr):
        parity = compute_parity_bit(frame[:PARITY_INDEX], convention)
        if parity != frame[PARITY_INDEX]:
            changed.append(i)
        out[i, PARITY_INDEX] = parity

    logger.debug("corrected %d of %d parity bit(s) (%s)", len(changed), len(arr), convention.value)
    return out, tuple(changed)


# =========================
# Erklärung
# =========================

ALGORITHM_STEPS = (
    "How VRC (Parity Check) Works",
    "1. The Receiver gets a frame (8 data bits + 1 parity bit).",
    "2. A Parity Mode (Even or Odd) is agreed upon.",
    "3. The Receiver counts the number of 1s in the 8 data bits.",
    "4. If Even Parity:",
    "     - count of 1s even (0, 2, 4, 6, 8) -> expected parity bit 0",
    "     - count of 1s odd (1, 3, 5, 7)     -> expected parity bit 1",
    "   If Odd Parity:",
    "     - count of 1s even (0, 2, 4, 6, 8) -> expected parity bit 1",
    "     - count of 1s odd (1, 3, 5, 7)     -> expected parity bit 0",
    "5. The Receiver compares its Expected Parity Bit with the Received Parity Bit (the 9th bit).",
    "6. If they match, the frame is OK. If they do not match, an Error is detected.",
)
