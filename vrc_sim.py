import argparse
import logging
import os
import sys

import numpy as np

from vrc_core import (
    ALGORITHM_STEPS,
    DEFAULT_FRAME_COUNT,
    DEFAULT_FRAMES,
    DEFAULT_PARITY,
    VRCError,
    check,
    coerce_parity,
    correct,
    format_frames,
    generate,
    parse,
    render_frame,
    simulate_single_bit_error,
)

########################################
# Parameter
########################################

ENV_PARITY = "VRC_PARITY"      # Default-Paritaet aus der Umgebung

EXIT_OK       = 0
EXIT_MISMATCH = 1
EXIT_INPUT    = 2

SEPARATOR = "-" * 60


def resolve_parity(value=None):
    """Explizite Angabe vor $VRC_PARITY vor DEFAULT_PARITY."""
    if value is None:
        value = os.environ.get(ENV_PARITY, DEFAULT_PARITY.value)
    return coerce_parity(value)


########################################
# Ausgabe
########################################

def print_table(frames, flags=None, mutation=None, corrections=()):
    print(" #   Received Frame (Data + Parity)      Status")
    for i, frame in enumerate(frames):
        status = ""
        if flags is not None:
            status = "Error!" if flags[i] else "OK"
        print(f"{i + 1:>2}  {render_frame(frame, i, mutation, corrections)}   {status}")


def print_report(frames, report):
    for r in report.results:
        data = "".join(str(b) for b in r.data_bits)
        print(f"[Row {r.index + 1}]: Received Frame: {data} [Parity: {r.received_parity}]")
        for n, step in enumerate(r.explanation[:-1], start=1):
            print(f"  {n}. {step}")
        print(f"  {r.explanation[-1]}")
    print(SEPARATOR)
    print_table(frames, flags=[r.mismatch for r in report.results])
    print(SEPARATOR)
    print(report.summary)


def print_algorithm():
    for line in ALGORITHM_STEPS:
        print(line)


########################################
# Kommandos
########################################

def cmd_check(text, parity):
    frames = parse(text)
    report = check(frames, parity)
    print_report(frames, report)
    return EXIT_OK if report.ok else EXIT_MISMATCH


def cmd_generate(count, parity, rng):
    frames = generate(count, parity, rng=rng)
    print(format_frames(frames))
    return frames


def cmd_flip(text, rng):
    frames, mutation = simulate_single_bit_error(parse(text), rng=rng)
    print(format_frames(frames))
    print_table(frames, mutation=mutation)
    print(f"Flipped frame {mutation.frame_index + 1}, bit {mutation.bit_index + 1}.")
    return frames


def cmd_correct(text, parity):
    frames, changed = correct(parse(text), parity)
    print(format_frames(frames))
    print_table(frames, corrections=changed)
    if changed:
        rows = ", ".join(str(i + 1) for i in changed)
        print(f"Corrected parity bit in frame(s): {rows}")
    else:
        print("All parity bits were already correct.")
    return frames


########################################
# Interaktive Sitzung
########################################

HELP = """Commands:
  set <frames...>   replace the current frames
  mode even|odd     select the parity convention
  check             check frames (receiver)
  gen [n]           generate n random frames (default 3)
  flip              simulate a 1-bit error
  fix               correct parity bits
  show              show current frames
  algo              show the VRC algorithm
  help              this text
  quit              leave"""


class Session:
    """Haelt den aktuellen Frame-Text und die Paritaet, wie die Web-Oberflaeche."""

    def __init__(self, text=DEFAULT_FRAMES, parity=DEFAULT_PARITY, rng=None):
        self.text = text
        self.parity = coerce_parity(parity)
        self.rng = rng if rng is not None else np.random.default_rng()

    def execute(self, line):
        """Fuehrt eine Zeile aus. False -> Sitzung beenden."""
        args = line.split()
        if not args:
            return True
        cmd, rest = args[0].lower(), args[1:]

        try:
            if cmd in ("quit", "exit", "q"):
                return False
            elif cmd == "help":
                print(HELP)
            elif cmd == "set":
                text = " ".join(rest)
                parse(text)
                self.text = text
                print(f"Frames: {self.text}")
            elif cmd == "mode":
                if not rest:
                    print(f"Parity: {self.parity.value}")
                else:
                    self.parity = coerce_parity(rest[0])
                    print(f"Parity: {self.parity.value}")
            elif cmd == "check":
                cmd_check(self.text, self.parity)
            elif cmd == "gen":
                count = int(rest[0]) if rest else DEFAULT_FRAME_COUNT
                self.text = format_frames(cmd_generate(count, self.parity, self.rng))
            elif cmd == "flip":
                self.text = format_frames(cmd_flip(self.text, self.rng))
            elif cmd == "fix":
                self.text = format_frames(cmd_correct(self.text, self.parity))
            elif cmd == "show":
                print(f"Frames: {self.text}")
                print(f"Parity: {self.parity.value}")
            elif cmd == "algo":
                print_algorithm()
            else:
                print(f"Unknown command: {cmd} (try 'help')")
        except (VRCError, ValueError) as e:
            print(f"Error: {e}")
        return True

    def run(self, stdin=None):
        stdin = stdin or sys.stdin
        print("VRC Simulator - type 'help' for commands (Ctrl+C to leave)")
        print(f"Frames: {self.text}")
        print(f"Parity: {self.parity.value}")
        try:
            while True:
                print("vrc> ", end="", flush=True)
                line = stdin.readline()
                if not line:
                    break
                if not self.execute(line):
                    break
        except KeyboardInterrupt:
            pass
        print("\nSession ended.")


########################################
# Hauptprogramm
########################################

def build_parser():
    p = argparse.ArgumentParser(
        prog="vrc-sim",
        description="Vertical Redundancy Check (VRC) simulator for 9-bit frames.",
    )
    p.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    sub = p.add_subparsers(dest="command")

    def add_parity(sp):
        sp.add_argument("-p", "--parity", choices=["even", "odd"], default=None,
                        help=f"parity convention (default: env {ENV_PARITY} or {DEFAULT_PARITY.value})")

    def add_seed(sp):
        sp.add_argument("--seed", type=int, default=None, help="seed for the random generator")

    sp = sub.add_parser("check", help="check frames (receiver)")
    sp.add_argument("frames", nargs="+")
    add_parity(sp)

    sp = sub.add_parser("generate", help="generate random valid frames")
    sp.add_argument("-n", "--count", type=int, default=DEFAULT_FRAME_COUNT)
    add_parity(sp)
    add_seed(sp)

    sp = sub.add_parser("flip", help="simulate a single-bit error")
    sp.add_argument("frames", nargs="+")
    add_seed(sp)

    sp = sub.add_parser("correct", help="recompute parity bits")
    sp.add_argument("frames", nargs="+")
    add_parity(sp)

    sub.add_parser("algorithm", help="explain the VRC algorithm")

    sp = sub.add_parser("interactive", help="interactive session (default)")
    sp.add_argument("--frames", default=DEFAULT_FRAMES)
    add_parity(sp)
    add_seed(sp)

    return p


def main(argv=None):
    args = build_parser().parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("vrc_core").setLevel(level)

    rng = np.random.default_rng(getattr(args, "seed", None))

    try:
        if args.command in ("check", "generate", "correct", "interactive", None):
            parity = resolve_parity(getattr(args, "parity", None))

        if args.command == "check":
            return cmd_check(" ".join(args.frames), parity)
        elif args.command == "generate":
            cmd_generate(args.count, parity, rng)
        elif args.command == "flip":
            cmd_flip(" ".join(args.frames), rng)
        elif args.command == "correct":
            cmd_correct(" ".join(args.frames), parity)
        elif args.command == "algorithm":
            print_algorithm()
        elif args.command == "interactive":
            Session(args.frames, parity, rng).run()
        else:
            Session(DEFAULT_FRAMES, parity, rng).run()
    except (VRCError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INPUT

    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
