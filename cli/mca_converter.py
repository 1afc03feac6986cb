# cli/mca_converter.py
import argparse
import os

from core.convert import default_version
from cli.decode_file import decode_file, print_file_info
from cli.encode_file import encode_file

USAGE = ("Usage: mca-convert <mode> <path> [version=4] [loopstart=0] [loopend=0]\n"
         "The optional parameters are only used by mode -e and have a default value.")


def _parse_loop(raw: str | None) -> int:
    # unparsable or negative loop points become 0
    if raw is None:
        return 0
    try:
        value = int(raw)
    except ValueError:
        return 0
    return max(0, value)

def _parse_version(raw: str | None) -> int:
    if raw is None:
        return default_version()
    try:
        version = int(raw)
    except ValueError:
        raise ValueError("Version isn't a valid number!")
    if version < 0:
        raise ValueError("Version can't be negative!")
    return version


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mca-convert",
        description="Convert between MCA (DSP-ADPCM) and 16-bit PCM WAV",
        epilog=USAGE,
    )
    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument("-d", dest="mode", action="store_const", const="decode",
                      help="Decode a mca to wav")
    mode.add_argument("-e", dest="mode", action="store_const", const="encode",
                      help="Encode a wav to mca")
    mode.add_argument("-i", dest="mode", action="store_const", const="info",
                      help="Show header and resolved offsets of a mca")
    parser.add_argument("path", help="Input file")
    parser.add_argument("version", nargs="?", default=None,
                        help="Container version for -e (default 4, or $MCA_VERSION)")
    parser.add_argument("loopstart", nargs="?", default=None)
    parser.add_argument("loopend", nargs="?", default=None)
    parser.add_argument("-o", "--output", default=None,
                        help="Output path (default: <path>.wav / <path>.mca)")
    parser.add_argument("-q", "--quiet", action="store_true",
                        help="Skip the post-encode quality report")
    return parser


def main_cli(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not os.path.exists(args.path):
        print(f"Couldn't open file {args.path}.")
        return 1

    try:
        if args.mode == "decode":
            out = decode_file(args.path, args.output)
        elif args.mode == "encode":
            out = encode_file(
                args.path, args.output,
                version=_parse_version(args.version),
                loop_start=_parse_loop(args.loopstart),
                loop_end=_parse_loop(args.loopend),
                report=not args.quiet,
            )
        else:
            print_file_info(args.path)
            return 0
    except Exception as e:
        print(f"❌ {e}")
        return 1

    if out is None:
        return 1
    print(out)  # allow callers to capture the path
    return 0


if __name__ == "__main__":
    raise SystemExit(main_cli())
