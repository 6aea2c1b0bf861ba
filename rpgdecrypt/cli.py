import argparse
import logging
import sys
import traceback

from . import __version__, pipeline
from .errors import KeyResolutionError, RpgDecryptError
from .filetypes import AssetType
from .keys import parse_key, resolve_key
from .output import OutputPolicy
from .system_json import SystemJson

_FORMATTER = logging.Formatter("[%(levelname)s] %(name)s: %(message)s")
_STDOUT_HANDLER = logging.StreamHandler(sys.stdout)
_STDOUT_HANDLER.setFormatter(_FORMATTER)
_LOGGER = logging.getLogger("rpgdecrypt")

debug_mode = False


def log_setup(debug):
    global debug_mode
    debug_mode = debug
    if _STDOUT_HANDLER not in _LOGGER.handlers:
        _LOGGER.addHandler(_STDOUT_HANDLER)
    _LOGGER.setLevel(logging.DEBUG if debug else logging.WARNING)
    _STDOUT_HANDLER.setLevel(logging.DEBUG if debug else logging.WARNING)


def build_policy(args):
    if args.replace:
        return OutputPolicy.replace()
    if args.output:
        return OutputPolicy.output(args.output)
    if args.flatten:
        return OutputPolicy.flatten(args.flatten)
    return OutputPolicy.next_to()


def print_banner(args, policy):
    print(f"RPG Maker Asset Decrypter v{__version__}")
    print(f"========================")
    print(f"Directory: {args.directory}")
    print(f"Mode: {'scan' if args.scan else policy.placement.value}")
    if policy.directory is not None and not args.scan:
        print(f"Output: {policy.directory}")
    if debug_mode:
        print(f"Debug: ENABLED")
    print()


def print_counts(report):
    print(f"Scanned {report.scanned} file(s), {report.eligible} decryptable:")
    for asset_type in AssetType:
        print(f"  - {asset_type.name.lower()}: {report.by_type.get(asset_type, 0)}")


def print_progress(entry, report):
    done = report.succeeded + report.failed
    if entry.ok:
        print(f"[{done}/{report.eligible}] {entry.source} -> {entry.destination}")
    else:
        print(f"[{done}/{report.eligible}] ✗ {entry.source}: {entry.reason}")


def print_summary(report):
    print()
    plain = f" ({report.passed_through} already plain)" if report.passed_through else ""
    print(f"✓ Decrypted {report.succeeded} of {report.eligible} file(s){plain} in {report.elapsed:.2f}s")
    if report.system_json_updated:
        print("✓ Marked System.json as decrypted")
    if report.failures:
        print(f"✗ {report.failed} file(s) failed:")
        for entry in report.failures:
            print(f"   -> {entry.source}: {entry.reason}")


def cmd_decrypt(args):
    policy = build_policy(args)
    if not args.quiet:
        print_banner(args, policy)

    if args.scan:
        report = pipeline.scan(args.directory)
        print_counts(report)
        if not args.quiet:
            for path in report.files:
                print(f"   {path}")
        return 0

    key = parse_key(args.with_key) if args.with_key else resolve_key(args.directory)
    if args.key:
        print(key.hex)
        return 0
    if not args.quiet:
        origin = f" ({key.source}: {key.origin})" if key.origin else f" ({key.source})"
        print(f"Encryption key found: {key.hex[:8]}...{origin}")

    report = pipeline.run(
        args.directory,
        policy,
        key=key,
        jobs=args.jobs,
        update_system_json=not args.no_update_system_json,
        progress=None if args.quiet else print_progress,
    )
    print_summary(report)
    return 0


def cmd_info(args):
    report = pipeline.scan(args.directory)
    system = SystemJson.find(args.directory)
    if system is None:
        print("System.json not found. Not a valid RPG Maker MV/MZ project.")
    else:
        print(f"Found Game: {system.game_title or ''}")
        print(f"\n   System.json: {system.path}")
        print(f"   Has encrypted audio: {system.has_encrypted_audio}")
        print(f"   Has encrypted imgs: {system.has_encrypted_images}")

    for asset_type in AssetType:
        print(f"   Encrypted {asset_type.name.lower()} files: {report.by_type.get(asset_type, 0)}")

    try:
        key = resolve_key(args.directory)
        print(f"   Encryption key: {key.hex} ({key.source})\n")
    except KeyResolutionError as e:
        print(f"   Encryption key: not found ({e})\n")
    return 0


def cmd_decrypt_file(args):
    dest = pipeline.decrypt_file(args.file, parse_key(args.with_key), args.output)
    print(f"✓ Writing to {dest}")
    return 0


def cmd_encrypt_file(args):
    dest = pipeline.encrypt_file(args.file, parse_key(args.with_key), args.output, mz=args.mz)
    print(f"✓ Writing to {dest}")
    return 0


def cmd_restore_img(args):
    dest = pipeline.restore_image(args.file, args.output)
    print(f"✓ Writing to {dest}")
    return 0


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog='rpgdecrypt',
        description='Decrypt RPG Maker MV/MZ game assets.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Encrypted extensions:
  .rpgmvp / .png_   - images (restored to .png)
  .rpgmvo / .ogg_   - audio  (restored to .ogg)
  .rpgmvm / .m4a_   - video  (restored to .m4a)

Examples:
  %(prog)s decrypt -d /path/to/game
  %(prog)s decrypt -d /path/to/game --output ./assets
  %(prog)s decrypt -d /path/to/game --flatten ./assets -q
  %(prog)s decrypt -d /path/to/game --key
  %(prog)s decrypt-file actor1.rpgmvp --with-key 0f0f0f0f0f0f0f0f0f0f0f0f0f0f0f0f
  %(prog)s restore-img actor1.rpgmvp
        """
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--debug', help='Enable debug output', action='store_true')
    sub = parser.add_subparsers(dest='command', metavar='command')
    sub.required = True

    p = sub.add_parser('decrypt', help='Decrypt an entire game')
    p.add_argument('-d', '--directory', type=str, required=True,
                   help='Directory containing the game files')
    placement = p.add_mutually_exclusive_group()
    placement.add_argument('--replace', action='store_true',
                           help='Delete the encrypted files after writing the decrypted ones')
    placement.add_argument('--output', type=str, metavar='DIR',
                           help='Write into DIR, keeping the directory structure; the game is left untouched')
    placement.add_argument('--flatten', type=str, metavar='DIR',
                           help='Write every file directly into DIR; the game is left untouched')
    p.add_argument('-q', '--quiet', action='store_true',
                   help="Don't print individual files being decrypted")
    p.add_argument('-s', '--scan', action='store_true',
                   help='Only count the decryptable files, then exit')
    p.add_argument('-k', '--key', action='store_true',
                   help='Print the encryption key and exit')
    p.add_argument('--with-key', type=str, metavar='HEX',
                   help='Use this key instead of looking it up')
    p.add_argument('-j', '--jobs', type=int, default=None,
                   help='Number of files processed at once')
    p.add_argument('--no-update-system-json', action='store_true',
                   help="Don't mark the game as decrypted in System.json")
    p.set_defaults(func=cmd_decrypt)

    p = sub.add_parser('info', help='Print information about a game')
    p.add_argument('-d', '--directory', type=str, required=True,
                   help='Directory containing the game files')
    p.set_defaults(func=cmd_info)

    p = sub.add_parser('decrypt-file', help='Decrypt a single file with a key')
    p.add_argument('file')
    p.add_argument('--with-key', type=str, required=True, metavar='HEX')
    p.add_argument('-o', '--output', type=str)
    p.set_defaults(func=cmd_decrypt_file)

    p = sub.add_parser('encrypt-file', help='Encrypt a single file with a key')
    p.add_argument('file')
    p.add_argument('--with-key', type=str, required=True, metavar='HEX')
    p.add_argument('-o', '--output', type=str)
    p.add_argument('--mz', action='store_true', help='Use MZ extensions (.png_) instead of MV (.rpgmvp)')
    p.set_defaults(func=cmd_encrypt_file)

    p = sub.add_parser('restore-img', help='Restore an encrypted image without the key')
    p.add_argument('file')
    p.add_argument('-o', '--output', type=str)
    p.set_defaults(func=cmd_restore_img)

    args = parser.parse_args(argv)
    if getattr(args, 'jobs', None) is not None and args.jobs < 1:
        parser.error('--jobs must be at least 1')
    return args


def main(argv=None):
    args = parse_args(argv)
    log_setup(args.debug)

    try:
        return args.func(args)
    except KeyboardInterrupt:
        print("\n\nOperation cancelled by user.")
        return 130
    except (RpgDecryptError, OSError) as e:
        print(f"\nError: {e}")
        if debug_mode:
            traceback.print_exc()
        return 1
