import re
import sys

import logging
logger = logging.getLogger("fodge")
logextra = {'where': ''}
VERBOSE = logging.INFO - 1
logging.addLevelName(VERBOSE, "VERBOSE")
# From https://stackoverflow.com/questions/384076/how-can-i-color-python-logging-output
# ... with some customization
class ColorFormatter(logging.Formatter):

    def __init__(self, format):
        super().__init__()

        BLACK, RED, GREEN, YELLOW, BLUE, MAGENTA, CYAN, WHITE = range(8)
        RESET = "\033[0m"
        COLOR = "\033[3%dm"
        BOLD = "\033[1m"
        REVERSE = "\033[7m"

        self.formats = {
            logging.DEBUG: COLOR%BLUE + format + RESET,
                    VERBOSE: COLOR%CYAN + format + RESET,
            logging.INFO: COLOR%WHITE + BOLD + format + RESET,
            logging.WARNING: COLOR%YELLOW + BOLD + format + RESET,
            logging.ERROR: COLOR%RED + BOLD + format + RESET,
            logging.CRITICAL: COLOR%RED + REVERSE + format + RESET,
            None: format
        }

    def format(self, record):
        return logging.Formatter(fmt=self.formats.get(record.levelno, self.formats[None])).format(record)

AUTHOR = "FODGE, by Mattias Sjö 2019"
VERSION = "2.1"

class FodgeError(Exception):
    pass

# Like ', '.join(items) but with final "and" (Oxford comma by default)
def and_join(items, oxford=True):
    items = list(items)
    match len(items):
        case 0:
            return ""
        case 1:
            return items[0]
        case 2:
            return f"{items[0]} and {items[1]}"
        case _:
            return f"{', '.join(items[:-1])}{',' if oxford else ''} and {items[-1]}"

def split_string(split):
    return ','.join(str(s) for s in split)

# Convert power-counting orders between O(p^X) format and NXLO format
def order_OtoN(order):
    if order < 2 or order % 2:
        raise FodgeError(f"Invalid power-counting order: O(p^{order})")
    if order > 6:
        return f"N{order//2-1}LO"
    else:
        return f"{'N'*(order//2-1)}LO"
def order_NtoO(order):
    if re.fullmatch('N*LO', order):
        return 2*len(order) - 2
    elif re.fullmatch('N[0-9]+LO', order):
        return 2*int(order[1:-2]) + 2
    else:
        raise FodgeError(f"Invalid power-counting order: '{order}'")

def check_legs(n_legs):
    if n_legs < 4 or n_legs % 2:
        raise FodgeError(f"Invalid number of legs: {n_legs} (must be even and >= 4)")
    return n_legs

def parse_flav_splits(string, n_legs=None):
    """
    Read flavour splits written as comma-separated integers, several splits
    separated by whitespace, e.g. "2,2,4 3,5".

    Each split is returned sorted. If n_legs is given, all splits must sum to it.
    """

    splits = []
    for token in string.split():
        split = []
        for number in token.split(','):
            if not number:
                raise FodgeError(f"Missing number in flavour split '{token}'")
            if not number.isdigit():
                raise FodgeError(f"Unknown character in flavour split '{token}'")
            if int(number) == 0:
                raise FodgeError(f"Zero-sized trace in flavour split '{token}'")
            split.append(int(number))

        if n_legs is not None and sum(split) != n_legs:
            raise FodgeError(f"Flavour split '{token}' does not add up to {n_legs} legs")
        splits.append(sorted(split))

    if not splits:
        raise FodgeError("Empty flavour split specification")

    return splits

def setup_logging(args):

    if args.quiet:
        level=logging.ERROR
        format="[%(levelname)s] %(message)s"
    elif args.debug or args.verbose:
        level=logging.DEBUG if args.debug else VERBOSE
        format="[%(levelname)7s/%(where)s] %(message)s"
    else:
        level=logging.INFO
        format="[%(levelname)7s] %(message)s"

    handler = logging.StreamHandler()
    if sys.stdout.isatty():
        handler.setFormatter(ColorFormatter(format))
    else:
        handler.setFormatter(logging.Formatter(format))

    logging.basicConfig(level=level, handlers=[handler], force=True)
