import sys
import argparse
import traceback

from datetime import datetime
from pathlib import Path
from textwrap import dedent, indent

import sympy as sp

from fodgediagram import Diagram, normalise_mmask
from fodgeutil import (AUTHOR, VERSION, VERBOSE, FodgeError, logextra,
                       and_join, order_OtoN, order_NtoO, check_legs, parse_flav_splits, split_string, setup_logging)

import logging
logger = logging.getLogger("fodge")

def parse_order(string):
    """ Read an order given either as the power of p, or in NLO form. """
    if string.isdigit():
        order = int(string)
    else:
        order = order_NtoO(string.upper())
    order_OtoN(order)
    return order

def parse_legs(string):
    if not string.isdigit():
        raise FodgeError(f"Invalid number of legs: '{string}'")
    return check_legs(int(string))

#-- FORM output --#

def momentum_FORM(mask, n_legs):
    """ The sum of the momenta in mask, using momentum conservation to keep it short. """
    p = sp.symbols(f'p1:{n_legs+1}')
    norm = normalise_mmask(mask, n_legs)
    momentum = sp.Add(*[p[i] for i in range(n_legs) if norm & (1 << i)])
    return str(momentum if norm == mask else -momentum)

def vertex_name_FORM(node):
    return f"V{node.order}x{'_'.join(str(s) for s in node.vertex_split())}"

def diagram_factors_FORM(node, n_legs, factors):
    """
    Append the vertex functions and propagators of the subtree at node to factors.
    Vertex functions take the incoming momentum of each leg, in flavour order.
    """
    args = []
    children = []
    for tr in node.traces:
        if tr.connected:
            args.append(momentum_FORM(((1 << n_legs) - 1) ^ node.momenta, n_legs))
        for leg in tr.legs:
            args.append(momentum_FORM(leg.momenta, n_legs))
            if not leg.is_leaf:
                children.append(leg)

    factors.append(f"{vertex_name_FORM(node)}({', '.join(args)})")
    if not node.is_root:
        factors.append(f"{'singlet' if node.is_singlet else 'prop'}({momentum_FORM(node.momenta, n_legs)})")

    for child in children:
        diagram_factors_FORM(child, n_legs, factors)

def print_info_FORM(formfile, extra=''):
    print(dedent(f"""\
        *** {AUTHOR}
        *** FORM file generated by fodge.py on {datetime.now().strftime("%c")}
        ***  with arguments '{' '.join(sys.argv[1:])}'
        *** This file is automatically generated and should preferably not be modified."""), file=formfile)
    for line in extra.split('\n'):
        print(f"*** {line}", file=formfile)

    print("", file=formfile)

def write_FORM(filename, diagrs):
    """
    Write the diagrams as FORM local expressions, one per diagram, to filename.

    Each diagram D<i> is a product of vertex functions V<order>x<split>(momenta...) and
    prop(momentum) or singlet(momentum), with the symmetry factor in D<i>SYM and the
    distinct labellings, as 1-based permutations of the external momenta, in D<i>PERMS.
    """

    try:
        with open(filename, 'w') as formfile:
            print_info_FORM(formfile, dedent("""\
                Each diagram should be divided by its symmetry factor `D<i>SYM'
                and summed over the permutations of p1, p2, ... in `D<i>PERMS'."""))

            print(f'#define NDIAGRAMS "{len(diagrs)}"\n', file=formfile)

            for i, diagr in enumerate(diagrs, 1):
                factors = []
                diagram_factors_FORM(diagr.root, diagr.n_legs, factors)
                perms = ' '.join(lbl.perm.oneline_string(sep=',', base=1) for lbl in diagr.labellings)

                print(dedent(f"""\
                    * {diagr.name()}{' (singlet)' if diagr.is_singlet else ''}
                    #define D{i}SYM "{diagr.symmetry_factor}"
                    #define D{i}NLABELS "{len(diagr.labellings)}"
                    #define D{i}PERMS "{perms}"
                    L D{i} ="""), file=formfile)
                print(indent('\n* '.join(factors) + ';', ' '*4), file=formfile)
                print("", file=formfile)

                logger.debug(f"Wrote diagram {i} to FORM", extra=logextra)
    except OSError as err:
        raise FodgeError(f"Could not write '{filename}': {err}")

    logger.info(f"Wrote output file {filename}", extra=logextra)

#-- Main program --#

def run(args):

    if args.order is not None and args.ORDER is not None:
        raise FodgeError("Order given both as argument and with -O")
    if args.legs is not None and args.LEGS is not None:
        raise FodgeError("Number of legs given both as argument and with -N")
    if (args.order or args.ORDER) is None:
        raise FodgeError("No order given")
    if (args.legs or args.LEGS) is None:
        raise FodgeError("No number of legs given")

    order = parse_order(args.order or args.ORDER)
    n_legs = parse_legs(args.legs or args.LEGS)

    if args.include_flav_split and args.exclude_flav_split:
        raise FodgeError("At most one of --include-flav-split and --exclude-flav-split may be given")
    filter_string = args.include_flav_split or args.exclude_flav_split
    flav_splits = parse_flav_splits(filter_string, n_legs) if filter_string else None

    logextra['where'] = f"O(p^{order}) {n_legs}-point"
    logger.info(f"Generating {order_OtoN(order)} (O(p^{order})) {n_legs}-point diagrams "
                f"{'with' if args.singlets else 'without'} singlets", extra=logextra)

    diagrs = Diagram.generate(order, n_legs, args.singlets, not args.keep_zero)

    if flav_splits is not None:
        include = bool(args.include_flav_split)
        n_removed = Diagram.filter_flav_split(diagrs, flav_splits, include)
        logger.log(VERBOSE, f"{n_removed} diagrams removed by flavour split filter "
                            f"({'inclusive' if include else 'exclusive'}: "
                            f"{and_join(split_string(split) for split in flav_splits)})", extra=logextra)

    if args.detailed_list and diagrs:
        print("Generated diagrams:")
        for i, diagr in enumerate(diagrs, 1):
            print(f"[{i}] {diagr}")
            if args.print_representation:
                print(indent(diagr.representation.describe(), ' '*4))
            print("")
    elif args.print_representation:
        for i, diagr in enumerate(diagrs, 1):
            print(f"[{i}] {diagr.name()}, symmetry factor {diagr.symmetry_factor}:")
            print(indent(diagr.representation.describe(), ' '*4))

    if args.generate_form:
        outdir = Path(args.output_dir)
        try:
            outdir.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise FodgeError(f"Could not create output directory '{outdir}': {err}")
        name = f"{args.output_name}_M" if args.output_name else "M"
        write_FORM(outdir / f"{name}{n_legs}p{order}.hf", diagrs)

    if args.list_diagrams and diagrs:
        print(Diagram.summarise(diagrs))

    print(f"Total diagrams: {len(diagrs)}")
    return 0

def main(argv=None):

    parser = argparse.ArgumentParser(
        prog = 'fodge',
        formatter_class=argparse.RawTextHelpFormatter,
        usage="fodge [-h] [-vDq] [-sSZ] [-lLr] [-f] [-i SPLITS | -x SPLITS] [-o DIR] [-n NAME] ORDER LEGS",
        description=dedent(f"""\
            Generator of flavour-ordered Feynman diagrams.
            Version {VERSION}, {AUTHOR}

            To generate all O(p^m) n-point flavour-ordered diagrams, run
            $ fodge m n"""))

    parser.add_argument('ORDER', type=str, nargs='?', default=None,
                        help="The order of the diagrams, as the power of p (2, 4, ...) or as LO, NLO, N2LO, ...")
    parser.add_argument('LEGS', type=str, nargs='?', default=None,
                        help="The number of external legs, even and at least 4")
    parser.add_argument('-O', '--order', type=str, default=None,
                        help="Alternative to giving ORDER as an argument")
    parser.add_argument('-N', '--number-of-legs', type=str, default=None, dest='legs',
                        help="Alternative to giving LEGS as an argument")

    parser.add_argument('-s', '--singlets', action='store_true', default=True,
                        help="Include diagrams with U(1) singlet propagators (default)")
    parser.add_argument('-S', '--no-singlets', action='store_false', dest='singlets',
                        help="Exclude diagrams with U(1) singlet propagators")
    parser.add_argument('-Z', '--keep-zero', action='store_true',
                        help="Keep diagrams that vanish identically when the generators are traceless")

    parser.add_argument('-i', '--include-flav-split', type=str, metavar='SPLITS',
                        help="""Remove all diagrams that do not have one of the given flavour splits.
Splits are written as comma-separated integers, and several splits
are separated by spaces inside quotes, e.g. "2,2,4 3,5".""")
    parser.add_argument('-x', '--exclude-flav-split', type=str, metavar='SPLITS',
                        help="Like -i, but remove all diagrams that DO have one of the given flavour splits")

    parser.add_argument('-l', '--list-diagrams', action='store_true',
                        help="Print a summary table of the generated diagrams")
    parser.add_argument('-L', '--detailed-list', action='store_true',
                        help="""Print every diagram with its symmetry factor and distinct labellings.
Each labelling is a permutation followed by its propagators: an 'X'
marks a momentum flowing through the propagator, and (a -> b) means
that it flows from an O(p^a) vertex to an O(p^b) one. Singlet
propagators also mark the momentum of the adjacent leg on each side.""")
    parser.add_argument('-r', '--print-representation', action='store_true',
                        help="Print the canonical representation of every diagram")

    parser.add_argument('-f', '--generate-form', action='store_true',
                        help="Write a .hf file with the diagrams for amplitude calculations in FORM")
    parser.add_argument('-o', '--output-dir', type=str, default='output/',
                        help="Directory for output files (default: output/)")
    parser.add_argument('-n', '--output-name', type=str, default='',
                        help="Prefix for output file names; M<legs>p<order> is always included")

    parser.add_argument('-v', '--verbose', action='store_true',
                        help="Say more about what is being done, including place of origin for all printouts")
    parser.add_argument('-D', '--debug', action='store_true',
                        help="Say even more about what is being done; implies --verbose")
    parser.add_argument('-q', '--quiet', action='store_true',
                        help="Suppress all output except what is critical")

    args = parser.parse_args(argv)

    setup_logging(args)

    try:
        return run(args)
    except FodgeError as err:
        print(f"ERROR: {err}", file=sys.stderr)
        if args.debug:
            traceback.print_exc()
        return 1
    except Exception:
        print("ERROR: unexpected error", file=sys.stderr)
        traceback.print_exc()
        return 1

if __name__ == '__main__':
    sys.exit(main())
