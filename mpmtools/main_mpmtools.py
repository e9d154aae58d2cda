import argparse
import logging
import sys

from .cmd import bids_unicort, print_defaults, smooth, unicort


def main():
    MPM_parser()

def setup_logging(verbose):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO,
                        format='[%(asctime)s] %(message)s', datefmt='%H:%M:%S')

class MPM_parser(object):

    def __init__(self, argv=None):
        if argv is None:
            argv = sys.argv[1:]
        self.argv = argv

        method_list = [method for method in dir(self) if method.startswith('entrypoint')]
        
        method_str=''
        for method in method_list:
            dstr = getattr(self, method).__doc__
            nice_name = method.replace('entrypoint_', '')

            method_str += "\t{:25s}{:25s}\n".format(nice_name, dstr)

        parser = argparse.ArgumentParser(description='mpmtools: UNICORT and tissue weighted smoothing of multi-parametric maps',
                                         usage=f'''mpmtools <command> [<args>]

    Available commands are
{method_str}

    ''')
        
        parser.add_argument('command', help='Subcommand to run')
        args = parser.parse_args(self.argv[0:1])

        # Check if the object (the class) has a function with the given command name
        if not hasattr(self, "entrypoint_" + args.command):
            print('Unrecognized command')
            parser.print_help()
            sys.exit(1)

        # Call the method
        self.result = getattr(self, "entrypoint_" + args.command)()

    @staticmethod
    def _add_common(parser):
        parser.add_argument('-c', '--config', type=str, default=None, help='JSON file overriding default parameters')
        parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    def entrypoint_unicort(self):
        """UNICORT correction of R1 map"""
        parser = argparse.ArgumentParser(description='Correct R1 map for RF transmit inhomogeneity and estimate B1+ map',
                                         usage='mpmtools unicort <pdw> <r1> [<args>]')
        
        parser.add_argument('pdw', type=str, help='PD-weighted image, used for the head mask')
        parser.add_argument('r1', type=str, help='R1 map')
        parser.add_argument('-o', '--out', type=str, default=None, help='Output directory (default is R1 map directory)')
        parser.add_argument('-b', '--backend', type=str, default=None, choices=['spm', 'ants'], help='Bias field estimator (default from config)')
        parser.add_argument('--stats', action='store_true', help='Save csv with B1+ map statistics')
        parser.add_argument('--qc', action='store_true', help='Save png of B1+ map')
        self._add_common(parser)

        args = parser.parse_args(self.argv[1:])
        setup_logging(args.verbose)
        return unicort(pdw=args.pdw, r1=args.r1, out_dir=args.out, config_file=args.config,
                       backend=args.backend, stats=args.stats, qc=args.qc)

    def entrypoint_smooth(self):
        """Tissue weighted smoothing"""
        parser = argparse.ArgumentParser(description='Tissue weighted smoothing of warped MPMs',
                                         usage='mpmtools smooth -m <maps> -t <tissue classes> -p <tpms> [<args>]')

        parser.add_argument('-m', '--maps', nargs='+', required=True, help='Warped MPMs')
        parser.add_argument('-t', '--tc', nargs='+', required=True, help='Modulated warped tissue classes')
        parser.add_argument('-p', '--tpm', nargs='+', required=True, help='Tissue probability maps matching the tissue classes (file or file,N)')
        parser.add_argument('-f', '--fwhm', type=float, default=None, help='Kernel FWHM in mm (default 6)')
        parser.add_argument('-l', '--classes', type=int, nargs='+', default=None, help='Tissue class indexes (default 1..N)')
        self._add_common(parser)

        args = parser.parse_args(self.argv[1:])
        setup_logging(args.verbose)
        return smooth(maps=args.maps, tissue_classes=args.tc, tpms=args.tpm, fwhm=args.fwhm,
                      l_tc=args.classes, config_file=args.config)

    def entrypoint_bids_unicort(self):
        """UNICORT on BIDS dataset"""
        parser = argparse.ArgumentParser(description='Run UNICORT on the PDw and R1map images of a BIDS dataset',
                                         usage='mpmtools bids_unicort <bids_dir> [<args>]')

        parser.add_argument('bids_dir', type=str, help='BIDS dataset')
        parser.add_argument('-s', '--subjects', nargs='+', default=None, help='Subjects (default all)')
        parser.add_argument('-b', '--backend', type=str, default=None, choices=['spm', 'ants'], help='Bias field estimator (default from config)')
        parser.add_argument('--qc', action='store_true', help='Save png of B1+ maps')
        self._add_common(parser)

        args = parser.parse_args(self.argv[1:])
        setup_logging(args.verbose)
        return bids_unicort(bids_dir=args.bids_dir, subjects=args.subjects, config_file=args.config,
                            backend=args.backend, qc=args.qc)

    def entrypoint_defaults(self):
        """Print parameters"""
        parser = argparse.ArgumentParser(description='Print the processing parameters',
                                         usage='mpmtools defaults [<args>]')
        self._add_common(parser)

        args = parser.parse_args(self.argv[1:])
        return print_defaults(args.config)


if __name__ == '__main__':
    main()
