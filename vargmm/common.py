# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
This file contains helper functions and types.
"""

import numpy as np
from sys import stderr


class VarGMMError(Exception):
    """Base class for all errors which abort a VarGMM run"""
    pass


class NumericalInstabilityError(VarGMMError, ArithmeticError):
    """A cluster covariance degenerated; re-run with fewer clusters or better behaved annotation values"""

    def __init__(self, message, determinant=None, denominator=None, quadratic_form=None, probability=None):
        super(NumericalInstabilityError, self).__init__(message)
        self.determinant = determinant
        self.denominator = denominator
        self.quadratic_form = quadratic_form
        self.probability = probability


class MalformedInputError(VarGMMError, ValueError):
    pass


class ResourceError(VarGMMError, IOError):
    pass


logfile = stderr


def set_logfile(filename):
    global logfile
    previous = logfile
    logfile = open_output(filename)
    if previous is not stderr:
        previous.close()


def log(tag, message):
    logfile.write("LOG %s: %s\n" % (tag, message))
    logfile.flush()


def open_output(filename):
    try:
        return open(filename, "w")
    except OSError as e:
        raise ResourceError("Unable to create output file: %s" % filename) from e


def open_input(filename):
    try:
        return open(filename, "r")
    except OSError as e:
        raise ResourceError("Can not find input file: %s" % filename) from e


def format_float(value):
    "Shortest string which parses back to the identical double."
    value = float(value)
    if np.isnan(value):
        return "NaN"
    return repr(value)


def ratio(numerator, denominator):
    "Ratio of two counts which is NaN if either count is zero."
    if numerator == 0 or denominator == 0:
        return np.nan
    return float(numerator)/float(denominator)


pretty_probvector = lambda vec: "|".join(("%.2f" % f for f in vec))


def handle_broken_pipe():
    import signal
    signal.signal(signal.SIGPIPE, signal.SIG_DFL)


if __name__ == "__main__":
    pass
