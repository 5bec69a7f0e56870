#!/usr/bin/env python3
# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
This is the main program which takes a cluster file and a table of annotated variants. Each variant is normalized
with the annotation means and standard deviations stored in the cluster file and scored by the weighted sum of its
densities under all clusters. The program writes one line per variant with the score and the recalibrated (phred-scaled)
quality. Optionally, the quality cutoff curve is written and the cutoffs which reach 90, 95, 98 and 100 percent of the
target novel Ti/Tv ratio are reported.

Usage:
  apply  (--help | --version)
  apply  (--clusters <file>) (--input <file>) [--out <file>] [--backoff <float>] [--target-titv <float>]
         [--out-prefix <prefix>] [--desired-num-variants <int>] [--logfile <file>]

  -h, --help                                 Show this screen
  -v, --version                              Show version
  -m <file>, --clusters <file>               Cluster file written by train
  -i <file>, --input <file>                  Variant table (tab-separated with '#' header)
  -o <file>, --out <file>                    Output score table; default standard output
  -b <float>, --backoff <float>              Factor applied to all covariance matrices [default: 1.0]
  -t <float>, --target-titv <float>          Expected novel Ti/Tv ratio [default: 2.1]
  -p <prefix>, --out-prefix <prefix>         Write the quality cutoff curve to <prefix>.dat and report cutoffs
  -d <int>, --desired-num-variants <int>     Report the cutoff which keeps this many variants; 0 is off [default: 0]
  -l <file>, --logfile <file>                File for logging
"""

import sys

from .. import common, evaluation, models
from .. import __version__


def write_scores(scores, quality, file=sys.stdout):
    file.write("#score\tQUAL\n")
    for score, qual in zip(scores, quality):
        file.write("%s\t%.2f\n" % (common.format_float(score), qual))


def main(argv):
    from docopt import docopt
    argument = docopt(__doc__, argv=argv, version=__version__)
    common.handle_broken_pipe()

    if argument["--logfile"]:
        common.set_logfile(argument["--logfile"])

    model = models.gaussian_mixture.load_model_file(argument["--clusters"], backoff=float(argument["--backoff"]))
    data = models.variants.load_data_file(argument["--input"], context=model.context)

    scores = model.score(data)
    quality = models.gaussian_mixture.recalibrated_quality(scores)

    if argument["--out"]:
        with common.open_output(argument["--out"]) as f:
            write_scores(scores, quality, file=f)
    else:
        write_scores(scores, quality)

    if argument["--out-prefix"]:
        curve = evaluation.optimization_curve(quality, data.is_known, data.is_transition,
                                              desired_num_variants=int(argument["--desired-num-variants"]))
        evaluation.write_optimization_curve(curve, argument["--out-prefix"])
        evaluation.find_cutoffs(curve, float(argument["--target-titv"]))
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
