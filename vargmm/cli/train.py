#!/usr/bin/env python3
# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
This is the main program which takes a table of annotated variants, normalizes the selected annotations and fits a
mixture of multivariate Gaussians by a fixed number of EM iterations. The cluster parameters are written to the given
cluster file and, after every iteration, to a checkpoint file named <file>.<iteration>.

Usage:
  train  (--help | --version)
  train  (--input <file>) (--outclusters <file>) (--annotation <name>)... [--gaussians <int>] [--iterations <int>]
         [--min-var-in-cluster <int>] [--max-ac <int>] [--known-weight <float>] [--random-seed <int>]
         [--report <prefix>] [--logfile <file>]

  -h, --help                              Show this screen
  -v, --version                           Show version
  -i <file>, --input <file>               Variant table (tab-separated with '#' header)
  -o <file>, --outclusters <file>         Output cluster file
  -a <name>, --annotation <name>          Annotation column to use as model dimension, repeat for each annotation
  -g <int>, --gaussians <int>             Number of Gaussian clusters [default: 4]
  -n <int>, --iterations <int>            Number of EM iterations [default: 10]
  -m <int>, --min-var-in-cluster <int>    Minimum number of supporting variants of a written cluster [default: 0]
  -c <int>, --max-ac <int>                Largest allele count of the allele count prior; default from data
  -k <float>, --known-weight <float>      Weight of known variants if the table has no WEIGHT column [default: 1.0]
  -z <int>, --random-seed <int>           Seed for the random cluster initialization [default: 91801305]
  -r <prefix>, --report <prefix>          Write known/novel annotation histograms to <prefix>.<annotation>.dat
  -l <file>, --logfile <file>             File for logging
"""

import sys

from .. import common, evaluation, models
from .. import __version__


def main(argv):
    from docopt import docopt
    argument = docopt(__doc__, argv=argv, version=__version__)
    common.handle_broken_pipe()

    if argument["--logfile"]:
        common.set_logfile(argument["--logfile"])

    data = models.variants.load_data_file(argument["--input"], annotation_names=argument["--annotation"],
                                          known_weight=float(argument["--known-weight"]))

    max_allele_count = argument["--max-ac"]
    max_allele_count = int(max_allele_count) if max_allele_count else data.max_allele_count

    model = models.gaussian_mixture.Model(int(argument["--gaussians"]),
                                          num_iterations=int(argument["--iterations"]),
                                          min_var_in_cluster=int(argument["--min-var-in-cluster"]),
                                          max_allele_count=max_allele_count,
                                          context=data.context,
                                          seed=int(argument["--random-seed"]))
    model.run(data, argument["--outclusters"])
    common.log("TRAIN", "cluster weights %s" % common.pretty_probvector([c.weight for c in model.retained_clusters()]))

    if argument["--report"]:
        evaluation.write_annotation_histograms(data, argument["--report"])
    return 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
