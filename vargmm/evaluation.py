# This file is subject to the terms and conditions of the GPLv3 (see file 'LICENSE' as part of this source code package)

u"""
Submodule with all diagnostics: empirical annotation distributions of known and novel variants and the search for
quality cutoffs which reach a target transition/transversion ratio.
"""

from . import common, types
from collections import namedtuple
import numpy as np

STD_STEP = 0.2
MIN_STD = -4.0
MAX_STD = 4.0
NUM_STD_BINS = int(round((MAX_STD - MIN_STD)/STD_STEP)) + 1

MAX_QUAL = 100.0
QUAL_STEP = 0.1
NUM_QUAL_BINS = int(round(MAX_QUAL/QUAL_STEP)) + 1

TITV_QUANTILES = (0.90, 0.95, 0.98, 1.0)

Histogram = namedtuple("Histogram", ["name", "values", "known", "novel"])
OptimizationCurve = namedtuple("OptimizationCurve", ["cuts", "num_known", "num_novel", "known_titv", "novel_titv"])
Cutoff = namedtuple("Cutoff", ["quantile", "cut", "num_known", "num_novel", "known_titv", "novel_titv"])


def histogram_bins(values):
    bins = np.floor((np.asarray(values, dtype=types.annotation_type) - MIN_STD)*(1.0/STD_STEP) + 0.5).astype(np.intp)
    return np.clip(bins, 0, NUM_STD_BINS - 1)


def annotation_histograms(data):
    """
    Distribution of each normalized annotation over NUM_STD_BINS bins between MIN_STD and MAX_STD standard deviations,
    separately for known and novel variants. Bin positions are reported in the original (denormalized) scale.
    """
    total_known = np.count_nonzero(data.is_known)
    total_novel = data.num_data - total_known
    positions = np.arange(NUM_STD_BINS)*STD_STEP + MIN_STD

    histograms = []
    for j, name in enumerate(data.context.names):
        bins = histogram_bins(data.annotations[:, j])
        known = np.bincount(bins[data.is_known], minlength=NUM_STD_BINS).astype(types.large_float_type)
        novel = np.bincount(bins[~data.is_known], minlength=NUM_STD_BINS).astype(types.large_float_type)
        with np.errstate(invalid="ignore", divide="ignore"):
            known /= total_known
            novel /= total_novel
        histograms.append(Histogram(name, data.context.denormalize(positions, j), known, novel))
    return histograms


def write_annotation_histograms(data, prefix):
    for histogram in annotation_histograms(data):
        with common.open_output("%s.%s.dat" % (prefix, histogram.name)) as f:
            f.write("annotationValue,knownDist,novelDist\n")
            for row in zip(histogram.values, histogram.known, histogram.novel):
                f.write("%s\n" % ",".join(map(common.format_float, row)))


def dbsnp_rate(num_known, num_novel):
    if num_known + num_novel == 0:
        return np.nan
    return 100.0*num_known/(num_known + num_novel)


def log_filtered_set(cut, num_known, num_novel, known_titv, novel_titv):
    common.log("TITV", "keeping variants with QUAL >= %.1f results in a filtered set with:" % cut)
    common.log("TITV", "\t%i known variants" % num_known)
    common.log("TITV", "\t%i novel variants, (dbSNP rate = %.2f%%)" % (num_novel, dbsnp_rate(num_known, num_novel)))
    common.log("TITV", "\t%.4f known Ti/Tv ratio" % known_titv)
    common.log("TITV", "\t%.4f novel Ti/Tv ratio" % novel_titv)


def _count_at_cuts(quality, cuts):
    # a variant kept at one cutoff stays kept at every lower cutoff
    ordered = np.sort(quality)
    return ordered.size - np.searchsorted(ordered, cuts, side="left")


def optimization_curve(quality, is_known, is_transition, desired_num_variants=0):
    """
    Sweep the quality cutoff from MAX_QUAL down to zero in steps of QUAL_STEP and record, for the variants with a
    quality at or above each cutoff, the number of known and novel variants and their Ti/Tv ratios (NaN while either
    the transition or the transversion count is zero).
    """
    quality = np.asarray(quality, dtype=types.annotation_type)
    is_known = np.asarray(is_known, dtype=bool)
    is_transition = np.asarray(is_transition, dtype=bool)
    cuts = MAX_QUAL - QUAL_STEP*np.arange(NUM_QUAL_BINS)

    known_ti = _count_at_cuts(quality[is_known & is_transition], cuts)
    known_tv = _count_at_cuts(quality[is_known & ~is_transition], cuts)
    novel_ti = _count_at_cuts(quality[~is_known & is_transition], cuts)
    novel_tv = _count_at_cuts(quality[~is_known & ~is_transition], cuts)

    curve = OptimizationCurve(cuts=cuts,
                              num_known=(known_ti + known_tv).astype(types.count_type),
                              num_novel=(novel_ti + novel_tv).astype(types.count_type),
                              known_titv=np.array([common.ratio(*t) for t in zip(known_ti, known_tv)]),
                              novel_titv=np.array([common.ratio(*t) for t in zip(novel_ti, novel_tv)]))

    if desired_num_variants:
        reached = np.flatnonzero(curve.num_known + curve.num_novel >= desired_num_variants)
        if reached.size:
            i = reached[0]
            log_filtered_set(cuts[i], curve.num_known[i], curve.num_novel[i], curve.known_titv[i], curve.novel_titv[i])
        else:
            common.log("TITV", "less than %i variants pass any quality cutoff" % desired_num_variants)
    return curve


def find_cutoffs(curve, target_titv, quantiles=TITV_QUANTILES):
    """
    Walk the curve from the most permissive cutoff towards the strictest one and report, in order, the first cutoff at
    which the novel Ti/Tv ratio reaches each quantile of the target ratio. At most one quantile is met per cutoff and
    the walk ends once the last quantile is found.
    """
    cutoffs = []
    for i in reversed(range(len(curve.cuts))):
        if len(cutoffs) == len(quantiles):
            break
        quantile = quantiles[len(cutoffs)]
        if curve.novel_titv[i] >= quantile*target_titv:  # NaN never qualifies
            cutoff = Cutoff(quantile, curve.cuts[i], curve.num_known[i], curve.num_novel[i],
                            curve.known_titv[i], curve.novel_titv[i])
            log_filtered_set(*cutoff[1:])
            cutoffs.append(cutoff)
    return cutoffs


def write_optimization_curve(curve, prefix):
    with common.open_output("%s.dat" % prefix) as f:
        f.write("pCut,numKnown,numNovel,knownTITV,novelTITV\n")
        for cut, num_known, num_novel, known_titv, novel_titv in zip(*curve):
            f.write("%s,%i,%i,%s,%s\n" % (common.format_float(round(cut, 1)), num_known, num_novel,
                                          common.format_float(known_titv), common.format_float(novel_titv)))
