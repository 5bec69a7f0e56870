from . import variants, gaussian_mixture
