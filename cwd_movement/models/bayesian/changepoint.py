"""
Bayesian Changepoint Models for CWD movement

Per-animal daily movement series on a days-before-death axis:
- changepoint: one mean shift at an unknown day (marginalized in Stan)
- constant: no-change null model

Fits via CmdStanPy; models are compared with WAIC computed from the
pointwise log-likelihood draws.
"""
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, Optional, Sequence, Any
from scipy.special import logsumexp
import warnings

from cwd_movement.config import get_repo_root

try:
    from cmdstanpy import CmdStanModel
    CMDSTAN_AVAILABLE = True
except ImportError:
    CMDSTAN_AVAILABLE = False
    warnings.warn("CmdStanPy not available. Install with: pip install cmdstanpy")

from ..base import BaseModel


STAN_FILES = {
    'changepoint': 'changepoint_v01.stan',
    'constant': 'constant_v01.stan',
}

KEY_PARAMS = {
    'changepoint': ['mu_early', 'mu_late', 'sigma'],
    'constant': ['mu', 'sigma'],
}


def prepare_series(df: pd.DataFrame, metric: str) -> pd.DataFrame:
    """
    Order one animal's series oldest first (death last) and drop missing days.

    Args:
        df: Rows for one animal with days_before_death and the metric
        metric: Column to model

    Returns:
        DataFrame with days_before_death and the metric
    """
    if 'days_before_death' not in df.columns or metric not in df.columns:
        raise ValueError(f"Series needs 'days_before_death' and '{metric}' columns")
    series = df[['days_before_death', metric]].dropna()
    if series['days_before_death'].duplicated().any():
        raise ValueError("Series has more than one row per day; aggregate first")
    return series.sort_values('days_before_death', ascending=False).reset_index(drop=True)


def compute_waic(log_lik: np.ndarray) -> Dict[str, float]:
    """
    Widely applicable information criterion.

    Args:
        log_lik: Pointwise log-likelihood draws, shape (n_draws, n_obs)

    Returns:
        Dictionary with elpd_waic, p_waic, waic (deviance scale) and se
    """
    log_lik = np.asarray(log_lik, dtype=float)
    if log_lik.ndim != 2 or log_lik.shape[0] < 2:
        raise ValueError("log_lik must have shape (n_draws >= 2, n_obs)")

    n_draws, n_obs = log_lik.shape
    lppd_i = logsumexp(log_lik, axis=0) - np.log(n_draws)
    p_waic_i = np.var(log_lik, axis=0, ddof=1)
    elpd_i = lppd_i - p_waic_i

    return {
        'elpd_waic': float(elpd_i.sum()),
        'p_waic': float(p_waic_i.sum()),
        'waic': float(-2 * elpd_i.sum()),
        'se': float(2 * np.sqrt(n_obs * np.var(elpd_i))),
    }


def compare_models(log_liks: Dict[str, np.ndarray]) -> pd.DataFrame:
    """
    Rank models by WAIC (lower is better).

    Returns:
        DataFrame indexed by model with waic, delta_waic and Akaike-style weight
    """
    if not log_liks:
        raise ValueError("No models to compare")

    rows = []
    n_obs = {name: np.shape(ll)[-1] for name, ll in log_liks.items()}
    if len(set(n_obs.values())) > 1:
        raise ValueError(f"Models were fitted to different data sizes: {n_obs}")

    for name, log_lik in log_liks.items():
        row = compute_waic(log_lik)
        row['model'] = name
        rows.append(row)

    table = pd.DataFrame(rows).set_index('model').sort_values('waic')
    table['delta_waic'] = table['waic'] - table['waic'].min()
    rel = np.exp(-0.5 * table['delta_waic'])
    table['weight'] = rel / rel.sum()
    return table


class BayesianChangepoint(BaseModel):
    """
    Changepoint (or constant null) model for one animal's movement series.

    Uses Stan for MCMC inference via CmdStanPy.
    """

    def __init__(self, config: Optional[Dict] = None, variant: str = 'changepoint'):
        super().__init__(name=f"bayesian_{variant}", config=config)

        if not CMDSTAN_AVAILABLE:
            raise RuntimeError("CmdStanPy required but not available")
        if variant not in STAN_FILES:
            raise ValueError(f"Unknown variant: {variant}")

        self.variant = variant
        self.n_warmup = config.get('n_warmup', 1000) if config else 1000
        self.n_samples = config.get('n_samples', 1000) if config else 1000
        self.n_chains = config.get('n_chains', 4) if config else 4
        self.seed = config.get('seed', 42) if config else 42
        self.interval = config.get('interval', 0.9) if config else 0.9
        self.stan_dir = config.get('stan_dir') if config else None

        # Fitted objects
        self.model_ = None
        self.fit_ = None
        self.data_ = None
        self.series_ = None
        self.y_mean_ = None
        self.y_std_ = None

    def _get_stan_file(self) -> Path:
        """Get path to Stan model file."""
        stan_dir = Path(self.stan_dir) if self.stan_dir else get_repo_root() / "stan_models"
        stan_file = stan_dir / STAN_FILES[self.variant]
        if not stan_file.exists():
            raise FileNotFoundError(f"Stan model not found: {stan_file}")
        return stan_file

    def _prepare_stan_data(self, df: pd.DataFrame, metric: str) -> Dict[str, Any]:
        """Standardize the ordered series and format it for Stan."""
        series = prepare_series(df, metric)
        if len(series) < 2:
            raise ValueError(f"Need at least 2 observed days to fit, got {len(series)}")

        y = series[metric].to_numpy(dtype=float)
        self.y_mean_ = float(y.mean())
        self.y_std_ = float(y.std()) or 1.0
        self.series_ = series

        stan_data = {
            'T': len(y),
            'y': (y - self.y_mean_) / self.y_std_,
        }
        self.data_ = stan_data
        return stan_data

    def fit(self, df: pd.DataFrame, metrics: Sequence[str]) -> 'BayesianChangepoint':
        """
        Fit the model via MCMC.

        Args:
            df: One animal's aligned series (days_before_death + metric)
            metrics: Single-element list naming the metric to model

        Returns:
            self
        """
        metrics = list(metrics)
        if len(metrics) != 1:
            raise ValueError("Changepoint models take exactly one metric")
        self.feature_names = metrics

        stan_data = self._prepare_stan_data(df, metrics[0])

        stan_file = self._get_stan_file()
        print(f"Compiling Stan model from {stan_file}...")
        self.model_ = CmdStanModel(stan_file=str(stan_file))

        print(f"Running MCMC: {self.n_chains} chains, {self.n_warmup} warmup, "
              f"{self.n_samples} samples (T={stan_data['T']})...")
        self.fit_ = self.model_.sample(
            data=stan_data,
            chains=self.n_chains,
            iter_warmup=self.n_warmup,
            iter_sampling=self.n_samples,
            seed=self.seed,
            show_progress=False
        )

        self.is_fitted = True
        return self

    def log_likelihood(self) -> np.ndarray:
        """Pointwise log-likelihood draws, shape (n_draws, T)."""
        self._check_fitted()
        return self.fit_.stan_variable('log_lik')

    def waic(self) -> Dict[str, float]:
        """WAIC of the fitted model (see compute_waic for the keys)."""
        return compute_waic(self.log_likelihood())

    def changepoint_summary(self) -> Dict[str, float]:
        """
        Posterior summary of the change day and the two regime means.

        Regime means are reported on the metric's original scale.
        """
        self._check_fitted()
        if self.variant != 'changepoint':
            raise ValueError("changepoint_summary() requires the changepoint variant")

        tau = self.fit_.stan_variable('tau').astype(int)
        days = self.series_['days_before_death'].to_numpy()[tau - 1]
        mu_early = self.fit_.stan_variable('mu_early') * self.y_std_ + self.y_mean_
        mu_late = self.fit_.stan_variable('mu_late') * self.y_std_ + self.y_mean_

        lower_q = (1 - self.interval) / 2
        return {
            'change_day_mean': float(days.mean()),
            'change_day_median': float(np.median(days)),
            'change_day_lower': float(np.quantile(days, lower_q)),
            'change_day_upper': float(np.quantile(days, 1 - lower_q)),
            'mu_early': float(mu_early.mean()),
            'mu_late': float(mu_late.mean()),
            'p_decrease': float((mu_late < mu_early).mean()),
        }

    def get_diagnostics(self) -> Dict[str, Any]:
        """
        Get MCMC diagnostics.

        Returns:
            Dictionary with R-hat, ESS, divergences, etc.
        """
        self._check_fitted()

        summary = self.fit_.summary()
        key_params = KEY_PARAMS[self.variant]

        diagnostics = {
            'n_divergences': int(np.sum(self.fit_.divergences)),
            'max_rhat': summary.loc[key_params, 'R_hat'].max(),
            'min_ess_bulk': summary.loc[key_params, 'ESS_bulk'].min(),
            'min_ess_tail': summary.loc[key_params, 'ESS_tail'].min(),
            'parameter_summary': {}
        }

        for param in key_params:
            row = summary.loc[param]
            diagnostics['parameter_summary'][param] = {
                'mean': row['Mean'],
                'std': row['StdDev'],
                'rhat': row['R_hat'],
                'ess_bulk': row['ESS_bulk']
            }

        return diagnostics

    def summary(self) -> pd.DataFrame:
        diag = self.get_diagnostics()
        table = pd.DataFrame(diag['parameter_summary']).T
        table.index.name = 'parameter'
        return table.reset_index()

    def print_diagnostics(self) -> None:
        """Print formatted diagnostics summary."""
        diag = self.get_diagnostics()

        print("\n" + "=" * 50)
        print(f"MCMC DIAGNOSTICS ({self.variant})")
        print("=" * 50)

        print(f"\nDivergences: {diag['n_divergences']}")
        print(f"Max R-hat: {diag['max_rhat']:.4f}")
        print(f"Min ESS (bulk): {diag['min_ess_bulk']:.0f}")
        print(f"Min ESS (tail): {diag['min_ess_tail']:.0f}")

        print("\nParameter Estimates (standardized scale):")
        print("-" * 50)
        print(f"{'Parameter':<15} {'Mean':>10} {'Std':>10} {'R-hat':>8} {'ESS':>8}")
        print("-" * 50)

        for param, vals in diag['parameter_summary'].items():
            print(f"{param:<15} {vals['mean']:>10.3f} {vals['std']:>10.3f} "
                  f"{vals['rhat']:>8.3f} {vals['ess_bulk']:>8.0f}")

        print("\n" + "-" * 50)
        if diag['n_divergences'] > 0:
            print("⚠️  WARNING: Divergences detected!")
        if diag['max_rhat'] > 1.05:
            print("⚠️  WARNING: R-hat > 1.05 (chains may not have converged)")
        if diag['min_ess_bulk'] < 100:
            print("⚠️  WARNING: Low ESS (< 100)")

        if diag['n_divergences'] == 0 and diag['max_rhat'] <= 1.05 and diag['min_ess_bulk'] >= 100:
            print("✓ All diagnostics passed")


def fit_and_compare(
    df: pd.DataFrame,
    metric: str,
    config: Optional[Dict] = None
) -> Dict[str, Any]:
    """
    Fit the changepoint and constant models to one series and compare them.

    Returns:
        Dictionary with 'models', 'comparison' (WAIC table) and
        'changepoint' (posterior change-day summary)
    """
    models = {
        variant: BayesianChangepoint(config, variant=variant).fit(df, [metric])
        for variant in ('changepoint', 'constant')
    }
    comparison = compare_models({name: m.log_likelihood() for name, m in models.items()})
    return {
        'models': models,
        'comparison': comparison,
        'changepoint': models['changepoint'].changepoint_summary(),
    }
