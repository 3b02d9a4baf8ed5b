"""
Stratified Conditional Logistic Regression for CWD movement

For each time stratum before death, fits
    is_case ~ movement metrics | pair_id
with statsmodels' ConditionalLogit, so each case is compared only with its
own matched control.

Movement metrics are averaged to one row per (pair, animal) within each
stratum before fitting.
"""
import warnings
import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Sequence
from statsmodels.discrete.conditional_models import ConditionalLogit

from .base import BaseModel


def complete_pairs(df: pd.DataFrame, group_col: str = 'pair_id') -> pd.DataFrame:
    """Keep only strata groups with exactly one case and one control."""
    counts = df.groupby(group_col)['is_case'].agg(['size', 'sum'])
    keep = counts[(counts['size'] == 2) & (counts['sum'] == 1)].index
    return df[df[group_col].isin(keep)]


class StratifiedConditionalLogit(BaseModel):
    """One conditional logistic regression per time stratum."""

    def __init__(self, config: Optional[Dict] = None):
        super().__init__(name="stratified_clogit", config=config)

        self.min_pairs = config.get('min_pairs', 10) if config else 10
        self.alpha = config.get('alpha', 0.05) if config else 0.05

        # Fitted objects
        self.results_ = {}
        self.n_pairs_ = {}
        self.skipped_ = {}
        self.converged_ = {}

    def _stratum_frame(self, df: pd.DataFrame, metrics: List[str]) -> pd.DataFrame:
        agg = (
            df.groupby(['pair_id', 'animal_id', 'is_case'], as_index=False)[metrics]
            .mean()
            .dropna(subset=metrics)
        )
        return complete_pairs(agg)

    @staticmethod
    def _converged(model: ConditionalLogit, params, gtol: float = 1e-4) -> bool:
        """
        Optimizer check on the refitted estimate.

        ConditionalLogit.fit returns a rebuilt results object without the
        optimizer's return values, so convergence is judged from the
        per-observation score at the estimate.
        """
        params = np.asarray(params, dtype=float)
        if not np.all(np.isfinite(params)):
            return False
        grad = np.asarray(model.score(params), dtype=float) / model.nobs
        return bool(np.all(np.isfinite(grad)) and np.max(np.abs(grad)) < gtol)

    def fit(self, df: pd.DataFrame, metrics: Sequence[str]) -> 'StratifiedConditionalLogit':
        """
        Fit per-stratum models.

        Args:
            df: Aligned, stratified movement data with pair_id, animal_id,
                is_case, stratum and metric columns
            metrics: Covariates

        Returns:
            self
        """
        metrics = list(metrics)
        required = ['pair_id', 'animal_id', 'is_case', 'stratum'] + metrics
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise ValueError(f"Missing columns for conditional logistic fit: {missing}")
        if not metrics:
            raise ValueError("At least one metric is required")

        self.feature_names = metrics
        self.results_, self.n_pairs_, self.skipped_, self.converged_ = {}, {}, {}, {}

        for stratum in sorted(df['stratum'].unique()):
            data = self._stratum_frame(df[df['stratum'] == stratum], metrics)
            n_pairs = data['pair_id'].nunique()
            self.n_pairs_[stratum] = n_pairs

            if n_pairs < self.min_pairs:
                self.skipped_[stratum] = f"only {n_pairs} complete pairs (< {self.min_pairs})"
                warnings.warn(f"Stratum {stratum}: {self.skipped_[stratum]}; skipped")
                continue

            # Covariates constant within every pair carry no conditional information
            varying = [
                m for m in metrics
                if (data.groupby('pair_id')[m].nunique() > 1).any()
            ]
            if len(varying) < len(metrics):
                dropped = sorted(set(metrics) - set(varying))
                warnings.warn(f"Stratum {stratum}: no within-pair variation in {dropped}; dropped")
            if not varying:
                self.skipped_[stratum] = "no within-pair variation"
                continue

            model = ConditionalLogit(
                data['is_case'].astype(float),
                data[varying].astype(float),
                groups=data['pair_id'].to_numpy()
            )
            result = model.fit(disp=False)
            self.converged_[stratum] = self._converged(model, result.params)
            if not self.converged_[stratum]:
                warnings.warn(f"Stratum {stratum}: conditional logit did not converge")

            self.results_[stratum] = result

        self.is_fitted = True
        return self

    def summary(self) -> pd.DataFrame:
        """
        Tidy coefficient table.

        Returns:
            DataFrame with stratum, term, coef, se, odds_ratio, or_lower,
            or_upper, p_value, n_pairs, converged
        """
        self._check_fitted()

        rows = []
        for stratum, result in self.results_.items():
            ci = result.conf_int(alpha=self.alpha)
            converged = self.converged_[stratum]
            for term in result.params.index:
                coef = float(result.params[term])
                rows.append({
                    'stratum': stratum,
                    'term': term,
                    'coef': coef,
                    'se': float(result.bse[term]),
                    'odds_ratio': float(np.exp(coef)),
                    'or_lower': float(np.exp(ci.loc[term, 0])),
                    'or_upper': float(np.exp(ci.loc[term, 1])),
                    'p_value': float(result.pvalues[term]),
                    'n_pairs': self.n_pairs_[stratum],
                    'converged': converged,
                })

        columns = ['stratum', 'term', 'coef', 'se', 'odds_ratio', 'or_lower',
                   'or_upper', 'p_value', 'n_pairs', 'converged']
        return pd.DataFrame(rows, columns=columns)

    def print_summary(self) -> None:
        """Print formatted per-stratum odds ratios."""
        table = self.summary()

        print("\n" + "=" * 60)
        print("CONDITIONAL LOGISTIC REGRESSION BY STRATUM")
        print("=" * 60)
        print(f"{'Stratum':<8} {'Term':<22} {'OR':>8} {'Lower':>8} {'Upper':>8} {'p':>8}")
        print("-" * 60)
        for _, row in table.iterrows():
            print(f"{row['stratum']:<8} {row['term']:<22} {row['odds_ratio']:>8.3f} "
                  f"{row['or_lower']:>8.3f} {row['or_upper']:>8.3f} {row['p_value']:>8.3f}")

        for stratum, reason in self.skipped_.items():
            print(f"⚠️  Stratum {stratum} skipped: {reason}")
