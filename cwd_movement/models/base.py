"""
Base Model Interface for CWD movement models

Abstract base class that all models must implement.
Ensures a consistent API across the conditional logistic and Bayesian models.
"""
from abc import ABC, abstractmethod
import pandas as pd
from typing import Dict, Optional, Sequence
import pickle
from pathlib import Path


class BaseModel(ABC):
    """Abstract base class for all movement models."""

    def __init__(self, name: str, config: Optional[Dict] = None):
        """
        Initialize model.

        Args:
            name: Model identifier
            config: Model-specific configuration
        """
        self.name = name
        self.config = config or {}
        self.is_fitted = False
        self.feature_names = None

    @abstractmethod
    def fit(self, df: pd.DataFrame, metrics: Sequence[str]) -> 'BaseModel':
        """
        Fit model to aligned movement data.

        Args:
            df: Movement DataFrame
            metrics: Metric columns used as covariates / response

        Returns:
            self
        """
        pass

    @abstractmethod
    def summary(self) -> pd.DataFrame:
        """Tidy table of fitted estimates."""
        pass

    def _check_fitted(self) -> None:
        if not self.is_fitted:
            raise ValueError("Model not fitted. Call fit() first.")

    def save(self, path: str) -> None:
        """Save model to disk."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'wb') as f:
            pickle.dump(self, f)

    @classmethod
    def load(cls, path: str) -> 'BaseModel':
        """Load model from disk."""
        with open(path, 'rb') as f:
            return pickle.load(f)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}', fitted={self.is_fitted})"
