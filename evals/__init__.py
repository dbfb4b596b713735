"""
Evaluation Scripts
==================
Quality evaluation and consistency checks for the prepared panel artifacts.
"""

from .eval_data_preparation import run_evaluation as run_data_preparation_eval

__all__ = [
    'run_data_preparation_eval',
]
