"""Search algorithms implementing the ItineraryOptimizer port."""

from .branch_and_bound import BranchAndBoundOptimizer
from .held_karp import HeldKarpOptimizer
from .labels import Label, k_best_labels, reconstruct_legs, weakly_dominates

__all__ = [
    "BranchAndBoundOptimizer",
    "HeldKarpOptimizer",
    "Label",
    "k_best_labels",
    "reconstruct_legs",
    "weakly_dominates",
]
