"""decisionjungle: ensembles of width-bounded decision DAGs trained with LSearch."""

from .config import JungleConfig
from .data import TrainingExample, TrainingSet, load_data_points, load_examples
from .exceptions import ConfigurationError, DataFormatError, ModelFormatError
from .model import NO_PREDICTION, DAGNode, DecisionDAG, Jungle, PredictionResult
from .serialization import load_jungle, save_jungle
from .trainer import DAGTrainer, JungleTrainer

__all__ = [
    "NO_PREDICTION",
    "ConfigurationError",
    "DAGNode",
    "DAGTrainer",
    "DataFormatError",
    "DecisionDAG",
    "Jungle",
    "JungleConfig",
    "JungleTrainer",
    "ModelFormatError",
    "PredictionResult",
    "TrainingExample",
    "TrainingSet",
    "load_data_points",
    "load_examples",
    "load_jungle",
    "save_jungle",
]
