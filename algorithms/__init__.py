from .calorie_estimator import CalorieEstimator
from .leveling import LevelMath

__all__ = ["CalorieEstimator", "LevelMath"]
