from .attempts import AttemptService
from .streak import StreakService, StreakData, calculate_streak
from .export import ExportService

__all__ = ['AttemptService', 'StreakService', 'StreakData', 'calculate_streak', 'ExportService']
