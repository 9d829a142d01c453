"""Подбор размера шрифта, чтобы название влезло в фиксированный блок.

Сам алгоритм ничего не знает о том, как текст рисуется: измерение
делает объект-измеритель с двумя методами

    ready() -> bool                                  # шрифты загружены, блок имеет размер
    overflows(text, font_size, box) -> bool          # текст вылезает за блок

Для PDF это reportlab.pdfmetrics (см. render.ReportlabMeasurer), в тестах
подставляется фейковый измеритель. Если измерить нельзя, возвращаем
стартовый размер и принимаем возможное переполнение.
"""

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from logger import get_logger

logger = get_logger(__name__)

DEFAULT_INITIAL_SIZE = 16.0
DEFAULT_MIN_SIZE = 4.0
DEFAULT_STEP = 0.5
DEFAULT_MAX_ITERATIONS = 30


class MeasurementUnavailable(Exception):
    pass


@dataclass(frozen=True)
class Box:
    width: float
    height: float

    @property
    def empty(self) -> bool:
        return self.width <= 0 or self.height <= 0


@dataclass(frozen=True)
class FitParams:
    initial_size: float = DEFAULT_INITIAL_SIZE
    min_size: float = DEFAULT_MIN_SIZE
    step: float = DEFAULT_STEP
    max_iterations: int = DEFAULT_MAX_ITERATIONS


class FitCycle:
    """Один цикл подгонки. step() делает одно уменьшение (один "тик")."""

    def __init__(self, text: str, box: Box, measurer, params: FitParams):
        self.text = text
        self.box = box
        self.measurer = measurer
        self.params = params
        self.size = params.initial_size
        self.iterations = 0
        self.done = False
        self.cancelled = False

    def cancel(self):
        self.cancelled = True
        self.done = True

    def step(self) -> bool:
        """True, если нужен ещё один шаг."""
        if self.done:
            return False

        if self.iterations == 0 and (self.box.empty or not self.measurer.ready()):
            # замер до раскладки/загрузки шрифтов даёт неверные метрики
            logger.debug("Measurer not ready for %r, keeping %.1f", self.text, self.size)
            return self._finish()

        if self.iterations >= self.params.max_iterations:
            return self._finish()

        try:
            overflow = self.measurer.overflows(self.text, self.size, self.box)
        except MeasurementUnavailable as e:
            logger.warning("Font measurement failed for %r: %s", self.text, e)
            self.size = self.params.initial_size
            return self._finish()

        if not overflow or self.size <= self.params.min_size:
            return self._finish()

        self.size = max(self.size - self.params.step, self.params.min_size)
        self.iterations += 1
        return True

    def run(self) -> float:
        while self.step():
            pass
        return self.size

    def _finish(self) -> bool:
        self.done = True
        return False


def fit_font_size(text: str, box: Box, measurer, params: Optional[FitParams] = None) -> float:
    """Всегда начинает со стартового размера, поэтому повторный вызов даёт тот же результат."""
    return FitCycle(text, box, measurer, params or FitParams()).run()


class FontFitter:
    """Держит не больше одного активного цикла на элемент.

    Новый запуск для того же ключа отменяет предыдущий; результат
    кешируется по (текст, блок), так что повторный запрос с теми же
    данными не перемеряет. Смена текста или блока (например, режим со
    скидкой оставляет меньше места) запускает новый цикл.
    """

    def __init__(self, measurer, params: Optional[FitParams] = None):
        self.measurer = measurer
        self.params = params or FitParams()
        self._active: Dict[str, FitCycle] = {}
        self._results: Dict[str, Tuple[str, Box, float]] = {}

    def start(self, key: str, text: str, box: Box) -> FitCycle:
        previous = self._active.pop(key, None)
        if previous is not None:
            previous.cancel()
        cycle = FitCycle(text, box, self.measurer, self.params)
        self._active[key] = cycle
        return cycle

    def tick(self) -> int:
        """Один шаг каждого активного цикла; возвращает число незавершённых."""
        for key, cycle in list(self._active.items()):
            if not cycle.step():
                self._complete(key, cycle)
        return len(self._active)

    def ensure(self, key: str, text: str, box: Box) -> float:
        cached = self._results.get(key)
        if cached is not None and cached[0] == text and cached[1] == box:
            return cached[2]
        cycle = self.start(key, text, box)
        cycle.run()
        self._complete(key, cycle)
        return cycle.size

    def discard(self, key: str):
        """Элемент удалён: отменяем цикл и забываем результат."""
        cycle = self._active.pop(key, None)
        if cycle is not None:
            cycle.cancel()
        self._results.pop(key, None)

    def pending(self) -> int:
        return len(self._active)

    def _complete(self, key: str, cycle: FitCycle):
        if self._active.get(key) is cycle:
            del self._active[key]
        if not cycle.cancelled:
            self._results[key] = (cycle.text, cycle.box, cycle.size)
