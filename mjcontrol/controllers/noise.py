import numpy as np

from mjcontrol.config import CtrlNoiseConfig
from mjcontrol.controllers.base import Controller
from mjcontrol.engine import Model, State


class CtrlNoise(Controller):
    """
    Perturbs every control with exponentially filtered Gaussian noise.

    ``noise = (1 - rate) * noise + rate * N(0, std)`` and ``ctrl += noise``,
    evaluated once per tick. Register it after controllers that write
    ``ctrl`` so the noise lands on top of their commands.
    """

    name = "ctrl_noise"

    def __init__(self, config: CtrlNoiseConfig | None = None, **overrides):
        super().__init__()
        base = config if config is not None else CtrlNoiseConfig()
        self.config = CtrlNoiseConfig.model_validate({**base.model_dump(), **overrides})
        self._rng = np.random.default_rng(self.config.seed)
        self._noise: np.ndarray | None = None

    @property
    def noise(self) -> np.ndarray | None:
        return None if self._noise is None else self._noise.copy()

    def before_step(self, model: Model, state: State) -> None:
        if not self.config.enabled:
            return
        nu = len(state.ctrl)
        if nu == 0:
            return
        if self._noise is None or self._noise.shape[0] != nu:
            self._noise = np.zeros(nu)

        rate = self.config.rate
        sample = self._rng.normal(0.0, self.config.std, size=nu)
        self._noise = (1.0 - rate) * self._noise + rate * sample
        state.ctrl[:] += self._noise

    def on_reset(self, model: Model, state: State) -> None:
        self._noise = None
