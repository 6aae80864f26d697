from mjcontrol.controllers.base import Controller
from mjcontrol.engine import Model, State


class GravityCompensation(Controller):
    """
    Adds ``qfrc_bias`` (gravity plus Coriolis terms) to ``qfrc_applied`` every tick.

    The scheduler zeroes ``qfrc_applied`` before the before-step phase, so this
    composes with any other force-contributing controller.
    """

    name = "gravity_compensation"

    def __init__(self, enabled: bool = True):
        super().__init__()
        self.enabled = enabled

    def before_step(self, model: Model, state: State) -> None:
        if not self.enabled:
            return
        state.qfrc_applied[:] += state.qfrc_bias
