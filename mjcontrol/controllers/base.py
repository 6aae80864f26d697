from typing import TYPE_CHECKING
from loguru import logger

from mjcontrol.engine import Model, State
from mjcontrol.registry import CallbackHandle

if TYPE_CHECKING:
    from mjcontrol.scheduler import StepScheduler


class Controller:
    """
    Base class for plugins that observe and drive the simulation each tick.

    Subclasses override any of :meth:`before_step`, :meth:`after_step` and
    :meth:`on_reset`; only the overridden hooks are registered with the
    scheduler on :meth:`activate` and all of them are removed again on
    :meth:`deactivate`.

    Force-contributing controllers must *add* to ``qfrc_applied``; the
    scheduler zeroes it once per tick before any ``before_step`` runs.
    """

    name: str = "controller"

    def __init__(self) -> None:
        self._scheduler: "StepScheduler | None" = None
        self._handles: list[CallbackHandle] = []

    @property
    def active(self) -> bool:
        return self._scheduler is not None

    @property
    def scheduler(self) -> "StepScheduler | None":
        return self._scheduler

    def _overrides(self, hook: str) -> bool:
        return getattr(type(self), hook) is not getattr(Controller, hook)

    def activate(self, scheduler: "StepScheduler") -> None:
        """
        Register this controller's hooks with ``scheduler``.

        Raises:
            RuntimeError: If the controller is already active.
        """
        if self._scheduler is not None:
            raise RuntimeError(f"Controller '{self.name}' is already active")
        self._scheduler = scheduler
        if self._overrides("before_step"):
            self._handles.append(scheduler.register_before_step(self.before_step))
        if self._overrides("after_step"):
            self._handles.append(scheduler.register_after_step(self.after_step))
        if self._overrides("on_reset"):
            self._handles.append(scheduler.register_reset_observer(self.on_reset))
        logger.info(f"[{type(self).__name__}] Activated '{self.name}'")

    def deactivate(self) -> None:
        if self._scheduler is None:
            return
        for handle in self._handles:
            self._scheduler.unregister(handle)
        self._handles = []
        self._scheduler = None
        logger.info(f"[{type(self).__name__}] Deactivated '{self.name}'")

    def before_step(self, model: Model, state: State) -> None:
        pass

    def after_step(self, model: Model, state: State) -> None:
        pass

    def on_reset(self, model: Model, state: State) -> None:
        pass
